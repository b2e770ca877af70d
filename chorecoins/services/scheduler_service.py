"""
Background scheduler for the daily reconciliation.

A job ticks every minute and runs the reconciliation once per local day,
as soon as the configured reconciliation time has been reached.
"""

import logging
from typing import Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from chorecoins.clock import Clock, SystemClock
from chorecoins.database import SessionLocal
from chorecoins.repositories.settings_repository import SettingsRepository
from chorecoins.services.date_service import DateService
from chorecoins.services.reconciliation_service import ReconciliationService
from chorecoins.constants import DEFAULT_RECONCILIATION_TIME

logger = logging.getLogger("chorecoins.scheduler")

# Create scheduler instance
scheduler = BackgroundScheduler()


def run_reconciliation_tick(clock: Optional[Clock] = None, session_factory=SessionLocal) -> Optional[dict]:
    """
    Job: run the daily reconciliation if it is due.

    Runs when reconciliation is enabled, the local time has reached the
    configured time and today's run has not happened yet.

    Returns:
        Reconciliation counts when a run happened, otherwise None
    """
    clock = clock or SystemClock()
    dates = DateService(clock)
    db = session_factory()
    try:
        settings = SettingsRepository.get(db)
        if not settings.reconciliation_enabled:
            return None

        current_time = dates.current_time()
        target_time = DateService.normalize_due_time(
            settings.reconciliation_time or DEFAULT_RECONCILIATION_TIME
        )
        today = dates.today()

        if current_time >= target_time and settings.last_reconciliation_date != today:
            logger.info(f"Executing daily reconciliation (Current: {current_time}, Target: {target_time})")
            return ReconciliationService(db, clock).run_daily_reconciliation()
        return None

    except Exception as e:
        logger.error(f"Scheduler Error (Reconciliation): {e}", exc_info=True)
        return None
    finally:
        db.close()


def start_scheduler():
    """Start the scheduler"""
    if not scheduler.running:
        # Checked every minute
        trigger = CronTrigger(minute='*')

        scheduler.add_job(
            run_reconciliation_tick,
            trigger,
            id='daily_reconciliation',
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        scheduler.start()
        logger.info(">>> APScheduler STARTED <<<")
        logger.info(f"Scheduled jobs: {[job.id for job in scheduler.get_jobs()]}")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
