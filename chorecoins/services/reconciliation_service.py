"""
Daily reconciliation.

Advances task status from elapsed time alone, in three phases that run
in a fixed order (promote, demote, respawn). Each phase commits or rolls
back on its own; a failing phase is logged and the run moves on.
"""
import logging
from typing import Callable, Dict, Optional, Set
from sqlalchemy.orm import Session

from chorecoins.clock import Clock
from chorecoins.models import Task
from chorecoins.repositories.task_repository import TaskRepository
from chorecoins.repositories.template_repository import TemplateRepository
from chorecoins.repositories.settings_repository import SettingsRepository
from chorecoins.services.date_service import DateService
from chorecoins.services.notification_service import NotificationService, Notifier
from chorecoins.services.task_service import TaskService
from chorecoins.services.transition_service import is_legal
from chorecoins.constants import (
    TaskStatus, NOTIFICATION_TASK_REMINDER, NOTIFICATION_TASK_UPDATE
)

logger = logging.getLogger("chorecoins.reconciliation")


class ReconciliationService:
    """Service for the daily time-driven status sweep"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None
    ):
        self.db = db
        self.task_repo = TaskRepository()
        self.template_repo = TemplateRepository()
        self.settings_repo = SettingsRepository()
        self.date_service = DateService(clock)
        self.notifications = NotificationService(db, notifier)
        self.tasks = TaskService(db, clock, notifications=self.notifications)
        # Tasks promoted in the current run; demote leaves them for the next run
        self._promoted_ids: Set[str] = set()

    def run_daily_reconciliation(self) -> Dict[str, int]:
        """
        Run promote, demote and respawn in that order.

        A task promoted in this run is not demoted in the same run,
        even if its due time has already passed.

        Returns:
            Dict with promoted, demoted and respawned counts. A phase
            that failed reports 0.
        """
        today = self.date_service.today()
        logger.info(f"Running daily reconciliation for {today} at {self.date_service.current_time()}")
        self._promoted_ids = set()

        result = {
            "promoted": self._run_phase("promote", self.promote_due_today),
            "demoted": self._run_phase("demote", self.demote_expired),
            "respawned": self._run_phase("respawn", self.respawn_daily),
        }

        try:
            self.settings_repo.mark_reconciled(self.db, today)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Could not record reconciliation date: {e}", exc_info=True)

        logger.info(
            f"Reconciliation done: {result['promoted']} promoted, "
            f"{result['demoted']} demoted, {result['respawned']} respawned"
        )
        return result

    def _run_phase(self, name: str, phase: Callable[[], int]) -> int:
        try:
            count = phase()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            self.notifications.discard()
            logger.error(f"Reconciliation phase '{name}' failed: {e}", exc_info=True)
            return 0

        self.notifications.dispatch()
        logger.debug(f"Phase '{name}' changed {count} task(s)")
        return count

    def promote_due_today(self) -> int:
        """UPCOMING tasks due today become PENDING. Does not commit."""
        tasks = self.task_repo.get_upcoming_due_on(self.db, self.date_service.today())
        for task in tasks:
            self._move(task, TaskStatus.PENDING)
            self._promoted_ids.add(task.id)
            if task.notification_enabled:
                self.notifications.notify_child(
                    task, NOTIFICATION_TASK_REMINDER,
                    f"Task due today: {self._title(task)}"
                )
        self.db.flush()
        return len(tasks)

    def demote_expired(self) -> int:
        """PENDING tasks past their due date/time become OVERDUE. Does not commit."""
        tasks = [
            task for task in self.task_repo.get_expired_pending(
                self.db, self.date_service.today(), self.date_service.current_time()
            )
            if task.id not in self._promoted_ids
            and self.date_service.is_past_due(task.due_date, task.due_time)
        ]
        for task in tasks:
            self._move(task, TaskStatus.OVERDUE)
            if task.notification_enabled:
                self.notifications.notify_child(
                    task, NOTIFICATION_TASK_UPDATE,
                    f"Task is overdue: {self._title(task)}"
                )
        self.db.flush()
        return len(tasks)

    def respawn_daily(self) -> int:
        """
        Ensure the next day's instance of every processed DAILY task.

        Does not commit. Dates that already have a task, and next dates
        that are already in the past, are skipped.
        """
        created = 0
        sources = self.task_repo.get_daily_respawn_sources(self.db, self.date_service.yesterday())
        for source in sources:
            next_date = self.date_service.next_day(source.due_date)
            task = self.tasks.create_instance(
                template_id=source.template_id,
                parent_id=source.parent_id,
                child_id=source.child_id,
                due_date=next_date,
                due_time=source.due_time,
                recurrence=source.recurrence,
                reward_coins=source.reward_coins,
                difficulty=source.difficulty,
                notification_enabled=source.notification_enabled,
                description=source.description,
                duration=source.duration,
            )
            if task is None:
                continue
            created += 1
            if task.notification_enabled:
                self.notifications.notify_child(
                    task, NOTIFICATION_TASK_REMINDER,
                    f"New recurring task assigned: {self._title(task)}"
                )
        return created

    def _move(self, task: Task, target: TaskStatus) -> None:
        if not is_legal(task.status, target):
            raise ValueError(f"Reconciliation cannot move task {task.id} from {task.status} to {target}")
        task.status = target

    def _title(self, task: Task) -> str:
        template = self.template_repo.get_by_id(self.db, task.template_id)
        return template.title if template else "task"
