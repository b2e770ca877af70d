"""
Streak tracking service.
Per-child consecutive-day approval counter with a bonus on day seven.
"""
import logging
from datetime import date, timedelta
from sqlalchemy.orm import Session

from chorecoins.models import Streak
from chorecoins.repositories.streak_repository import StreakRepository
from chorecoins.services.ledger_service import LedgerService
from chorecoins.services.notification_service import NotificationService
from chorecoins.constants import (
    NOTIFICATION_ACHIEVEMENT, RECIPIENT_CHILD, RELATED_ACHIEVEMENT,
    STREAK_BONUS_AMOUNT, STREAK_BONUS_THRESHOLD, TRANSACTION_STREAK_BONUS
)

logger = logging.getLogger("chorecoins.streaks")


class StreakService:
    """Service for streak updates. Never commits."""

    def __init__(self, db: Session, ledger: LedgerService, notifications: NotificationService):
        self.db = db
        self.repo = StreakRepository()
        self.ledger = ledger
        self.notifications = notifications

    def record_approval(self, child_id: str, today: date) -> Streak:
        """
        Update a child's streak for an approval made today.

        - No row yet: create with count 1
        - Last approval exactly yesterday: increment
        - Anything else: restart at 1

        Reaching the threshold pays a streak bonus, sends a
        congratulation and resets the count to 0.
        """
        streak = self.repo.get_by_child(self.db, child_id, for_update=True)

        if streak is None:
            streak = self.repo.add(
                self.db,
                Streak(child_id=child_id, streak_count=1, last_task_date=today)
            )
            return streak

        if streak.last_task_date == today - timedelta(days=1):
            streak.streak_count = (streak.streak_count or 0) + 1
        else:
            streak.streak_count = 1
        streak.last_task_date = today

        if streak.streak_count >= STREAK_BONUS_THRESHOLD:
            self._award_bonus(streak)

        self.db.flush()
        return streak

    def _award_bonus(self, streak: Streak) -> None:
        days = streak.streak_count
        self.ledger.record(
            child_id=streak.child_id,
            amount=STREAK_BONUS_AMOUNT,
            type=TRANSACTION_STREAK_BONUS,
            description=f"Bonus for {days}-day streak",
        )
        self.notifications.notify(
            NOTIFICATION_ACHIEVEMENT,
            f"Congratulations! You've maintained a {days}-day streak and earned "
            f"{STREAK_BONUS_AMOUNT} bonus coins!",
            RECIPIENT_CHILD,
            streak.child_id,
            RELATED_ACHIEVEMENT,
            None,
        )
        logger.info(f"Streak bonus for child {streak.child_id} after {days} days")
        streak.streak_count = 0

    def reset(self, child_id: str) -> None:
        """Reset a child's streak to 0 (rejections)"""
        streak = self.repo.get_by_child(self.db, child_id, for_update=True)
        if streak is None:
            return
        streak.streak_count = 0
        self.db.flush()
