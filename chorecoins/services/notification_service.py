"""
Notification service.

Notification rows are written in the caller's transaction. Handing them
to an outside channel happens only after that transaction commits, and a
failing channel never undoes the business change.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from sqlalchemy.orm import Session

from chorecoins.models import Notification, Task
from chorecoins.repositories.notification_repository import NotificationRepository
from chorecoins.constants import (
    RECIPIENT_CHILD, RECIPIENT_PARENT, RELATED_TASK
)
from chorecoins.exceptions import ForbiddenException, NotificationNotFoundException

logger = logging.getLogger("chorecoins.notifications")


class Notifier(ABC):
    """Outbound notification channel"""

    @abstractmethod
    def enqueue(self, notification: Notification) -> None:
        """Hand one committed notification to the channel"""


class LoggingNotifier(Notifier):
    """Default channel: records the dispatch in the application log"""

    def enqueue(self, notification: Notification) -> None:
        logger.info(
            f"Notify {notification.recipient_type}:{notification.recipient_id} "
            f"[{notification.type}] {notification.message}"
        )


class NotificationService:
    """Service for creating and dispatching notifications"""

    def __init__(self, db: Session, notifier: Optional[Notifier] = None):
        self.db = db
        self.repo = NotificationRepository()
        self.notifier = notifier or LoggingNotifier()
        self._pending: List[Notification] = []

    def notify(
        self,
        type: str,
        message: str,
        recipient_type: str,
        recipient_id: str,
        related_item_type: Optional[str] = None,
        related_item_id: Optional[str] = None
    ) -> Notification:
        """Stage a notification in the current transaction"""
        notification = Notification(
            type=type,
            message=message,
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            related_item_type=related_item_type,
            related_item_id=related_item_id,
        )
        self.repo.add(self.db, notification)
        self._pending.append(notification)
        return notification

    def notify_child(self, task: Task, type: str, message: str) -> Notification:
        return self.notify(type, message, RECIPIENT_CHILD, task.child_id, RELATED_TASK, task.id)

    def notify_parent(self, task: Task, type: str, message: str) -> Notification:
        return self.notify(type, message, RECIPIENT_PARENT, task.parent_id, RELATED_TASK, task.id)

    def dispatch(self) -> int:
        """
        Hand committed notifications to the notifier.

        Call only after the owning transaction has committed.
        Returns the number handed over successfully.
        """
        pending, self._pending = self._pending, []
        sent = 0
        for notification in pending:
            try:
                self.notifier.enqueue(notification)
                sent += 1
            except Exception as e:
                logger.error(f"Notification dispatch failed for {notification.id}: {e}")
        return sent

    def discard(self) -> None:
        """Forget staged notifications after a rollback"""
        self._pending = []

    def get_for_recipient(self, recipient_type: str, recipient_id: str, unread_only: bool = False) -> List[Notification]:
        return self.repo.get_for_recipient(self.db, recipient_type, recipient_id, unread_only)

    def mark_read(self, notification_id: str, recipient_type: str, recipient_id: str) -> Notification:
        """Mark one of the recipient's notifications as read"""
        notification = self.repo.get_by_id(self.db, notification_id)
        if not notification:
            raise NotificationNotFoundException(notification_id)
        if notification.recipient_type != recipient_type or notification.recipient_id != recipient_id:
            raise ForbiddenException("Notification belongs to another recipient")
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification
