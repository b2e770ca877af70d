"""
Notification repository - Data access layer for Notification model.
"""
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_

from chorecoins.models import Notification


class NotificationRepository:
    """Repository for Notification data access"""

    @staticmethod
    def get_by_id(db: Session, notification_id: str) -> Optional[Notification]:
        return db.query(Notification).filter(Notification.id == notification_id).first()

    @staticmethod
    def get_for_recipient(
        db: Session,
        recipient_type: str,
        recipient_id: str,
        unread_only: bool = False
    ) -> List[Notification]:
        """Get notifications addressed to one recipient, newest first"""
        query = db.query(Notification).filter(
            and_(
                Notification.recipient_type == recipient_type,
                Notification.recipient_id == recipient_id
            )
        )
        if unread_only:
            query = query.filter(Notification.is_read == False)
        return query.order_by(Notification.created_at.desc()).all()

    @staticmethod
    def add(db: Session, notification: Notification) -> Notification:
        """Stage a new notification"""
        db.add(notification)
        db.flush()
        return notification
