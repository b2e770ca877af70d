"""
Streak repository - Data access layer for Streak model.
"""
from typing import Optional
from sqlalchemy.orm import Session

from chorecoins.models import Streak


class StreakRepository:
    """Repository for Streak data access"""

    @staticmethod
    def get_by_child(db: Session, child_id: str, for_update: bool = False) -> Optional[Streak]:
        """Get the streak row of a child"""
        query = db.query(Streak).filter(Streak.child_id == child_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def add(db: Session, streak: Streak) -> Streak:
        """Stage a new streak row"""
        db.add(streak)
        db.flush()
        return streak
