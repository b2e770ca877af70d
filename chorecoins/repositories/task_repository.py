"""
Task repository - Data access layer for Task model.
Handles all database queries related to tasks.

Writes only flush; the calling service owns the commit so that a task
mutation and its side effects land in one transaction.
"""
from datetime import date
from typing import Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_

from chorecoins.models import Task
from chorecoins.constants import Recurrence, TaskStatus, RESPAWN_SOURCE_STATUSES


class TaskRepository:
    """Repository for Task data access"""

    @staticmethod
    def get_by_id(db: Session, task_id: str, for_update: bool = False) -> Optional[Task]:
        """
        Get task by ID.

        With for_update the row is locked until the caller commits and the
        returned object is reloaded from that locked row.
        """
        query = db.query(Task).filter(Task.id == task_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def get_for_date(
        db: Session,
        template_id: str,
        child_id: str,
        due_date: date
    ) -> Optional[Task]:
        """Get the task materialized for (template, child, date), if any"""
        return db.query(Task).filter(
            and_(
                Task.template_id == template_id,
                Task.child_id == child_id,
                Task.due_date == due_date
            )
        ).first()

    @staticmethod
    def get_for_template_and_child(
        db: Session,
        template_id: str,
        child_id: str,
        parent_id: Optional[str] = None
    ) -> List[Task]:
        """Get all tasks of one template assigned to one child"""
        query = db.query(Task).filter(
            and_(
                Task.template_id == template_id,
                Task.child_id == child_id
            )
        )
        if parent_id is not None:
            query = query.filter(Task.parent_id == parent_id)
        return query.order_by(Task.due_date).all()

    @staticmethod
    def search(
        db: Session,
        parent_id: Optional[str] = None,
        child_id: Optional[str] = None,
        template_id: Optional[str] = None,
        status: Optional[TaskStatus] = None,
        difficulty=None,
        due_date_from: Optional[date] = None,
        due_date_to: Optional[date] = None,
        skip: int = 0,
        limit: int = 10
    ) -> Tuple[List[Task], int]:
        """Filtered, paginated task query. Returns (page, total)"""
        query = db.query(Task)
        if parent_id is not None:
            query = query.filter(Task.parent_id == parent_id)
        if child_id is not None:
            query = query.filter(Task.child_id == child_id)
        if template_id is not None:
            query = query.filter(Task.template_id == template_id)
        if status is not None:
            query = query.filter(Task.status == status)
        if difficulty is not None:
            query = query.filter(Task.difficulty == difficulty)
        if due_date_from is not None:
            query = query.filter(Task.due_date >= due_date_from)
        if due_date_to is not None:
            query = query.filter(Task.due_date <= due_date_to)

        total = query.count()
        tasks = query.order_by(Task.due_date, Task.due_time).offset(skip).limit(limit).all()
        return tasks, total

    @staticmethod
    def get_upcoming_due_on(db: Session, today: date) -> List[Task]:
        """Get UPCOMING tasks due on the given date, locked for update"""
        return db.query(Task).filter(
            and_(
                Task.status == TaskStatus.UPCOMING,
                Task.due_date == today
            )
        ).with_for_update().populate_existing().all()

    @staticmethod
    def get_expired_pending(db: Session, today: date, current_time: str) -> List[Task]:
        """
        Get PENDING tasks whose due date/time has passed, locked for update.

        due_time is stored zero-padded HH:MM, so string comparison
        matches clock order.
        """
        return db.query(Task).filter(
            and_(
                Task.status == TaskStatus.PENDING,
                or_(
                    Task.due_date < today,
                    and_(
                        Task.due_date == today,
                        Task.due_time < current_time
                    )
                )
            )
        ).with_for_update().populate_existing().all()

    @staticmethod
    def get_daily_respawn_sources(db: Session, since: date) -> List[Task]:
        """
        Get processed daily recurring tasks due on or after `since`.

        Older sources would only produce next dates that are already past.
        """
        return db.query(Task).filter(
            and_(
                Task.due_date >= since,
                Task.is_recurring == True,
                Task.recurrence == Recurrence.DAILY,
                Task.status.in_(RESPAWN_SOURCE_STATUSES)
            )
        ).all()

    @staticmethod
    def delete(db: Session, task: Task) -> None:
        """Stage a task deletion"""
        db.delete(task)
        db.flush()

    @staticmethod
    def delete_many(db: Session, tasks: Iterable[Task]) -> int:
        """Stage deletion of several tasks"""
        count = 0
        for task in tasks:
            db.delete(task)
            count += 1
        db.flush()
        return count
