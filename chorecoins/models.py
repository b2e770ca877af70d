import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, Enum, ForeignKey,
    Integer, String, Text, UniqueConstraint
)

from chorecoins.constants import (
    DEFAULT_DUE_TIME, DEFAULT_RECONCILIATION_TIME,
    Difficulty, Recurrence, TaskStatus
)
from chorecoins.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class TaskTemplate(Base):
    __tablename__ = "task_templates"
    __table_args__ = (
        CheckConstraint(
            "(parent_id IS NULL) <> (admin_id IS NULL)",
            name="ck_task_templates_single_creator"
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image = Column(String, nullable=True)  # URL or path

    # Exactly one creator
    parent_id = Column(String(36), nullable=True, index=True)
    admin_id = Column(String(36), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    @property
    def is_admin_template(self) -> bool:
        return self.admin_id is not None


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint(
            "template_id", "child_id", "due_date",
            name="uq_tasks_template_child_date"
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    template_id = Column(String(36), ForeignKey("task_templates.id"), nullable=False, index=True)
    parent_id = Column(String(36), nullable=False, index=True)
    child_id = Column(String(36), nullable=False, index=True)

    due_date = Column(Date, nullable=False, index=True)
    due_time = Column(String(5), nullable=False, default=DEFAULT_DUE_TIME)  # HH:MM, zero-padded
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=True)  # minutes

    recurrence = Column(Enum(Recurrence, native_enum=False, length=16), nullable=False, default=Recurrence.ONCE)
    is_recurring = Column(Boolean, nullable=False, default=False)
    status = Column(Enum(TaskStatus, native_enum=False, length=16), nullable=False, default=TaskStatus.UPCOMING, index=True)

    reward_coins = Column(Integer, nullable=False, default=0)
    difficulty = Column(Enum(Difficulty, native_enum=False, length=16), nullable=False, default=Difficulty.EASY)
    notification_enabled = Column(Boolean, nullable=False, default=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def set_recurrence(self, recurrence: Recurrence) -> None:
        """Set recurrence and keep the derived is_recurring flag in sync"""
        self.recurrence = Recurrence(recurrence)
        self.is_recurring = self.recurrence != Recurrence.ONCE


class Streak(Base):
    __tablename__ = "streaks"

    id = Column(String(36), primary_key=True, default=_uuid)
    child_id = Column(String(36), nullable=False, unique=True, index=True)
    streak_count = Column(Integer, nullable=False, default=0)
    last_task_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class Transaction(Base):
    """Append-only coin ledger entry"""
    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("child_id", "entry_number", name="uq_transactions_child_entry"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    child_id = Column(String(36), nullable=False, index=True)
    task_id = Column(String(36), nullable=True)
    amount = Column(Integer, nullable=False)
    type = Column(String(32), nullable=False)
    description = Column(String, nullable=True)

    # Running totals after this entry
    total_earned = Column(Integer, nullable=False, default=0)
    coin_balance = Column(Integer, nullable=False, default=0)

    # Per-child sequence; unique so two appends cannot share a predecessor
    entry_number = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.now)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    type = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    recipient_type = Column(String(16), nullable=False)  # parent, child
    recipient_id = Column(String(36), nullable=False, index=True)
    related_item_type = Column(String(16), nullable=True)  # task, achievement
    related_item_id = Column(String(36), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.now)


class Settings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)

    # Daily reconciliation
    reconciliation_enabled = Column(Boolean, default=True)
    reconciliation_time = Column(String(5), default=DEFAULT_RECONCILIATION_TIME)  # HH:MM local
    last_reconciliation_date = Column(Date, nullable=True)

    # Recurrence policy: accept dates before today when scheduling
    allow_past_dates = Column(Boolean, default=True)

    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
