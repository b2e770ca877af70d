from pydantic import AfterValidator, BaseModel, Field, model_validator
from datetime import datetime, date
from typing import Annotated, List, Optional

from chorecoins.constants import (
    ActorType, Difficulty, Recurrence, TaskStatus,
    ALLOWED_DURATIONS, DEFAULT_DUE_TIME, DEFAULT_PAGE_LIMIT, DUE_TIME_PATTERN,
    MAX_PAGE_LIMIT, TITLE_MAX_LENGTH, TITLE_MIN_LENGTH,
    TRANSACTION_CREDIT, TRANSACTION_SPENDING
)


def _check_duration(value: Optional[int]) -> Optional[int]:
    if value is not None and value not in ALLOWED_DURATIONS:
        allowed = ", ".join(str(d) for d in ALLOWED_DURATIONS)
        raise ValueError(f"Duration must be one of the following values: {allowed}")
    return value


Duration = Annotated[Optional[int], AfterValidator(_check_duration)]


# Actor making a request
class Actor(BaseModel):
    type: ActorType
    id: Optional[str] = None

    @classmethod
    def system(cls) -> "Actor":
        return cls(type=ActorType.SYSTEM)

    @property
    def is_parent(self) -> bool:
        return self.type == ActorType.PARENT

    @property
    def is_child(self) -> bool:
        return self.type == ActorType.CHILD

    @property
    def is_admin(self) -> bool:
        return self.type == ActorType.ADMIN


# Task template schemas
class TaskTemplateBase(BaseModel):
    title: str = Field(..., min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    image: Optional[str] = None


class TaskTemplateCreate(TaskTemplateBase):
    pass


class TaskTemplateUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    image: Optional[str] = None


class TaskTemplateResponse(TaskTemplateBase):
    id: str
    parent_id: Optional[str] = None
    admin_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# Task schedule (materialization input)
class TaskScheduleCreate(BaseModel):
    template_id: str
    child_id: str
    due_time: str = Field(default=DEFAULT_DUE_TIME, pattern=DUE_TIME_PATTERN)
    recurrence: Recurrence = Recurrence.ONCE
    recurrence_dates: List[str] = Field(..., min_length=1)  # DD-MM-YYYY
    reward_coins: Optional[int] = Field(None, ge=0)
    difficulty: Difficulty = Difficulty.EASY
    notification_enabled: bool = True
    description: Optional[str] = None
    duration: Duration = None


class TaskFieldEdits(BaseModel):
    """Per-task edits applied while reconciling a template's schedule"""
    due_time: Optional[str] = Field(None, pattern=DUE_TIME_PATTERN)
    duration: Duration = None
    recurrence: Optional[Recurrence] = None
    difficulty: Optional[Difficulty] = None
    reward_coins: Optional[int] = Field(None, ge=0)
    notification_enabled: Optional[bool] = None


class TemplateReconcile(BaseModel):
    """Template edit request: template fields and/or a child's schedule"""
    template: Optional[TaskTemplateUpdate] = None
    child_id: Optional[str] = None
    recurrence_dates: Optional[List[str]] = None
    task_fields: TaskFieldEdits = Field(default_factory=TaskFieldEdits)

    @model_validator(mode="after")
    def _child_and_dates_together(self):
        if (self.child_id is None) != (self.recurrence_dates is None):
            raise ValueError("child_id and recurrence_dates must be supplied together")
        return self


class TemplateReconcileResult(BaseModel):
    created: int = 0
    updated: int = 0
    deleted: int = 0
    template: Optional[TaskTemplateResponse] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus
    reason: Optional[str] = None


class TaskQuery(BaseModel):
    status: Optional[TaskStatus] = None
    difficulty: Optional[Difficulty] = None
    due_date_from: Optional[date] = None
    due_date_to: Optional[date] = None
    child_id: Optional[str] = None
    template_id: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT)

    @model_validator(mode="after")
    def _date_range(self):
        if self.due_date_from and self.due_date_to and self.due_date_from > self.due_date_to:
            raise ValueError("due_date_from cannot be later than due_date_to")
        return self


class TaskResponse(BaseModel):
    id: str
    template_id: str
    parent_id: str
    child_id: str
    due_date: date
    due_time: str
    description: Optional[str] = None
    duration: Optional[int] = None
    recurrence: Recurrence
    is_recurring: bool
    status: TaskStatus
    reward_coins: int
    difficulty: Difficulty
    notification_enabled: bool
    completed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TaskListResponse(BaseModel):
    items: List[TaskResponse]
    page: int
    limit: int
    total: int


class MaterializeResponse(BaseModel):
    created: int
    tasks: List[TaskResponse]


# Ledger schemas
class TransactionCreate(BaseModel):
    amount: int = Field(..., gt=0)
    type: str = Field(..., pattern=f"^({TRANSACTION_CREDIT}|{TRANSACTION_SPENDING})$")
    description: Optional[str] = Field(None, max_length=255)


class TransactionResponse(BaseModel):
    id: str
    child_id: str
    task_id: Optional[str] = None
    amount: int
    type: str
    description: Optional[str] = None
    total_earned: int
    coin_balance: int
    entry_number: int
    created_at: datetime

    class Config:
        from_attributes = True


class CoinStatsResponse(BaseModel):
    child_id: str
    total_earned: int
    coin_balance: int


# Notification schemas
class NotificationResponse(BaseModel):
    id: str
    type: str
    message: str
    recipient_type: str
    recipient_id: str
    related_item_type: Optional[str] = None
    related_item_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


# Reconciliation
class ReconciliationResult(BaseModel):
    promoted: int = 0
    demoted: int = 0
    respawned: int = 0


# Settings schemas
class SettingsBase(BaseModel):
    reconciliation_enabled: bool = Field(default=True)
    reconciliation_time: str = Field(default="00:01", pattern=r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")
    allow_past_dates: bool = Field(default=True)


class SettingsUpdate(SettingsBase):
    pass


class SettingsResponse(SettingsBase):
    id: int
    updated_at: datetime
    last_reconciliation_date: Optional[date] = None
    effective_date: Optional[date] = None  # Today in the configured timezone

    class Config:
        from_attributes = True
