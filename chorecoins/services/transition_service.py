"""
Task status state machine.

Every status change goes through TRANSITIONS. A change is legal only if
(from, to) is listed and the actor type matches; its side effects commit
together with the status change or not at all.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session

from chorecoins.clock import Clock
from chorecoins.models import Task
from chorecoins.schemas import Actor
from chorecoins.repositories.task_repository import TaskRepository
from chorecoins.repositories.template_repository import TemplateRepository
from chorecoins.services.date_service import DateService
from chorecoins.services.ledger_service import LedgerService
from chorecoins.services.notification_service import NotificationService, Notifier
from chorecoins.services.streak_service import StreakService
from chorecoins.services.task_service import TaskService
from chorecoins.constants import (
    ActorType, Recurrence, TaskStatus,
    NOTIFICATION_TASK_APPROVAL, NOTIFICATION_TASK_COMPLETION,
    NOTIFICATION_TASK_REJECTION, NOTIFICATION_TASK_REMINDER,
    TRANSACTION_TASK_REWARD
)
from chorecoins.exceptions import (
    ForbiddenException, InvalidTransitionException, TaskNotFoundException,
    ValidationException
)

logger = logging.getLogger("chorecoins.transitions")


# (from, to) -> actor allowed to make the change
TRANSITIONS = {
    (TaskStatus.PENDING, TaskStatus.COMPLETED): ActorType.CHILD,
    (TaskStatus.OVERDUE, TaskStatus.COMPLETED): ActorType.CHILD,
    (TaskStatus.COMPLETED, TaskStatus.APPROVED): ActorType.PARENT,
    (TaskStatus.COMPLETED, TaskStatus.REJECTED): ActorType.PARENT,
    (TaskStatus.UPCOMING, TaskStatus.PENDING): ActorType.SYSTEM,
    (TaskStatus.PENDING, TaskStatus.OVERDUE): ActorType.SYSTEM,
}

# Target status -> the only actor type that may request it
TARGET_ACTORS = {to: actor for (_, to), actor in TRANSITIONS.items()}


def is_legal(current: TaskStatus, target: TaskStatus) -> bool:
    return (TaskStatus(current), TaskStatus(target)) in TRANSITIONS


class TransitionService:
    """Service applying status transitions and their side effects"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None
    ):
        self.db = db
        self.task_repo = TaskRepository()
        self.template_repo = TemplateRepository()
        self.date_service = DateService(clock)
        self.notifications = NotificationService(db, notifier)
        self.ledger = LedgerService(db)
        self.streaks = StreakService(db, self.ledger, self.notifications)
        self.tasks = TaskService(db, clock, notifications=self.notifications)

    def transition(
        self,
        task_id: str,
        new_status,
        actor: Actor,
        reason: Optional[str] = None
    ) -> Task:
        """
        Move a task to a new status.

        Args:
            task_id: Task to change
            new_status: Target status
            actor: Who is asking (child, parent or system)
            reason: Rejection reason, required for REJECTED

        Returns:
            Updated task

        Raises:
            ValidationException: Unknown status or missing rejection reason
            ForbiddenException: Actor may not request this status or does not own the task
            InvalidTransitionException: Current status does not allow the change
        """
        try:
            target = TaskStatus(new_status)
        except ValueError:
            raise ValidationException("status", f"Unknown status: {new_status}")

        try:
            # Locked until commit or rollback; a concurrent transition waits and re-reads
            task = self.task_repo.get_by_id(self.db, task_id, for_update=True)
            if not task:
                raise TaskNotFoundException(task_id)

            self._authorize(task, target, actor)

            current = task.status
            if not is_legal(current, target):
                raise InvalidTransitionException(current.value, target.value)

            if target == TaskStatus.REJECTED:
                reason = (reason or "").strip()
                if not reason:
                    raise ValidationException("reason", "A reason is required to reject a task")

            self._apply(task, target, reason)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.notifications.discard()
            raise

        self.db.refresh(task)
        self.notifications.dispatch()
        logger.info(f"Task {task.id}: {current.value} -> {target.value} by {actor.type.value}")
        return task

    def _authorize(self, task: Task, target: TaskStatus, actor: Actor) -> None:
        required = TARGET_ACTORS.get(target)
        if required is None or actor.type != required:
            who = required.value if required else "nobody"
            raise ForbiddenException(
                f"Only {who} can move a task to {target.value}"
            )
        if actor.type == ActorType.CHILD and task.child_id != actor.id:
            raise ForbiddenException("Task is assigned to another child")
        if actor.type == ActorType.PARENT and task.parent_id != actor.id:
            raise ForbiddenException("Task was assigned by another parent")

    def _apply(self, task: Task, target: TaskStatus, reason: Optional[str]) -> None:
        now = self.date_service.now()
        title = self._title(task)
        task.status = target

        if target == TaskStatus.COMPLETED:
            task.completed_at = now
            self.notifications.notify_parent(
                task, NOTIFICATION_TASK_COMPLETION,
                f"Task '{title}' marked as completed and waiting for approval"
            )
        elif target == TaskStatus.APPROVED:
            task.approved_at = now
            self._on_approved(task, title)
        elif target == TaskStatus.REJECTED:
            task.rejected_at = now
            task.rejection_reason = reason
            self.streaks.reset(task.child_id)
            self.notifications.notify_child(
                task, NOTIFICATION_TASK_REJECTION,
                f"Your task '{title}' was not approved. Reason: {reason}"
            )
        elif target == TaskStatus.PENDING:
            if task.notification_enabled:
                self.notifications.notify_child(
                    task, NOTIFICATION_TASK_REMINDER, f"Task due today: {title}"
                )

        self.db.flush()

    def _on_approved(self, task: Task, title: str) -> None:
        today = self.date_service.today()

        if task.reward_coins:
            self.ledger.record(
                child_id=task.child_id,
                amount=task.reward_coins,
                type=TRANSACTION_TASK_REWARD,
                description=f"Reward for completing task: {title}",
                task_id=task.id,
            )

        self.streaks.record_approval(task.child_id, today)

        if task.recurrence == Recurrence.DAILY:
            self._materialize_next_day(task, title)

        self.notifications.notify_child(
            task, NOTIFICATION_TASK_APPROVAL,
            f"Your task '{title}' was approved! You earned {task.reward_coins} coins."
        )

    def _materialize_next_day(self, task: Task, title: str) -> Optional[Task]:
        """Stage tomorrow's instance of a DAILY task unless that date has already passed"""
        next_date = self.date_service.next_day(task.due_date)
        if next_date < self.date_service.today():
            logger.info(f"Task {task.id}: next daily date {next_date} is in the past, not created")
            return None

        next_task = self.tasks.create_instance(
            template_id=task.template_id,
            parent_id=task.parent_id,
            child_id=task.child_id,
            due_date=next_date,
            due_time=task.due_time,
            recurrence=task.recurrence,
            reward_coins=task.reward_coins,
            difficulty=task.difficulty,
            notification_enabled=task.notification_enabled,
            description=task.description,
            duration=task.duration,
        )
        if next_task is not None and next_task.notification_enabled:
            self.notifications.notify_child(
                next_task, NOTIFICATION_TASK_REMINDER,
                f"New recurring task assigned: {title}"
            )
        return next_task

    def _title(self, task: Task) -> str:
        template = self.template_repo.get_by_id(self.db, task.template_id)
        return template.title if template else "task"
