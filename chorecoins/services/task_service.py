"""
Task management service.
Handles task materialization from templates, task queries and deletion.
"""
import logging
from datetime import date
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chorecoins.clock import Clock
from chorecoins.models import Task, TaskTemplate
from chorecoins.schemas import Actor, TaskQuery, TaskScheduleCreate
from chorecoins.repositories.task_repository import TaskRepository
from chorecoins.repositories.template_repository import TemplateRepository
from chorecoins.repositories.settings_repository import SettingsRepository
from chorecoins.services.date_service import DateService
from chorecoins.services.notification_service import NotificationService, Notifier
from chorecoins.services.recurrence_service import expand_recurrence
from chorecoins.services.reward_service import calculate_default_reward
from chorecoins.constants import (
    Difficulty, Recurrence, TaskStatus, TERMINAL_STATUSES,
    NOTIFICATION_TASK_DELETION, NOTIFICATION_TASK_REMINDER
)
from chorecoins.exceptions import (
    ConflictException, ForbiddenException, InvalidTransitionException,
    NoOpException, TaskNotFoundException, TemplateNotFoundException
)

logger = logging.getLogger("chorecoins.tasks")


class TaskService:
    """Service for task materialization and queries"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notifications: Optional[NotificationService] = None,
        notifier: Optional[Notifier] = None
    ):
        self.db = db
        self.task_repo = TaskRepository()
        self.template_repo = TemplateRepository()
        self.settings_repo = SettingsRepository()
        self.date_service = DateService(clock)
        self.notifications = notifications or NotificationService(db, notifier)

    def initial_status(self, due_date: date) -> TaskStatus:
        """PENDING for today's tasks, UPCOMING for any other date"""
        return TaskStatus.PENDING if self.date_service.is_today(due_date) else TaskStatus.UPCOMING

    def get_usable_template(self, actor: Actor, template_id: str) -> TaskTemplate:
        """Template a parent may assign: their own or an admin template"""
        template = self.template_repo.get_by_id(self.db, template_id)
        if not template:
            raise TemplateNotFoundException(template_id)
        if not template.is_admin_template and template.parent_id != actor.id:
            raise ForbiddenException("Template belongs to another parent")
        return template

    def materialize_tasks(self, actor: Actor, schedule: TaskScheduleCreate) -> List[Task]:
        """
        Create the task instances for a template, child and date list.

        Dates that already have a task for (template, child) are skipped.
        All created rows and their notifications commit together.

        Args:
            actor: Requesting parent
            schedule: Template, child, recurrence and per-task fields

        Returns:
            Newly created tasks, in date order

        Raises:
            ForbiddenException: Actor is not a parent or may not use the template
            ValidationException: Bad date list or due time
            NoOpException: Every date already had a task
        """
        if not actor.is_parent:
            raise ForbiddenException("Only parents can assign tasks")

        template = self.get_usable_template(actor, schedule.template_id)
        settings = self.settings_repo.get(self.db)
        dates = expand_recurrence(
            schedule.recurrence,
            schedule.recurrence_dates,
            today=self.date_service.today(),
            allow_past_dates=settings.allow_past_dates,
        )
        due_time = self.date_service.normalize_due_time(schedule.due_time)
        reward = schedule.reward_coins
        if reward is None:
            reward = calculate_default_reward(template.title, schedule.difficulty)

        created: List[Task] = []
        try:
            for due_date in dates:
                task = self.create_instance(
                    template_id=template.id,
                    parent_id=actor.id,
                    child_id=schedule.child_id,
                    due_date=due_date,
                    due_time=due_time,
                    recurrence=schedule.recurrence,
                    reward_coins=reward,
                    difficulty=schedule.difficulty,
                    notification_enabled=schedule.notification_enabled,
                    description=schedule.description,
                    duration=schedule.duration,
                )
                if task is None:
                    continue
                created.append(task)
                if task.notification_enabled:
                    self.notifications.notify_child(
                        task, NOTIFICATION_TASK_REMINDER, f"New task assigned: {template.title}"
                    )

            if not created:
                raise NoOpException()
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.notifications.discard()
            raise

        self.notifications.dispatch()
        logger.info(
            f"Materialized {len(created)} of {len(dates)} task(s) for template "
            f"{template.id}, child {schedule.child_id}"
        )
        return created

    def create_instance(
        self,
        template_id: str,
        parent_id: str,
        child_id: str,
        due_date: date,
        due_time: str,
        recurrence: Recurrence = Recurrence.ONCE,
        reward_coins: int = 0,
        difficulty: Difficulty = Difficulty.EASY,
        notification_enabled: bool = True,
        description: Optional[str] = None,
        duration: Optional[int] = None,
        status: Optional[TaskStatus] = None
    ) -> Optional[Task]:
        """
        Stage one task for (template, child, date) unless it already exists.

        Does not commit. Returns None when the date is already taken,
        including when a concurrent writer wins the race.
        """
        if self.task_repo.get_for_date(self.db, template_id, child_id, due_date):
            return None

        task = Task(
            template_id=template_id,
            parent_id=parent_id,
            child_id=child_id,
            due_date=due_date,
            due_time=self.date_service.normalize_due_time(due_time),
            description=description,
            duration=duration,
            reward_coins=reward_coins,
            difficulty=Difficulty(difficulty),
            notification_enabled=notification_enabled,
            status=status or self.initial_status(due_date),
        )
        task.set_recurrence(recurrence)

        try:
            return self._insert_unique(task)
        except ConflictException as e:
            logger.info(f"Skipped duplicate task: {e.message}")
            return None

    def _insert_unique(self, task: Task) -> Task:
        """Insert inside a SAVEPOINT so a unique-constraint loss leaves the outer transaction usable"""
        try:
            with self.db.begin_nested():
                self.db.add(task)
        except IntegrityError:
            raise ConflictException(task.template_id, task.child_id, task.due_date)
        return task

    def get_task(self, actor: Actor, task_id: str) -> Task:
        """Get a task the actor is allowed to see"""
        task = self.task_repo.get_by_id(self.db, task_id)
        if not task:
            raise TaskNotFoundException(task_id)
        self._check_can_view(actor, task)
        return task

    def _check_can_view(self, actor: Actor, task: Task) -> None:
        if actor.is_admin:
            return
        if actor.is_parent and task.parent_id == actor.id:
            return
        if actor.is_child and task.child_id == actor.id:
            return
        raise ForbiddenException("Task is not accessible to this user")

    def list_tasks(self, actor: Actor, query: TaskQuery) -> dict:
        """
        Filtered, paginated task list scoped to the actor.

        Parents see tasks they assigned, children their own tasks,
        admins everything.
        """
        parent_id = None
        child_id = query.child_id
        if actor.is_parent:
            parent_id = actor.id
        elif actor.is_child:
            if child_id is not None and child_id != actor.id:
                raise ForbiddenException("Children can only list their own tasks")
            child_id = actor.id
        elif not actor.is_admin:
            raise ForbiddenException("Not allowed to list tasks")

        tasks, total = self.task_repo.search(
            self.db,
            parent_id=parent_id,
            child_id=child_id,
            template_id=query.template_id,
            status=query.status,
            difficulty=query.difficulty,
            due_date_from=query.due_date_from,
            due_date_to=query.due_date_to,
            skip=(query.page - 1) * query.limit,
            limit=query.limit,
        )
        return {"items": tasks, "page": query.page, "limit": query.limit, "total": total}

    def delete_task(self, actor: Actor, task_id: str) -> None:
        """
        Delete a task assigned by this parent.

        Approved and rejected tasks are history and cannot be deleted.
        """
        task = self.task_repo.get_by_id(self.db, task_id)
        if not task:
            raise TaskNotFoundException(task_id)
        if not actor.is_parent or task.parent_id != actor.id:
            raise ForbiddenException("Only the assigning parent can delete a task")
        if task.status in TERMINAL_STATUSES:
            raise InvalidTransitionException(
                task.status.value, "DELETED",
                f"Cannot delete a task that is {task.status.value}"
            )

        try:
            if task.notification_enabled:
                template = self.template_repo.get_by_id(self.db, task.template_id)
                title = template.title if template else "a task"
                self.notifications.notify_child(
                    task, NOTIFICATION_TASK_DELETION, f"Task removed: {title}"
                )
            self.task_repo.delete(self.db, task)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.notifications.discard()
            raise

        self.notifications.dispatch()
        logger.info(f"Task {task_id} deleted by parent {actor.id}")
