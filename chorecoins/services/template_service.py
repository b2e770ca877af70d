"""
Task template service.
Template CRUD plus reconciliation of a child's task schedule when a
template is edited.
"""
import logging
import re
from datetime import date
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from chorecoins.clock import Clock
from chorecoins.models import Task, TaskTemplate
from chorecoins.schemas import (
    Actor, TaskFieldEdits, TaskTemplateCreate, TaskTemplateUpdate, TemplateReconcile
)
from chorecoins.repositories.task_repository import TaskRepository
from chorecoins.repositories.template_repository import TemplateRepository
from chorecoins.repositories.settings_repository import SettingsRepository
from chorecoins.services.date_service import DateService
from chorecoins.services.notification_service import NotificationService, Notifier
from chorecoins.services.recurrence_service import expand_recurrence
from chorecoins.services.reward_service import calculate_default_reward
from chorecoins.services.task_service import TaskService
from chorecoins.constants import (
    Difficulty, Recurrence, TaskStatus,
    TITLE_MAX_LENGTH, TITLE_MIN_LENGTH
)
from chorecoins.exceptions import (
    ForbiddenException, TemplateNotFoundException, ValidationException
)

logger = logging.getLogger("chorecoins.templates")

_HAS_LETTER = re.compile(r"[A-Za-z]")


def validate_title(title: Optional[str]) -> str:
    """
    Trim and validate a template title.

    Must be 2-100 characters and contain at least one letter, so
    numeric-only and symbol-only titles are rejected.
    """
    value = (title or "").strip()
    if not TITLE_MIN_LENGTH <= len(value) <= TITLE_MAX_LENGTH:
        raise ValidationException(
            "title",
            f"Title must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters"
        )
    if not _HAS_LETTER.search(value):
        raise ValidationException("title", "Title must contain at least one letter")
    return value


class TemplateService:
    """Service for task templates"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None
    ):
        self.db = db
        self.template_repo = TemplateRepository()
        self.task_repo = TaskRepository()
        self.settings_repo = SettingsRepository()
        self.date_service = DateService(clock)
        self.notifications = NotificationService(db, notifier)
        self.tasks = TaskService(db, clock, notifications=self.notifications)

    def create_template(self, actor: Actor, data: TaskTemplateCreate) -> TaskTemplate:
        """Create a template owned by the requesting parent or admin"""
        if not (actor.is_parent or actor.is_admin):
            raise ForbiddenException("Only parents and admins can create templates")

        template = TaskTemplate(
            title=validate_title(data.title),
            description=data.description,
            image=data.image,
        )
        if actor.is_admin:
            template.admin_id = actor.id
        else:
            template.parent_id = actor.id

        try:
            self.template_repo.add(self.db, template)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(template)
        logger.info(f"Template {template.id} '{template.title}' created by {actor.type.value} {actor.id}")
        return template

    def get_template(self, actor: Actor, template_id: str) -> TaskTemplate:
        template = self.template_repo.get_by_id(self.db, template_id)
        if not template:
            raise TemplateNotFoundException(template_id)
        if actor.is_admin or template.is_admin_template:
            return template
        if actor.is_parent and template.parent_id == actor.id:
            return template
        raise ForbiddenException("Template belongs to another parent")

    def list_templates(self, actor: Actor) -> List[TaskTemplate]:
        """Parents see their own plus admin templates, admins see all"""
        if actor.is_admin:
            return self.template_repo.get_all(self.db)
        if actor.is_parent:
            return self.template_repo.get_visible_to_parent(self.db, actor.id)
        raise ForbiddenException("Only parents and admins can browse templates")

    def update_template(self, actor: Actor, template_id: str, data: TaskTemplateUpdate) -> TaskTemplate:
        """Edit template fields only"""
        result = self.reconcile_template(template_id, actor, TemplateReconcile(template=data))
        return result["template"]

    def reconcile_template(self, template_id: str, actor: Actor, request: TemplateReconcile) -> Dict:
        """
        Apply template edits and bring one child's schedule in line with
        a new date list.

        For the child's tasks of this template (assigned by this parent):
        - listed date, task not UPCOMING: left alone
        - listed date, task UPCOMING: field edits applied
        - listed date, no task: new UPCOMING task
        - unlisted date, task UPCOMING: deleted

        Everything commits together.

        Returns:
            Dict with created, updated and deleted counts and the template
        """
        template = self.template_repo.get_by_id(self.db, template_id)
        if not template:
            raise TemplateNotFoundException(template_id)

        result = {"created": 0, "updated": 0, "deleted": 0, "template": template}

        try:
            if request.template is not None:
                self._apply_template_edits(actor, template, request.template)

            if request.child_id is not None:
                counts = self._reconcile_schedule(
                    actor, template, request.child_id,
                    request.recurrence_dates, request.task_fields
                )
                result.update(counts)

            self.db.commit()
        except Exception:
            self.db.rollback()
            self.notifications.discard()
            raise

        self.db.refresh(template)
        self.notifications.dispatch()
        logger.info(
            f"Template {template_id} reconciled: {result['created']} created, "
            f"{result['updated']} updated, {result['deleted']} deleted"
        )
        return result

    def _apply_template_edits(self, actor: Actor, template: TaskTemplate, data: TaskTemplateUpdate) -> None:
        if template.is_admin_template:
            allowed = actor.is_admin
        else:
            allowed = actor.is_parent and template.parent_id == actor.id
        if not allowed:
            raise ForbiddenException("Only the template's creator can edit it")

        update_data = data.model_dump(exclude_unset=True)
        if "title" in update_data:
            update_data["title"] = validate_title(update_data["title"])
        for field, value in update_data.items():
            setattr(template, field, value)
        self.db.flush()

    def _reconcile_schedule(
        self,
        actor: Actor,
        template: TaskTemplate,
        child_id: str,
        raw_dates: List[str],
        edits: TaskFieldEdits
    ) -> Dict[str, int]:
        if not actor.is_parent:
            raise ForbiddenException("Only parents can change a child's schedule")
        if not template.is_admin_template and template.parent_id != actor.id:
            raise ForbiddenException("Template belongs to another parent")

        existing = self.task_repo.get_for_template_and_child(
            self.db, template.id, child_id, parent_id=actor.id
        )

        recurrence = edits.recurrence
        if recurrence is None:
            recurrence = existing[0].recurrence if existing else Recurrence.ONCE

        settings = self.settings_repo.get(self.db)
        dates = expand_recurrence(
            recurrence,
            raw_dates,
            today=self.date_service.today(),
            allow_past_dates=settings.allow_past_dates,
        )
        wanted = set(dates)

        upcoming: Dict[date, Task] = {}
        locked = set()
        for task in existing:
            if task.status == TaskStatus.UPCOMING:
                upcoming[task.due_date] = task
            else:
                locked.add(task.due_date)

        edit_data = edits.model_dump(exclude_unset=True, exclude_none=True)
        if "due_time" in edit_data:
            edit_data["due_time"] = self.date_service.normalize_due_time(edit_data["due_time"])

        created = updated = 0
        for due_date in dates:
            if due_date in locked:
                continue
            task = upcoming.get(due_date)
            if task is not None:
                if self._apply_task_edits(task, edit_data):
                    updated += 1
                continue
            if self._create_upcoming(actor, template, child_id, due_date, recurrence, edit_data):
                created += 1

        stale = [task for due_date, task in upcoming.items() if due_date not in wanted]
        deleted = self.task_repo.delete_many(self.db, stale)

        return {"created": created, "updated": updated, "deleted": deleted}

    def _apply_task_edits(self, task: Task, edit_data: Dict) -> bool:
        if not edit_data:
            return False
        for field, value in edit_data.items():
            if field == "recurrence":
                task.set_recurrence(value)
            else:
                setattr(task, field, value)
        self.db.flush()
        return True

    def _create_upcoming(
        self,
        actor: Actor,
        template: TaskTemplate,
        child_id: str,
        due_date: date,
        recurrence: Recurrence,
        edit_data: Dict
    ) -> Optional[Task]:
        difficulty = edit_data.get("difficulty", Difficulty.EASY)
        reward = edit_data.get("reward_coins")
        if reward is None:
            reward = calculate_default_reward(template.title, difficulty)

        return self.tasks.create_instance(
            template_id=template.id,
            parent_id=actor.id,
            child_id=child_id,
            due_date=due_date,
            due_time=edit_data.get("due_time"),
            recurrence=recurrence,
            reward_coins=reward,
            difficulty=difficulty,
            notification_enabled=edit_data.get("notification_enabled", True),
            duration=edit_data.get("duration"),
            status=TaskStatus.UPCOMING,
        )
