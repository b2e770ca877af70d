"""
Tests for TemplateService.

Tests cover:
1. Template creation and title validation
2. Read and edit authorization
3. Schedule reconciliation against a new date list
"""
import pytest
from datetime import date

from chorecoins.constants import Recurrence, TaskStatus
from chorecoins.exceptions import ForbiddenException, ValidationException
from chorecoins.models import Task, TaskTemplate
from chorecoins.schemas import (
    TaskFieldEdits, TaskTemplateCreate, TaskTemplateUpdate, TemplateReconcile
)
from chorecoins.services.template_service import TemplateService


def tasks_by_date(db_session, template_id):
    rows = db_session.query(Task).filter(Task.template_id == template_id).order_by(Task.due_date).all()
    result = {}
    for task in rows:
        result.setdefault(task.due_date, []).append(task)
    return result


class TestCreateTemplate:
    """Tests for template creation"""

    def test_parent_template(self, db_session, parent):
        template = TemplateService(db_session).create_template(
            parent, TaskTemplateCreate(title="  Clean your room  ")
        )
        assert template.title == "Clean your room"
        assert template.parent_id == parent.id
        assert template.admin_id is None

    def test_admin_template(self, db_session, admin):
        template = TemplateService(db_session).create_template(admin, TaskTemplateCreate(title="Water the plants"))
        assert template.admin_id == admin.id
        assert template.parent_id is None

    def test_child_cannot_create(self, db_session, child):
        with pytest.raises(ForbiddenException):
            TemplateService(db_session).create_template(child, TaskTemplateCreate(title="Play games"))

    @pytest.mark.parametrize("title", ["12345", "!!!", "12 - 34", "   a   "])
    def test_invalid_titles(self, db_session, parent, title):
        """Titles need a letter and 2-100 characters after trimming"""
        with pytest.raises(ValidationException):
            TemplateService(db_session).create_template(parent, TaskTemplateCreate(title=title))
        assert db_session.query(TaskTemplate).count() == 0


class TestTemplateAccess:
    """Tests for who may read and edit templates"""

    def test_parent_lists_own_and_admin_templates(self, db_session, template, admin_template, parent, other_parent):
        other = TaskTemplate(title="Other family chore", parent_id=other_parent.id)
        db_session.add(other)
        db_session.commit()

        titles = {t.title for t in TemplateService(db_session).list_templates(parent)}
        assert titles == {"Washing the dishes", "Making the bed"}

    def test_admin_lists_all(self, db_session, template, admin_template, admin):
        assert len(TemplateService(db_session).list_templates(admin)) == 2

    def test_parent_can_read_admin_template(self, db_session, admin_template, parent):
        assert TemplateService(db_session).get_template(parent, admin_template.id).id == admin_template.id

    def test_parent_cannot_read_other_parents_template(self, db_session, template, other_parent):
        with pytest.raises(ForbiddenException):
            TemplateService(db_session).get_template(other_parent, template.id)

    def test_creator_edits_fields(self, db_session, template, parent):
        updated = TemplateService(db_session).update_template(
            parent, template.id, TaskTemplateUpdate(description="Plates and cups")
        )
        assert updated.description == "Plates and cups"
        assert updated.title == "Washing the dishes"

    def test_parent_cannot_edit_admin_template(self, db_session, admin_template, parent):
        with pytest.raises(ForbiddenException):
            TemplateService(db_session).update_template(
                parent, admin_template.id, TaskTemplateUpdate(title="Renamed")
            )

    def test_admin_cannot_edit_parent_template(self, db_session, template, admin):
        with pytest.raises(ForbiddenException):
            TemplateService(db_session).update_template(admin, template.id, TaskTemplateUpdate(title="Renamed"))

    def test_other_parent_cannot_edit(self, db_session, template, other_parent):
        with pytest.raises(ForbiddenException):
            TemplateService(db_session).update_template(
                other_parent, template.id, TaskTemplateUpdate(title="Renamed")
            )


class TestReconcileSchedule:
    """Tests for reconciling a child's tasks with a new date list"""

    def test_upcoming_deleted_progressed_kept_missing_created(
        self, db_session, clock, template, make_task, parent, child, default_settings
    ):
        """[01-05 UPCOMING, 02-05 COMPLETED] reconciled with [02-05, 03-05]"""
        make_task(due_date=date(2025, 5, 1), status=TaskStatus.UPCOMING, recurrence=Recurrence.WEEKLY)
        completed = make_task(due_date=date(2025, 5, 2), status=TaskStatus.COMPLETED, recurrence=Recurrence.WEEKLY)

        result = TemplateService(db_session, clock).reconcile_template(
            template.id, parent,
            TemplateReconcile(child_id=child.id, recurrence_dates=["02-05-2025", "03-05-2025"])
        )

        assert (result["created"], result["updated"], result["deleted"]) == (1, 0, 1)
        tasks = tasks_by_date(db_session, template.id)
        assert date(2025, 5, 1) not in tasks
        assert [t.id for t in tasks[date(2025, 5, 2)]] == [completed.id]
        assert tasks[date(2025, 5, 2)][0].status == TaskStatus.COMPLETED
        assert tasks[date(2025, 5, 3)][0].status == TaskStatus.UPCOMING

    def test_edits_applied_to_upcoming_only(
        self, db_session, clock, template, make_task, parent, child, default_settings
    ):
        upcoming = make_task(due_date=date(2025, 5, 4), status=TaskStatus.UPCOMING, recurrence=Recurrence.WEEKLY)
        pending = make_task(due_date=date(2025, 5, 2), status=TaskStatus.PENDING, recurrence=Recurrence.WEEKLY)

        result = TemplateService(db_session, clock).reconcile_template(
            template.id, parent,
            TemplateReconcile(
                child_id=child.id,
                recurrence_dates=["02-05-2025", "04-05-2025"],
                task_fields=TaskFieldEdits(due_time="7:30", reward_coins=12, duration=15),
            )
        )

        assert result["updated"] == 1
        db_session.refresh(upcoming)
        db_session.refresh(pending)
        assert upcoming.due_time == "07:30"
        assert upcoming.reward_coins == 12
        assert upcoming.duration == 15
        assert pending.due_time == "18:00"
        assert pending.reward_coins == 10

    def test_new_tasks_use_edited_fields(self, db_session, clock, template, parent, child, default_settings):
        TemplateService(db_session, clock).reconcile_template(
            template.id, parent,
            TemplateReconcile(
                child_id=child.id,
                recurrence_dates=["05-05-2025", "06-05-2025"],
                task_fields=TaskFieldEdits(recurrence=Recurrence.WEEKLY, due_time="16:00"),
            )
        )

        tasks = db_session.query(Task).all()
        assert len(tasks) == 2
        assert all(t.due_time == "16:00" and t.is_recurring for t in tasks)
        assert all(t.reward_coins == 10 for t in tasks)

    def test_final_upcoming_set_matches_list(
        self, db_session, clock, template, make_task, parent, child, default_settings
    ):
        for day in (5, 6, 7):
            make_task(due_date=date(2025, 5, day), status=TaskStatus.UPCOMING, recurrence=Recurrence.WEEKLY)

        TemplateService(db_session, clock).reconcile_template(
            template.id, parent,
            TemplateReconcile(child_id=child.id, recurrence_dates=["07-05-2025", "08-05-2025"])
        )

        upcoming = db_session.query(Task).filter(Task.status == TaskStatus.UPCOMING).order_by(Task.due_date).all()
        assert [t.due_date for t in upcoming] == [date(2025, 5, 7), date(2025, 5, 8)]

    def test_other_child_untouched(
        self, db_session, clock, template, make_task, parent, child, other_child, default_settings
    ):
        other = make_task(due_date=date(2025, 5, 5), status=TaskStatus.UPCOMING, child_id=other_child.id)

        TemplateService(db_session, clock).reconcile_template(
            template.id, parent,
            TemplateReconcile(child_id=child.id, recurrence_dates=["06-05-2025"])
        )

        assert db_session.query(Task).filter(Task.id == other.id).count() == 1

    def test_invalid_dates_roll_back_everything(
        self, db_session, clock, template, make_task, parent, child, default_settings
    ):
        """A bad date list leaves template fields and tasks unchanged"""
        make_task(due_date=date(2025, 5, 5), status=TaskStatus.UPCOMING, recurrence=Recurrence.ONCE)

        with pytest.raises(ValidationException):
            TemplateService(db_session, clock).reconcile_template(
                template.id, parent,
                TemplateReconcile(
                    template=TaskTemplateUpdate(title="Dishes and pans"),
                    child_id=child.id,
                    recurrence_dates=["06-05-2025", "07-05-2025"],  # two dates for ONCE
                )
            )

        db_session.refresh(template)
        assert template.title == "Washing the dishes"
        assert db_session.query(Task).count() == 1

    def test_child_cannot_reconcile(self, db_session, clock, template, child, default_settings):
        with pytest.raises(ForbiddenException):
            TemplateService(db_session, clock).reconcile_template(
                template.id, child,
                TemplateReconcile(child_id=child.id, recurrence_dates=["06-05-2025"])
            )

    def test_parent_may_schedule_admin_template(self, db_session, clock, admin_template, parent, child, default_settings):
        result = TemplateService(db_session, clock).reconcile_template(
            admin_template.id, parent,
            TemplateReconcile(child_id=child.id, recurrence_dates=["06-05-2025"])
        )
        assert result["created"] == 1

    def test_child_id_requires_dates(self):
        with pytest.raises(ValueError):
            TemplateReconcile(child_id="child-1")
