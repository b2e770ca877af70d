"""
Shared fixtures: in-memory database, pinned clock, actors and task helpers.
"""
import os
import tempfile

# Configure before chorecoins modules read the environment
os.environ.setdefault("CHORES_DATABASE_URL", "sqlite://")
os.environ.setdefault("CHORES_LOG_DIR", tempfile.gettempdir())
os.environ.setdefault("CHORES_API_KEY", "test-key")

import pytest
from datetime import date, datetime, timedelta
from sqlalchemy.orm import sessionmaker

from chorecoins.clock import FixedClock
from chorecoins.constants import ActorType, Difficulty, Recurrence, TaskStatus
from chorecoins.database import Base, create_db_engine
from chorecoins.models import Task, TaskTemplate
from chorecoins.repositories.settings_repository import SettingsRepository
from chorecoins.schemas import Actor
from chorecoins.services.notification_service import Notifier


# 2 May 2025, 10:00 local time
NOW = datetime(2025, 5, 2, 10, 0)


class RecordingNotifier(Notifier):
    """Notifier that keeps what it was handed"""

    def __init__(self):
        self.sent = []

    def enqueue(self, notification):
        self.sent.append((notification.type, notification.recipient_id, notification.message))


@pytest.fixture
def db_session():
    """Fresh in-memory database per test"""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def today(clock) -> date:
    return clock.today()


@pytest.fixture
def yesterday(today) -> date:
    return today - timedelta(days=1)


@pytest.fixture
def tomorrow(today) -> date:
    return today + timedelta(days=1)


@pytest.fixture
def default_settings(db_session):
    settings = SettingsRepository.get(db_session)
    db_session.commit()
    return settings


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def parent():
    return Actor(type=ActorType.PARENT, id="parent-1")


@pytest.fixture
def other_parent():
    return Actor(type=ActorType.PARENT, id="parent-2")


@pytest.fixture
def child():
    return Actor(type=ActorType.CHILD, id="child-1")


@pytest.fixture
def other_child():
    return Actor(type=ActorType.CHILD, id="child-2")


@pytest.fixture
def admin():
    return Actor(type=ActorType.ADMIN, id="admin-1")


@pytest.fixture
def template(db_session, parent):
    template = TaskTemplate(title="Washing the dishes", parent_id=parent.id)
    db_session.add(template)
    db_session.commit()
    return template


@pytest.fixture
def admin_template(db_session, admin):
    template = TaskTemplate(title="Making the bed", admin_id=admin.id)
    db_session.add(template)
    db_session.commit()
    return template


@pytest.fixture
def make_task(db_session, template, parent, child, today):
    """Factory for tasks stored directly, bypassing the materializer"""

    def _make_task(
        due_date: date = None,
        status: TaskStatus = TaskStatus.PENDING,
        due_time: str = "18:00",
        recurrence: Recurrence = Recurrence.ONCE,
        reward_coins: int = 10,
        child_id: str = None,
        template_id: str = None,
        notification_enabled: bool = True,
    ) -> Task:
        task = Task(
            template_id=template_id or template.id,
            parent_id=parent.id,
            child_id=child_id or child.id,
            due_date=due_date or today,
            due_time=due_time,
            status=status,
            reward_coins=reward_coins,
            difficulty=Difficulty.EASY,
            notification_enabled=notification_enabled,
        )
        task.set_recurrence(recurrence)
        db_session.add(task)
        db_session.commit()
        return task

    return _make_task
