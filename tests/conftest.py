"""Shared fixtures.

Environment is set before any app module is imported: settings and the
engine are built at import time.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["CALENDAR_SYNC_URL"] = ""

from datetime import timezone
from typing import Any

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlmodel import Session, SQLModel

from app import models  # noqa: F401
from app.db.session import engine, new_session
from app.events.channel import ChannelHolder
from app.events.types import ChannelEvent, user_room
from app.models.notification import Notification
from app.models.user import User, UserRole
from app.services.notifications import NotificationService
from app.services.reminders import ReminderScheduler


class FakeChannel:
    """Records publishes; optionally checks the row was committed first."""

    def __init__(self, call_log: list[str] | None = None) -> None:
        self.published: list[tuple[str, ChannelEvent, dict[str, Any]]] = []
        self.call_log = call_log if call_log is not None else []

    def is_ready(self) -> bool:
        return True

    async def publish_to_user(
        self, user_id: int, event: ChannelEvent, payload: dict[str, Any]
    ) -> int:
        # A separate session only sees committed rows
        with new_session() as session:
            stored = session.get(Notification, payload["id"]) is not None
        self.call_log.append(f"publish:{payload['id']}:{'stored' if stored else 'missing'}")
        self.published.append((user_room(user_id), event, payload))
        return 1

    def rooms(self) -> list[str]:
        return [room for room, _, _ in self.published]


@pytest.fixture
def db_session():
    """Fresh schema per test on the shared in-memory engine."""
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


def _user(session: Session, username: str, role: UserRole) -> User:
    user = User(username=username, hashed_password="not-a-real-hash", role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def tutor(db_session: Session) -> User:
    return _user(db_session, "tutor", UserRole.TUTOR)


@pytest.fixture
def other_tutor(db_session: Session) -> User:
    return _user(db_session, "tutor2", UserRole.TUTOR)


@pytest.fixture
def students(db_session: Session) -> list[User]:
    return [_user(db_session, f"student{i}", UserRole.STUDENT) for i in range(1, 4)]


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def notification_service(fake_channel: FakeChannel) -> NotificationService:
    return NotificationService(ChannelHolder(fake_channel))


@pytest.fixture
def scheduler() -> AsyncIOScheduler:
    """Never started: jobs stay pending and can be inspected."""
    return AsyncIOScheduler(timezone=timezone.utc)


@pytest.fixture
def reminder_scheduler(
    notification_service: NotificationService,
    scheduler: AsyncIOScheduler,
) -> ReminderScheduler:
    return ReminderScheduler(notification_service, session_factory=new_session, scheduler=scheduler)
