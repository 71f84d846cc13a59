"""Tests for the notification fanout service.

Tests cover:
- notify: persist then publish, channel not ready, persistence failure
- notify_bulk: dedupe, partial failure
- Read side: ordering, stats, ownership checks, mark read, delete
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.events.channel import ChannelHolder
from app.events.types import ChannelEvent
from app.models.notification import Notification
from app.services.errors import ChannelNotReadyError, ForbiddenError, NotFoundError, PersistenceError
from app.services.notifications import NotificationService


def count_rows(session: Session) -> int:
    return len(session.exec(select(Notification)).all())


# ============================================================================
# notify
# ============================================================================

class TestNotify:

    @pytest.mark.asyncio
    async def test_notify_persists_and_publishes(self, db_session, notification_service, fake_channel):
        """notify(7, "hi", "info") on an empty store."""
        notification = await notification_service.notify(db_session, 7, "hi", "info")

        assert notification.id is not None
        assert notification.is_read is False
        assert notification.user_id == 7
        assert len(fake_channel.published) == 1
        room, event, payload = fake_channel.published[0]
        assert room == "user_7"
        assert event == ChannelEvent.NOTIFICATION
        assert payload["id"] == notification.id
        assert payload["message"] == "hi"
        assert payload["type"] == "info"

    @pytest.mark.asyncio
    async def test_publish_happens_after_commit(self, db_session, fake_channel, notification_service):
        await notification_service.notify(db_session, 1, "first", "info")
        await notification_service.notify(db_session, 2, "second", "info")

        assert all(entry.endswith(":stored") for entry in fake_channel.call_log)
        assert len(fake_channel.call_log) == 2

    @pytest.mark.asyncio
    async def test_related_entity_is_kept(self, db_session, notification_service):
        notification = await notification_service.notify(
            db_session, 3, "Task updated", "task_updated", related_id=42, related_type="task"
        )
        assert (notification.related_id, notification.related_type) == (42, "task")

    @pytest.mark.asyncio
    async def test_channel_not_ready_is_raised_after_persisting(self, db_session):
        service = NotificationService(ChannelHolder())

        with pytest.raises(ChannelNotReadyError):
            await service.notify(db_session, 7, "hi", "info")

        assert count_rows(db_session) == 1

    @pytest.mark.asyncio
    async def test_persistence_failure_publishes_nothing(self, notification_service, fake_channel):
        session = MagicMock(spec=Session)
        session.commit.side_effect = SQLAlchemyError("database is locked")

        with pytest.raises(PersistenceError) as exc_info:
            await notification_service.notify(session, 7, "hi", "info")

        assert isinstance(exc_info.value.original, SQLAlchemyError)
        session.rollback.assert_called_once()
        assert fake_channel.published == []


# ============================================================================
# notify_bulk
# ============================================================================

class TestNotifyBulk:

    @pytest.mark.asyncio
    async def test_one_row_and_one_publish_per_user(self, db_session, notification_service, fake_channel):
        result = await notification_service.notify_bulk(db_session, [1, 2, 3], "Exam tomorrow", "info")

        assert result.notified_user_ids == [1, 2, 3]
        assert result.failed == []
        assert count_rows(db_session) == 3
        assert fake_channel.rooms() == ["user_1", "user_2", "user_3"]

    @pytest.mark.asyncio
    async def test_duplicate_ids_notified_once(self, db_session, notification_service, fake_channel):
        result = await notification_service.notify_bulk(db_session, [2, 1, 2, 3, 1], "hello", "info")

        assert result.notified_user_ids == [2, 1, 3]
        assert count_rows(db_session) == 3
        assert fake_channel.rooms() == ["user_2", "user_1", "user_3"]

    @pytest.mark.asyncio
    async def test_empty_list(self, db_session, notification_service, fake_channel):
        result = await notification_service.notify_bulk(db_session, [], "hello", "info")
        assert result.notifications == []
        assert fake_channel.published == []

    @pytest.mark.asyncio
    async def test_failed_recipient_does_not_stop_others(
        self, db_session, notification_service, fake_channel, monkeypatch
    ):
        original_commit = db_session.commit
        calls = {"n": 0}

        def flaky_commit():
            calls["n"] += 1
            if calls["n"] == 2:
                raise SQLAlchemyError("disk full")
            original_commit()

        monkeypatch.setattr(db_session, "commit", flaky_commit)

        result = await notification_service.notify_bulk(db_session, [1, 2, 3], "hello", "info")

        assert result.notified_user_ids == [1, 3]
        assert [f["user_id"] for f in result.failed] == [2]
        assert fake_channel.rooms() == ["user_1", "user_3"]


# ============================================================================
# Read side
# ============================================================================

class TestReadSide:

    @pytest.fixture
    def seeded(self, db_session: Session) -> list[Notification]:
        now = datetime.utcnow()
        rows = [
            Notification(user_id=1, message="old", type="info", created_at=now - timedelta(hours=2)),
            Notification(user_id=1, message="new", type="task_assigned", created_at=now),
            Notification(user_id=1, message="read", type="info", is_read=True, created_at=now - timedelta(hours=1)),
            Notification(user_id=2, message="not yours", type="info", created_at=now),
        ]
        db_session.add_all(rows)
        db_session.commit()
        for row in rows:
            db_session.refresh(row)
        return rows

    def test_list_newest_first(self, db_session, notification_service, seeded):
        messages = [n.message for n in notification_service.list_for_user(db_session, 1)]
        assert messages == ["new", "read", "old"]

    def test_list_unread_only(self, db_session, notification_service, seeded):
        messages = [n.message for n in notification_service.unread_for_user(db_session, 1)]
        assert messages == ["new", "old"]

    def test_list_pagination(self, db_session, notification_service, seeded):
        page = notification_service.list_for_user(db_session, 1, limit=1, offset=1)
        assert [n.message for n in page] == ["read"]

    def test_stats(self, db_session, notification_service, seeded):
        stats = notification_service.stats_for_user(db_session, 1)
        assert stats.total == 3
        assert stats.unread == 2
        assert stats.by_type == {"info": 2, "task_assigned": 1}

    def test_mark_read(self, db_session, notification_service, seeded):
        notification = notification_service.mark_read(db_session, seeded[0].id, 1)
        assert notification.is_read is True

    def test_mark_read_other_users_notification(self, db_session, notification_service, seeded):
        foreign = seeded[3]

        with pytest.raises(ForbiddenError):
            notification_service.mark_read(db_session, foreign.id, 1)

        db_session.refresh(foreign)
        assert foreign.is_read is False

    def test_mark_read_missing(self, db_session, notification_service, seeded):
        with pytest.raises(NotFoundError):
            notification_service.mark_read(db_session, 9999, 1)

    def test_mark_all_read(self, db_session, notification_service, seeded):
        assert notification_service.mark_all_read(db_session, 1) == 2
        assert notification_service.unread_for_user(db_session, 1) == []
        # Other users untouched
        assert len(notification_service.unread_for_user(db_session, 2)) == 1

    def test_delete(self, db_session, notification_service, seeded):
        notification_service.delete(db_session, seeded[0].id, 1)
        assert db_session.get(Notification, seeded[0].id) is None

    def test_delete_other_users_notification(self, db_session, notification_service, seeded):
        foreign_id = seeded[3].id

        with pytest.raises(ForbiddenError):
            notification_service.delete(db_session, foreign_id, 1)

        assert db_session.get(Notification, foreign_id) is not None
