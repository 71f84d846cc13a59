"""Tests for the reminder scheduler.

Tests cover:
- Future-date validation on create, update and ad-hoc scheduling
- Job registry: arm, reschedule, deactivate, delete, cancel
- Fire callbacks: message format, fire-once guard, failure handling
- Restore after restart and scheduler status
- Cancel-before-fire against a running scheduler
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlmodel import select

from app.db.session import new_session
from app.events.channel import ChannelHolder
from app.models.notification import Notification
from app.models.reminder import Reminder, ReminderUpdate
from app.services.errors import ForbiddenError, NotFoundError, ValidationError
from app.services.notifications import NotificationService
from app.services.reminders import (
    ReminderScheduler,
    format_reminder_message,
    reminder_job_id,
    to_utc_naive,
)
from app.workers.base import WorkerStatus


def in_hours(hours: float) -> datetime:
    return datetime.utcnow() + timedelta(hours=hours)


def notifications_for(session, user_id: int) -> list[Notification]:
    return list(session.exec(select(Notification).where(Notification.user_id == user_id)).all())


# ============================================================================
# Helpers
# ============================================================================

class TestHelpers:

    def test_message_with_description(self):
        assert format_reminder_message("Study", "Chapter 3") == "Reminder: Study - Chapter 3"

    def test_message_without_description(self):
        assert format_reminder_message("Study") == "Reminder: Study"
        assert format_reminder_message("Study", "") == "Reminder: Study"

    def test_aware_datetimes_are_normalized_to_naive_utc(self):
        aware = datetime(2030, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_utc_naive(aware) == datetime(2030, 5, 1, 10, 0)

    def test_job_id(self):
        assert reminder_job_id(12) == "reminder_12"


# ============================================================================
# Create / update / delete
# ============================================================================

class TestCreateReminder:

    def test_past_time_rejected(self, db_session, reminder_scheduler, students):
        with pytest.raises(ValidationError):
            reminder_scheduler.create_reminder(db_session, students[0].id, "Late", in_hours(-1))

        assert db_session.exec(select(Reminder)).all() == []
        assert reminder_scheduler.job_ids == []

    def test_now_is_not_future(self, db_session, reminder_scheduler, students):
        with pytest.raises(ValidationError):
            reminder_scheduler.create_reminder(db_session, students[0].id, "Now", datetime.utcnow())

    def test_create_arms_job(self, db_session, reminder_scheduler, scheduler, students):
        when = in_hours(2)
        reminder = reminder_scheduler.create_reminder(
            db_session, students[0].id, "Study", when, description="Chapter 3"
        )

        assert reminder.id is not None
        assert reminder.is_active is True
        job_id = reminder_job_id(reminder.id)
        assert reminder_scheduler.has_job(job_id)
        job = scheduler.get_job(job_id)
        assert job is not None
        assert job.trigger.run_date.replace(tzinfo=None) == when

    def test_stored_times_stay_naive_utc(self, db_session, reminder_scheduler, students):
        aware = datetime.now(timezone.utc) + timedelta(hours=2)
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", aware)

        db_session.expire_all()
        stored = db_session.get(Reminder, reminder.id)
        assert stored.scheduled_at.tzinfo is None
        assert stored.scheduled_at == aware.replace(tzinfo=None)
        assert stored.created_at.tzinfo is None

    def test_get_reminder_checks_owner(self, db_session, reminder_scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Mine", in_hours(1))

        with pytest.raises(ForbiddenError):
            reminder_scheduler.get_reminder(db_session, reminder.id, students[1].id)
        with pytest.raises(NotFoundError):
            reminder_scheduler.get_reminder(db_session, 9999)

    def test_list_for_user_ordered_by_time(self, db_session, reminder_scheduler, students):
        reminder_scheduler.create_reminder(db_session, students[0].id, "Later", in_hours(5))
        reminder_scheduler.create_reminder(db_session, students[0].id, "Sooner", in_hours(1))
        reminder_scheduler.create_reminder(db_session, students[1].id, "Other", in_hours(1))

        titles = [r.title for r in reminder_scheduler.list_for_user(db_session, students[0].id)]
        assert titles == ["Sooner", "Later"]


class TestUpdateReminder:

    def test_reschedule_replaces_job(self, db_session, reminder_scheduler, scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))
        new_time = in_hours(3)

        updated = reminder_scheduler.update_reminder(
            db_session, reminder.id, ReminderUpdate(scheduled_at=new_time)
        )

        assert updated.scheduled_at == new_time
        job = scheduler.get_job(reminder_job_id(reminder.id))
        assert job.trigger.run_date.replace(tzinfo=None) == new_time
        assert reminder_scheduler.job_ids == [reminder_job_id(reminder.id)]

    def test_reschedule_into_past_rejected(self, db_session, reminder_scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))

        with pytest.raises(ValidationError):
            reminder_scheduler.update_reminder(db_session, reminder.id, {"scheduled_at": in_hours(-2)})

        db_session.refresh(reminder)
        assert reminder.scheduled_at > datetime.utcnow()

    def test_title_change_keeps_job(self, db_session, reminder_scheduler, scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))
        job_before = scheduler.get_job(reminder_job_id(reminder.id))

        updated = reminder_scheduler.update_reminder(db_session, reminder.id, ReminderUpdate(title="Revise"))

        assert updated.title == "Revise"
        assert scheduler.get_job(reminder_job_id(reminder.id)) is job_before

    def test_deactivate_cancels_job(self, db_session, reminder_scheduler, scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))

        reminder_scheduler.update_reminder(db_session, reminder.id, ReminderUpdate(is_active=False))

        assert not reminder_scheduler.has_job(reminder_job_id(reminder.id))
        assert scheduler.get_job(reminder_job_id(reminder.id)) is None

    def test_reactivate_arms_job(self, db_session, reminder_scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))
        reminder_scheduler.update_reminder(db_session, reminder.id, ReminderUpdate(is_active=False))

        reminder_scheduler.update_reminder(db_session, reminder.id, ReminderUpdate(is_active=True))

        assert reminder_scheduler.has_job(reminder_job_id(reminder.id))

    def test_update_by_other_user_forbidden(self, db_session, reminder_scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))

        with pytest.raises(ForbiddenError):
            reminder_scheduler.update_reminder(
                db_session, reminder.id, ReminderUpdate(title="Hijacked"), owner_id=students[1].id
            )


class TestDeleteReminder:

    def test_delete_cancels_job_and_row(self, db_session, reminder_scheduler, scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))
        reminder_id = reminder.id

        reminder_scheduler.delete_reminder(db_session, reminder_id, students[0].id)

        assert db_session.get(Reminder, reminder_id) is None
        assert not reminder_scheduler.has_job(reminder_job_id(reminder_id))
        assert scheduler.get_job(reminder_job_id(reminder_id)) is None

    def test_delete_missing(self, db_session, reminder_scheduler):
        with pytest.raises(NotFoundError):
            reminder_scheduler.delete_reminder(db_session, 9999)


# ============================================================================
# Ad-hoc reminders
# ============================================================================

class TestCustomReminders:

    def test_schedule_returns_owner_scoped_job_id(self, reminder_scheduler):
        job_id = reminder_scheduler.schedule_custom_reminder(5, "Call home", in_hours(1))

        assert job_id.startswith("reminder_5_")
        assert reminder_scheduler.has_job(job_id)

    def test_job_ids_do_not_collide(self, reminder_scheduler):
        first = reminder_scheduler.schedule_custom_reminder(5, "one", in_hours(1))
        second = reminder_scheduler.schedule_custom_reminder(5, "two", in_hours(1))

        assert first != second
        assert len(reminder_scheduler.job_ids) == 2

    def test_past_time_rejected(self, reminder_scheduler):
        with pytest.raises(ValidationError):
            reminder_scheduler.schedule_custom_reminder(5, "late", in_hours(-1))
        assert reminder_scheduler.job_ids == []

    def test_cancel(self, reminder_scheduler, scheduler):
        job_id = reminder_scheduler.schedule_custom_reminder(5, "Call home", in_hours(1))

        assert reminder_scheduler.cancel_reminder(job_id) is True
        assert scheduler.get_job(job_id) is None
        assert reminder_scheduler.cancel_reminder(job_id) is False

    def test_cancel_unknown(self, reminder_scheduler):
        assert reminder_scheduler.cancel_reminder("reminder_does_not_exist") is False

    @pytest.mark.asyncio
    async def test_fire_sends_message_as_is(self, db_session, reminder_scheduler, fake_channel):
        job_id = reminder_scheduler.schedule_custom_reminder(
            5, "Call home", in_hours(1), related_id=3, related_type="project"
        )

        await reminder_scheduler._fire_custom_reminder(job_id, 5, "Call home", 3, "project")

        [notification] = notifications_for(db_session, 5)
        assert notification.message == "Call home"
        assert notification.type == "custom_reminder"
        assert notification.related_id == 3
        assert fake_channel.rooms() == ["user_5"]
        assert not reminder_scheduler.has_job(job_id)


# ============================================================================
# Fire callback
# ============================================================================

class TestFireReminder:

    @pytest.mark.asyncio
    async def test_fire_notifies_and_deactivates(self, db_session, reminder_scheduler, fake_channel, students):
        owner = students[0]
        reminder = reminder_scheduler.create_reminder(
            db_session, owner.id, "Study", in_hours(1), description="Chapter 3"
        )

        await reminder_scheduler._fire_reminder(reminder.id)

        [notification] = notifications_for(db_session, owner.id)
        assert notification.message == "Reminder: Study - Chapter 3"
        assert notification.type == "custom_reminder"
        assert fake_channel.rooms() == [f"user_{owner.id}"]

        db_session.refresh(reminder)
        assert reminder.is_active is False
        assert reminder.fired_at is not None
        assert not reminder_scheduler.has_job(reminder_job_id(reminder.id))

    @pytest.mark.asyncio
    async def test_double_trigger_sends_once(self, db_session, reminder_scheduler, fake_channel, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))

        await reminder_scheduler._fire_reminder(reminder.id)
        await reminder_scheduler._fire_reminder(reminder.id)

        assert len(notifications_for(db_session, students[0].id)) == 1
        assert len(fake_channel.published) == 1

    @pytest.mark.asyncio
    async def test_missing_reminder_is_ignored(self, db_session, reminder_scheduler, fake_channel):
        await reminder_scheduler._fire_reminder(9999)
        assert fake_channel.published == []

    @pytest.mark.asyncio
    async def test_failure_still_clears_registry(self, db_session, scheduler, students):
        service = NotificationService(ChannelHolder())
        reminders = ReminderScheduler(service, session_factory=new_session, scheduler=scheduler)
        reminder = reminders.create_reminder(db_session, students[0].id, "Study", in_hours(1))

        # Channel never initialised: the callback logs and does not raise
        await reminders._fire_reminder(reminder.id)

        assert not reminders.has_job(reminder_job_id(reminder.id))

    def test_job_carries_its_scheduled_time(self, db_session, reminder_scheduler, scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))

        job = scheduler.get_job(reminder_job_id(reminder.id))

        assert list(job.args) == [reminder.id, reminder.scheduled_at]

    @pytest.mark.asyncio
    async def test_stale_job_after_reschedule_does_nothing(
        self, db_session, reminder_scheduler, scheduler, fake_channel, students
    ):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))
        first_time = reminder.scheduled_at
        reminder_scheduler.update_reminder(db_session, reminder.id, {"scheduled_at": in_hours(3)})

        await reminder_scheduler._fire_reminder(reminder.id, first_time)

        assert fake_channel.published == []
        db_session.refresh(reminder)
        assert reminder.is_active is True
        assert reminder_scheduler.has_job(reminder_job_id(reminder.id))

    @pytest.mark.asyncio
    async def test_reschedule_during_delivery_is_kept(
        self, db_session, reminder_scheduler, scheduler, notification_service, students, monkeypatch
    ):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))
        first_time = reminder.scheduled_at
        later = in_hours(5)
        original_notify = notification_service.notify

        async def notify_then_reschedule(session, *args, **kwargs):
            notification = await original_notify(session, *args, **kwargs)
            with new_session() as other:
                reminder_scheduler.update_reminder(other, reminder.id, {"scheduled_at": later})
            return notification

        monkeypatch.setattr(notification_service, "notify", notify_then_reschedule)

        await reminder_scheduler._fire_reminder(reminder.id, first_time)

        db_session.refresh(reminder)
        assert reminder.is_active is True
        assert reminder.fired_at is None
        assert reminder.scheduled_at == later
        job_id = reminder_job_id(reminder.id)
        assert reminder_scheduler.has_job(job_id)
        assert list(scheduler.get_job(job_id).args) == [reminder.id, later]

    @pytest.mark.asyncio
    async def test_matching_job_leaves_registry(self, db_session, reminder_scheduler, students):
        reminder = reminder_scheduler.create_reminder(db_session, students[0].id, "Study", in_hours(1))

        await reminder_scheduler._fire_reminder(reminder.id, reminder.scheduled_at)

        db_session.refresh(reminder)
        assert reminder.is_active is False
        assert not reminder_scheduler.has_job(reminder_job_id(reminder.id))


# ============================================================================
# Restore, status, sweep
# ============================================================================

class TestLifecycle:

    def test_restore_active_reminders(self, db_session, reminder_scheduler, students):
        owner = students[0].id
        db_session.add_all([
            Reminder(user_id=owner, title="future", scheduled_at=in_hours(2)),
            Reminder(user_id=owner, title="missed", scheduled_at=in_hours(-2)),
            Reminder(user_id=owner, title="done", scheduled_at=in_hours(-5), is_active=False),
        ])
        db_session.commit()

        assert reminder_scheduler.restore_active_reminders(db_session) == 2
        assert len(reminder_scheduler.job_ids) == 2

    def test_missed_reminder_runs_as_soon_as_possible(self, db_session, reminder_scheduler, scheduler, students):
        missed = Reminder(user_id=students[0].id, title="missed", scheduled_at=in_hours(-2))
        db_session.add(missed)
        db_session.commit()
        db_session.refresh(missed)

        reminder_scheduler.restore_active_reminders(db_session)

        run_date = scheduler.get_job(reminder_job_id(missed.id)).trigger.run_date
        assert run_date.replace(tzinfo=None) >= missed.scheduled_at + timedelta(hours=1)

    def test_status_before_start(self, reminder_scheduler):
        reminder_scheduler.schedule_custom_reminder(5, "one", in_hours(1))

        status = reminder_scheduler.get_status()

        assert status.running is False
        assert status.active_jobs == 1
        assert status.next_sweep is None

    @pytest.mark.asyncio
    async def test_check_deadlines_runs_sweep(self, db_session, reminder_scheduler):
        result = await reminder_scheduler.check_deadlines()

        assert result.status == WorkerStatus.NO_WORK
        assert reminder_scheduler.last_sweep is result


class TestRunningScheduler:

    @pytest.mark.asyncio
    async def test_cancel_before_fire_prevents_notification(
        self, db_session, notification_service, fake_channel, students
    ):
        scheduler = AsyncIOScheduler(timezone=timezone.utc)
        reminders = ReminderScheduler(notification_service, session_factory=new_session, scheduler=scheduler)
        reminders.start()
        try:
            cancelled = reminders.create_reminder(
                db_session, students[0].id, "Cancelled", datetime.utcnow() + timedelta(seconds=1)
            )
            kept = reminders.create_reminder(
                db_session, students[1].id, "Kept", datetime.utcnow() + timedelta(seconds=1)
            )
            reminders.delete_reminder(db_session, cancelled.id)

            await asyncio.sleep(2.5)

            assert notifications_for(db_session, students[0].id) == []
            [fired] = notifications_for(db_session, students[1].id)
            assert fired.message == "Reminder: Kept"
            assert not reminders.has_job(reminder_job_id(kept.id))
            assert reminders.get_status().running is True
        finally:
            reminders.shutdown()
