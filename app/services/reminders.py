"""Reminder scheduler.

This module owns every time-triggered notification:
1. User reminders stored as Reminder rows, each backed by a one-shot job
2. Ad-hoc reminders that only live as an in-memory job
3. The periodic deadline sweep (see app.workers.deadline_worker)

Reminder lifecycle:
    Scheduled (is_active, job registered)
        -> Fired (is_active False, fired_at set, job removed)
        -> Cancelled (row deleted or deactivated, job removed)

Jobs run on APScheduler's AsyncIOScheduler, so timer callbacks execute on
the application's event loop. The job registry is a plain dict owned by
ReminderScheduler and only touched from that loop. Jobs do not survive a
restart; restore_active_reminders() re-arms them from the database at
startup.

Cancelling only prevents jobs that have not started. A callback that is
already running completes and sends its notification.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from app.db.session import new_session
from app.models.notification import NotificationType
from app.models.reminder import Reminder, ReminderUpdate, SchedulerStatus
from app.services.activity_log import log_activity
from app.services.errors import ForbiddenError, NotFoundError, PersistenceError, ValidationError
from app.services.notifications import NotificationService
from app.workers.base import WorkerResult
from app.workers.deadline_worker import DeadlineSweep

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "deadline_sweep"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def to_utc_naive(value: datetime) -> datetime:
    """Normalize to naive UTC, the form stored in the database."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def reminder_job_id(reminder_id: int) -> str:
    return f"reminder_{reminder_id}"


def format_reminder_message(title: str, description: str | None = None) -> str:
    message = f"Reminder: {title}"
    if description:
        message += f" - {description}"
    return message


def ensure_future(scheduled_at: datetime, now: datetime | None = None) -> None:
    """Raise ValidationError unless scheduled_at is strictly in the future."""
    now = now or datetime.utcnow()
    if scheduled_at <= now:
        raise ValidationError("Scheduled time must be in the future")


# -----------------------------------------------------------------------------
# Reminder Scheduler
# -----------------------------------------------------------------------------


class ReminderScheduler:
    """Schedules, reschedules and cancels reminder jobs.

    One instance per process, built at startup and shared by the API
    layer. Persisted reminders are keyed reminder_<id>; ad-hoc jobs are
    keyed reminder_<owner>_<creation millis>.
    """

    def __init__(
        self,
        notifications: NotificationService,
        session_factory: Callable[[], Session] = new_session,
        scheduler: BaseScheduler | None = None,
        sweep_interval_minutes: int = 60,
        deduplicate_deadlines: bool = False,
    ) -> None:
        """Initialize the scheduler.

        Args:
            notifications: Fanout service used when jobs fire
            session_factory: Opens sessions for job callbacks and sweeps
            scheduler: APScheduler instance (default: AsyncIOScheduler in UTC)
            sweep_interval_minutes: Minutes between deadline sweeps
            deduplicate_deadlines: Send each deadline reminder only once
        """
        self.notifications = notifications
        self._session_factory = session_factory
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._sweep = DeadlineSweep(notifications, deduplicate=deduplicate_deadlines)
        self.sweep_interval_minutes = sweep_interval_minutes
        self._jobs: dict[str, Job] = {}
        self.last_sweep: WorkerResult | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the scheduler and the periodic deadline sweep."""
        if self._scheduler.running:
            logger.info("Reminder scheduler already running, skipping start")
            return

        self._scheduler.add_job(
            self.check_deadlines,
            trigger="interval",
            minutes=self.sweep_interval_minutes,
            id=SWEEP_JOB_ID,
            replace_existing=True,
            max_instances=1,      # Prevent overlapping sweeps
            coalesce=True,        # Merge missed runs if the loop was busy
        )
        self._scheduler.start()

        logger.info(
            "Reminder scheduler started",
            extra={"sweep_interval_minutes": self.sweep_interval_minutes},
        )

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._jobs.clear()
        logger.info("Reminder scheduler stopped")

    def get_status(self) -> SchedulerStatus:
        sweep = self._scheduler.get_job(SWEEP_JOB_ID)
        return SchedulerStatus(
            running=self._scheduler.running,
            next_sweep=getattr(sweep, "next_run_time", None) if sweep else None,
            active_jobs=len(self._jobs),
        )

    def has_job(self, job_id: str) -> bool:
        return job_id in self._jobs

    @property
    def job_ids(self) -> list[str]:
        return list(self._jobs)

    # -------------------------------------------------------------------------
    # Job registry
    # -------------------------------------------------------------------------

    def _register(
        self,
        job_id: str,
        run_at: datetime,
        func: Callable[..., Any],
        args: list[Any],
    ) -> Job:
        # Past-due jobs (restored after downtime) fire as soon as possible
        run_at = max(run_at, datetime.utcnow())
        self._unregister(job_id)
        job = self._scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_at, timezone=timezone.utc),
            args=args,
            id=job_id,
            replace_existing=True,
            misfire_grace_time=None,
        )
        self._jobs[job_id] = job

        logger.debug("Job registered", extra={"job_id": job_id, "run_at": run_at.isoformat()})
        return job

    def _unregister(self, job_id: str) -> bool:
        job = self._jobs.pop(job_id, None)
        if job is None:
            return False
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            # Already executed and dropped by the scheduler
            pass
        logger.debug("Job removed", extra={"job_id": job_id})
        return True

    def _arm(self, reminder: Reminder) -> Job:
        return self._register(
            reminder_job_id(reminder.id),
            reminder.scheduled_at,
            self._fire_reminder,
            [reminder.id, reminder.scheduled_at],
        )

    def _custom_job_id(self, owner_id: int) -> str:
        millis = time.time_ns() // 1_000_000
        job_id = f"reminder_{owner_id}_{millis}"
        while job_id in self._jobs:
            millis += 1
            job_id = f"reminder_{owner_id}_{millis}"
        return job_id

    # -------------------------------------------------------------------------
    # Persisted reminders
    # -------------------------------------------------------------------------

    def get_reminder(
        self,
        session: Session,
        reminder_id: int,
        owner_id: int | None = None,
    ) -> Reminder:
        """Fetch a reminder, optionally checking its owner.

        Raises:
            NotFoundError: No such reminder
            ForbiddenError: owner_id given and the reminder belongs to someone else
        """
        reminder = session.get(Reminder, reminder_id)
        if reminder is None:
            raise NotFoundError(f"Reminder {reminder_id} not found")
        if owner_id is not None and reminder.user_id != owner_id:
            raise ForbiddenError(f"Reminder {reminder_id} belongs to another user")
        return reminder

    def list_for_user(self, session: Session, owner_id: int) -> list[Reminder]:
        return list(
            session.exec(
                select(Reminder)
                .where(Reminder.user_id == owner_id)
                .order_by(Reminder.scheduled_at)
            ).all()
        )

    def create_reminder(
        self,
        session: Session,
        owner_id: int,
        title: str,
        scheduled_at: datetime,
        description: str | None = None,
        related_id: int | None = None,
        related_type: str | None = None,
    ) -> Reminder:
        """Persist a reminder and arm its job.

        Raises:
            ValidationError: scheduled_at is not in the future (nothing stored)
            PersistenceError: The row could not be stored (no job armed)
        """
        scheduled_at = to_utc_naive(scheduled_at)
        ensure_future(scheduled_at)

        reminder = Reminder(
            user_id=owner_id,
            title=title,
            description=description,
            scheduled_at=scheduled_at,
            related_id=related_id,
            related_type=related_type,
        )
        try:
            session.add(reminder)
            session.commit()
            session.refresh(reminder)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("Could not store reminder", original=e) from e

        self._arm(reminder)

        log_activity(
            session, owner_id, "reminder.created", "reminder", reminder.id,
            new_values={"title": title, "scheduled_at": scheduled_at.isoformat()},
        )
        logger.info(
            "Reminder created",
            extra={
                "reminder_id": reminder.id,
                "user_id": owner_id,
                "scheduled_at": scheduled_at.isoformat(),
            },
        )
        return reminder

    def update_reminder(
        self,
        session: Session,
        reminder_id: int,
        data: ReminderUpdate | dict[str, Any],
        owner_id: int | None = None,
    ) -> Reminder:
        """Apply changes and keep the job in line with them.

        A new scheduled_at replaces the job if the reminder is still
        active; deactivating cancels it; re-activating arms it again.

        Raises:
            NotFoundError / ForbiddenError: see get_reminder
            ValidationError: The resulting active reminder would not be in the future
        """
        reminder = self.get_reminder(session, reminder_id, owner_id)

        if isinstance(data, SQLModel):
            changes = data.model_dump(exclude_unset=True)
        else:
            changes = dict(data)
        # Non-nullable columns ignore explicit nulls
        for key in ("title", "scheduled_at", "is_active"):
            if key in changes and changes[key] is None:
                del changes[key]

        if "scheduled_at" in changes:
            changes["scheduled_at"] = to_utc_naive(changes["scheduled_at"])
            ensure_future(changes["scheduled_at"])

        old_values = {
            "scheduled_at": reminder.scheduled_at.isoformat(),
            "is_active": reminder.is_active,
        }
        time_changed = (
            "scheduled_at" in changes and changes["scheduled_at"] != reminder.scheduled_at
        )
        reactivated = changes.get("is_active") is True and not reminder.is_active
        if reactivated and "scheduled_at" not in changes:
            ensure_future(reminder.scheduled_at)

        for key, value in changes.items():
            setattr(reminder, key, value)
        if reactivated:
            reminder.fired_at = None

        try:
            session.add(reminder)
            session.commit()
            session.refresh(reminder)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not update reminder {reminder_id}", original=e) from e

        if not reminder.is_active:
            self._unregister(reminder_job_id(reminder.id))
        elif time_changed or reactivated:
            self._arm(reminder)

        log_activity(
            session, reminder.user_id, "reminder.updated", "reminder", reminder.id,
            old_values=old_values,
            new_values={
                "scheduled_at": reminder.scheduled_at.isoformat(),
                "is_active": reminder.is_active,
            },
        )
        logger.info(
            "Reminder updated",
            extra={
                "reminder_id": reminder.id,
                "rescheduled": time_changed,
                "is_active": reminder.is_active,
            },
        )
        return reminder

    def delete_reminder(
        self,
        session: Session,
        reminder_id: int,
        owner_id: int | None = None,
    ) -> None:
        """Cancel the job (if any) and delete the row.

        Deleting a reminder that already fired is allowed.
        """
        reminder = self.get_reminder(session, reminder_id, owner_id)
        user_id = reminder.user_id

        self._unregister(reminder_job_id(reminder_id))

        try:
            session.delete(reminder)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not delete reminder {reminder_id}", original=e) from e

        log_activity(session, user_id, "reminder.deleted", "reminder", reminder_id)
        logger.info("Reminder deleted", extra={"reminder_id": reminder_id})

    def restore_active_reminders(self, session: Session) -> int:
        """Re-arm jobs for every active reminder after a restart.

        Reminders whose time passed while the process was down fire
        immediately.

        Returns:
            int: Number of jobs armed
        """
        reminders = session.exec(
            select(Reminder).where(Reminder.is_active == True)  # noqa: E712
        ).all()
        for reminder in reminders:
            self._arm(reminder)

        if reminders:
            logger.info("Active reminders restored", extra={"count": len(reminders)})
        return len(reminders)

    def _release(self, job_id: str, args: list[Any]) -> None:
        """Drop a fired job from the registry unless it was replaced meanwhile."""
        registered = self._jobs.get(job_id)
        if registered is not None and list(registered.args) == args:
            del self._jobs[job_id]

    async def _fire_reminder(self, reminder_id: int, armed_for: datetime | None = None) -> None:
        """Job callback for a persisted reminder.

        The active flag guards against a second trigger sending a
        duplicate. A job armed for a time the reminder no longer has was
        superseded by a reschedule and does nothing. The job leaves the
        registry even on failure, unless a newer job took its place.
        """
        job_id = reminder_job_id(reminder_id)
        try:
            with self._session_factory() as session:
                reminder = session.get(Reminder, reminder_id)
                if reminder is None:
                    logger.warning(
                        "Reminder job fired for a missing reminder",
                        extra={"reminder_id": reminder_id},
                    )
                    return
                if not reminder.is_active:
                    logger.debug(
                        "Skipping inactive reminder",
                        extra={"reminder_id": reminder_id},
                    )
                    return
                if armed_for is not None and reminder.scheduled_at != armed_for:
                    logger.debug(
                        "Skipping superseded reminder job",
                        extra={"reminder_id": reminder_id},
                    )
                    return

                await self.notifications.notify(
                    session,
                    reminder.user_id,
                    format_reminder_message(reminder.title, reminder.description),
                    NotificationType.CUSTOM_REMINDER.value,
                    related_id=reminder.related_id,
                    related_type=reminder.related_type,
                )

                # Rescheduled or deactivated while the notification was going out
                session.refresh(reminder)
                if not reminder.is_active or (
                    armed_for is not None and reminder.scheduled_at != armed_for
                ):
                    logger.info(
                        "Reminder changed during delivery, leaving its state as is",
                        extra={"reminder_id": reminder_id},
                    )
                    return

                reminder.is_active = False
                reminder.fired_at = datetime.utcnow()
                session.add(reminder)
                session.commit()

                logger.info("Reminder fired", extra={"reminder_id": reminder_id})

        except Exception as e:
            logger.error(
                f"Reminder job {job_id} failed",
                extra={"reminder_id": reminder_id, "error": str(e)},
                exc_info=True,
            )
        finally:
            if armed_for is None:
                self._jobs.pop(job_id, None)
            else:
                self._release(job_id, [reminder_id, armed_for])

    # -------------------------------------------------------------------------
    # Ad-hoc reminders
    # -------------------------------------------------------------------------

    def schedule_custom_reminder(
        self,
        owner_id: int,
        message: str,
        scheduled_at: datetime,
        related_id: int | None = None,
        related_type: str | None = None,
    ) -> str:
        """Arm a reminder that is not stored as a Reminder row.

        Returns:
            str: Job id, usable with cancel_reminder()

        Raises:
            ValidationError: scheduled_at is not in the future
        """
        scheduled_at = to_utc_naive(scheduled_at)
        ensure_future(scheduled_at)

        job_id = self._custom_job_id(owner_id)
        self._register(
            job_id,
            scheduled_at,
            self._fire_custom_reminder,
            [job_id, owner_id, message, related_id, related_type],
        )

        logger.info(
            "Custom reminder scheduled",
            extra={"job_id": job_id, "user_id": owner_id, "scheduled_at": scheduled_at.isoformat()},
        )
        return job_id

    def cancel_reminder(self, job_id: str) -> bool:
        """Stop a job by its id without touching any Reminder row.

        Returns:
            bool: True if a registered job was removed
        """
        removed = self._unregister(job_id)
        if removed:
            logger.info("Reminder job cancelled", extra={"job_id": job_id})
        return removed

    async def _fire_custom_reminder(
        self,
        job_id: str,
        owner_id: int,
        message: str,
        related_id: int | None,
        related_type: str | None,
    ) -> None:
        try:
            with self._session_factory() as session:
                await self.notifications.notify(
                    session,
                    owner_id,
                    message,
                    NotificationType.CUSTOM_REMINDER.value,
                    related_id=related_id,
                    related_type=related_type,
                )
            logger.info("Custom reminder fired", extra={"job_id": job_id})

        except Exception as e:
            logger.error(
                f"Custom reminder job {job_id} failed",
                extra={"job_id": job_id, "error": str(e)},
                exc_info=True,
            )
        finally:
            self._jobs.pop(job_id, None)

    # -------------------------------------------------------------------------
    # Deadline sweep
    # -------------------------------------------------------------------------

    async def check_deadlines(self, now: datetime | None = None) -> WorkerResult:
        """Run one deadline sweep in its own session.

        Per-item failures are absorbed by the sweep; a ChannelNotReadyError
        propagates.
        """
        with self._session_factory() as session:
            result = await self._sweep.run(session, now=now)
        self.last_sweep = result
        return result
