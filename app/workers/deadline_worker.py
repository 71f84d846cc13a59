"""Deadline sweep.

Runs on a fixed interval and warns users about upcoming deadlines:
1. Tasks due within 24 hours, then within 1 hour, notify their assignee
2. Projects ending within 24 hours, then within 1 hour, notify every
   participant plus the tutor

Completed tasks and projects are skipped. By default the sweep keeps
re-notifying on every run while an item stays inside a horizon and is not
completed; with deduplicate=True a given message is sent to a given user
for a given item only once.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlmodel import Session, select

from app.models.notification import Notification, NotificationType
from app.models.project import Project, ProjectStatus
from app.models.task import Task, TaskStatus
from app.services.errors import ChannelNotReadyError
from app.services.notifications import NotificationService
from app.workers.base import WorkerResult

logger = logging.getLogger(__name__)


# (label used in the message, look-ahead window)
DEADLINE_HORIZONS: tuple[tuple[str, timedelta], ...] = (
    ("24 hours", timedelta(hours=24)),
    ("1 hour", timedelta(hours=1)),
)


class DeadlineSweep:
    """Scans due dates and emits deadline reminders."""

    worker_name = "DeadlineSweep"

    def __init__(
        self,
        notifications: NotificationService,
        deduplicate: bool = False,
    ) -> None:
        """Initialize the sweep.

        Args:
            notifications: Service used to persist and push reminders
            deduplicate: Send each reminder message at most once per user and item
        """
        self.notifications = notifications
        self.deduplicate = deduplicate
        self._logger = logging.getLogger(self.__class__.__name__)

    def fetch_due_tasks(self, session: Session, now: datetime, horizon: timedelta) -> list[Task]:
        """Assigned, unfinished tasks due between now and now + horizon."""
        return list(
            session.exec(
                select(Task)
                .where(Task.due_date != None)  # noqa: E711
                .where(Task.due_date >= now)
                .where(Task.due_date <= now + horizon)
                .where(Task.status != TaskStatus.COMPLETED)
                .where(Task.responsible_id != None)  # noqa: E711
                .order_by(Task.due_date)
            ).all()
        )

    def fetch_due_projects(
        self, session: Session, now: datetime, horizon: timedelta
    ) -> list[Project]:
        """Unfinished projects ending between now and now + horizon."""
        return list(
            session.exec(
                select(Project)
                .where(Project.end_date != None)  # noqa: E711
                .where(Project.end_date >= now)
                .where(Project.end_date <= now + horizon)
                .where(Project.status != ProjectStatus.COMPLETED)
                .order_by(Project.end_date)
            ).all()
        )

    @staticmethod
    def task_message(task: Task, label: str) -> str:
        message = f'Reminder: task "{task.name}" is due in {label}.'
        if task.project is not None:
            message += f" Project: {task.project.name}"
        return message

    @staticmethod
    def project_message(project: Project, label: str) -> str:
        return f'Reminder: project "{project.name}" ends in {label}.'

    @staticmethod
    def project_recipients(project: Project) -> list[int]:
        user_ids = [user.id for user in project.participants]
        if project.tutor_id is not None:
            user_ids.append(project.tutor_id)
        return list(dict.fromkeys(user_ids))

    def _already_notified(
        self,
        session: Session,
        user_id: int,
        message: str,
        related_id: int,
        related_type: str,
    ) -> bool:
        existing = session.exec(
            select(Notification.id)
            .where(Notification.user_id == user_id)
            .where(Notification.type == NotificationType.DEADLINE_REMINDER.value)
            .where(Notification.related_id == related_id)
            .where(Notification.related_type == related_type)
            .where(Notification.message == message)
        ).first()
        return existing is not None

    def _record_error(
        self, session: Session, result: WorkerResult, item_id: str, error: Exception
    ) -> None:
        session.rollback()
        result.record_failure(item_id, str(error))
        self._logger.error(
            f"[{self.worker_name}] Failed to process {item_id}",
            extra={"item_id": item_id, "error": str(error)[:500]},
            exc_info=True,
        )

    def _fetch(
        self,
        session: Session,
        result: WorkerResult,
        item_id: str,
        query: Callable[[Session, datetime, timedelta], list[Any]],
        now: datetime,
        horizon: timedelta,
    ) -> list[Any]:
        """Run one horizon query; a failure is recorded and yields nothing."""
        try:
            return query(session, now, horizon)
        except Exception as e:
            self._record_error(session, result, item_id, e)
            return []

    async def _remind(
        self,
        session: Session,
        result: WorkerResult,
        user_id: int,
        message: str,
        related_id: int,
        related_type: str,
    ) -> None:
        """Send one reminder; a failure is recorded and does not propagate."""
        item_id = f"{related_type}:{related_id}:user:{user_id}"
        try:
            if self.deduplicate and self._already_notified(
                session, user_id, message, related_id, related_type
            ):
                result.record_skip()
                return

            await self.notifications.notify(
                session,
                user_id,
                message,
                NotificationType.DEADLINE_REMINDER.value,
                related_id=related_id,
                related_type=related_type,
            )
            result.record_success()

        except ChannelNotReadyError:
            raise

        except Exception as e:
            self._record_error(session, result, item_id, e)

    async def run(self, session: Session, now: datetime | None = None) -> WorkerResult:
        """Execute one sweep.

        Args:
            session: Database session
            now: Reference time (default: current UTC time)

        Returns:
            WorkerResult with per-reminder statistics
        """
        started_at = datetime.utcnow()
        now = now or started_at
        result = WorkerResult(worker_name=self.worker_name)
        result.metadata["deduplicate"] = self.deduplicate

        self._logger.info(
            f"[{self.worker_name}] Starting deadline sweep",
            extra={"as_of": now.isoformat()},
        )

        for label, horizon in DEADLINE_HORIZONS:
            tasks = self._fetch(session, result, f"tasks:{label}", self.fetch_due_tasks, now, horizon)
            for task in tasks:
                try:
                    message = self.task_message(task, label)
                except Exception as e:
                    self._record_error(session, result, f"task:{task.id}", e)
                    continue
                await self._remind(session, result, task.responsible_id, message, task.id, "task")

            projects = self._fetch(
                session, result, f"projects:{label}", self.fetch_due_projects, now, horizon
            )
            for project in projects:
                try:
                    message = self.project_message(project, label)
                    recipients = self.project_recipients(project)
                except Exception as e:
                    self._record_error(session, result, f"project:{project.id}", e)
                    continue
                for user_id in recipients:
                    await self._remind(session, result, user_id, message, project.id, "project")

            result.metadata[label] = {"tasks": len(tasks), "projects": len(projects)}

        result.finish(started_at)

        self._logger.info(
            f"[{self.worker_name}] Sweep complete",
            extra=result.to_dict(),
        )

        return result
