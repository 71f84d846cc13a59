"""Task service.

One logical task handed to several students is stored as one row per
assignee. Tutors read their rows back through the grouping engine;
students see their own rows and unassigned ones.

Mutations notify the people affected:
- create: every assignee (task_assigned), in one bulk fanout
- update: the assignee of the row (task_updated)
- status change by the assignee: the owning tutor (task_status_changed)
- delete: the assignee of the row (task_deleted)
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.models.notification import NotificationType
from app.models.project import Project
from app.models.task import LogicalTaskGroup, Task, TaskCreate, TaskStatus, TaskUpdate
from app.models.user import User
from app.services.activity_log import log_activity
from app.services.calendar import CalendarSync
from app.services.errors import ForbiddenError, NotFoundError, PersistenceError, ValidationError
from app.services.notifications import BulkNotificationResult, NotificationService
from app.services.task_grouping import (
    group_for_tutor,
    group_single_task_for_tutor,
    view_for_non_tutor,
)

logger = logging.getLogger(__name__)


def _commit(session: Session, message: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(message, original=e) from e


# -----------------------------------------------------------------------------
# Read side
# -----------------------------------------------------------------------------


def get_task(session: Session, task_id: int) -> Task:
    task = session.get(Task, task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found")
    return task


def get_tutor_tasks(
    session: Session,
    tutor_id: int,
    project_id: int | None = None,
) -> list[Task]:
    """All rows owned by a tutor, in insertion order."""
    query = select(Task).where(Task.tutor_id == tutor_id)
    if project_id is not None:
        query = query.where(Task.project_id == project_id)
    return list(session.exec(query.order_by(Task.id)).all())


def get_tasks_for_user(
    session: Session,
    user: User,
    project_id: int | None = None,
) -> list[LogicalTaskGroup] | list[Task]:
    """
    Tutors get one group per logical task.
    Everyone else gets their own rows plus unassigned ones.
    """
    if user.is_tutor:
        return group_for_tutor(get_tutor_tasks(session, user.id, project_id))

    query = select(Task).where(
        (Task.responsible_id == user.id) | (Task.responsible_id == None)  # noqa: E711
    )
    if project_id is not None:
        query = query.where(Task.project_id == project_id)
    tasks = list(session.exec(query.order_by(Task.id)).all())
    return view_for_non_tutor(tasks, user.id)


def get_task_group(session: Session, task_id: int, tutor: User) -> LogicalTaskGroup:
    """
    Logical task containing task_id, as seen by its tutor.

    Raises:
        NotFoundError: No such task
        ForbiddenError: The task belongs to another tutor
    """
    task = get_task(session, task_id)
    if task.tutor_id != tutor.id:
        raise ForbiddenError(f"Task {task_id} belongs to another tutor")

    group = group_single_task_for_tutor(task, get_tutor_tasks(session, tutor.id), tutor.id)
    if group is None:
        raise NotFoundError(f"Task {task_id} not found")
    return group


def get_owned_task(session: Session, task_id: int, tutor: User) -> Task:
    task = get_task(session, task_id)
    if task.tutor_id != tutor.id:
        raise ForbiddenError(f"Task {task_id} belongs to another tutor")
    return task


# -----------------------------------------------------------------------------
# Mutations
# -----------------------------------------------------------------------------


def _check_references(session: Session, data: TaskCreate | TaskUpdate) -> None:
    if data.project_id is not None and session.get(Project, data.project_id) is None:
        raise NotFoundError(f"Project {data.project_id} not found")

    assignees = data.responsible_ids if isinstance(data, TaskCreate) else (
        [data.responsible_id] if data.responsible_id is not None else []
    )
    for user_id in assignees:
        if session.get(User, user_id) is None:
            raise NotFoundError(f"User {user_id} not found")


async def create_tasks(
    session: Session,
    tutor: User,
    data: TaskCreate,
    notifications: NotificationService,
    calendar: CalendarSync | None = None,
) -> tuple[list[Task], BulkNotificationResult]:
    """Create one row per assignee and notify them in bulk.

    Returns:
        (created rows, bulk notification outcome)

    Raises:
        NotFoundError: Unknown project or assignee (nothing created)
        PersistenceError: The rows could not be stored (nothing notified)
    """
    _check_references(session, data)

    fields = data.model_dump(exclude={"responsible_ids"})
    assignee_ids = list(dict.fromkeys(data.responsible_ids)) or [None]
    tasks = [
        Task(**fields, responsible_id=user_id, tutor_id=tutor.id)
        for user_id in assignee_ids
    ]

    for task in tasks:
        session.add(task)
    _commit(session, "Could not store task")
    for task in tasks:
        session.refresh(task)

    logger.info(
        "Tasks created",
        extra={"tutor_id": tutor.id, "task_ids": [t.id for t in tasks], "name": data.name},
    )

    assigned = [t for t in tasks if t.responsible_id is not None]
    result = BulkNotificationResult()
    if assigned:
        result = await notifications.notify_bulk(
            session,
            [t.responsible_id for t in assigned],
            f'New task assigned: "{data.name}"',
            NotificationType.TASK_ASSIGNED.value,
            related_id=assigned[0].id,
            related_type="task",
        )

    if calendar is not None and calendar.enabled:
        for task in assigned:
            await calendar.sync_task(task)

    for task in tasks:
        log_activity(
            session, tutor.id, "task.created", "task", task.id,
            new_values={"name": task.name, "responsible_id": task.responsible_id},
        )

    return tasks, result


def _snapshot(task: Task, keys: list[str]) -> dict[str, Any]:
    values = {}
    for key in keys:
        value = getattr(task, key)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        values[key] = value
    return values


async def update_task(
    session: Session,
    task_id: int,
    tutor: User,
    data: TaskUpdate,
    notifications: NotificationService,
) -> Task:
    """Apply a tutor's changes to one row and tell its assignee."""
    task = get_owned_task(session, task_id, tutor)
    _check_references(session, data)

    changes = data.model_dump(exclude_unset=True)
    if "name" in changes and (changes["name"] is None or not changes["name"].strip()):
        raise ValidationError("Task name cannot be empty")
    # Non-nullable columns ignore explicit nulls
    for key in ("priority", "status", "type"):
        if key in changes and changes[key] is None:
            del changes[key]

    old_values = _snapshot(task, list(changes))
    for key, value in changes.items():
        setattr(task, key, value)
    task.updated_at = datetime.utcnow()

    session.add(task)
    _commit(session, f"Could not update task {task_id}")
    session.refresh(task)

    if task.responsible_id is not None:
        await notifications.notify(
            session,
            task.responsible_id,
            f'Task "{task.name}" was updated',
            NotificationType.TASK_UPDATED.value,
            related_id=task.id,
            related_type="task",
        )

    log_activity(
        session, tutor.id, "task.updated", "task", task.id,
        old_values=old_values,
        new_values=_snapshot(task, list(changes)),
    )
    return task


async def change_task_status(
    session: Session,
    task_id: int,
    user: User,
    new_status: TaskStatus,
    notifications: NotificationService,
) -> Task:
    """An assignee moves their own row to a new status; the tutor is told."""
    task = get_task(session, task_id)
    if task.responsible_id != user.id:
        raise ForbiddenError(f"Task {task_id} is not assigned to user {user.id}")

    old_status = task.status
    task.status = new_status
    task.updated_at = datetime.utcnow()
    session.add(task)
    _commit(session, f"Could not update task {task_id}")
    session.refresh(task)

    if task.tutor_id is not None and old_status != new_status:
        await notifications.notify(
            session,
            task.tutor_id,
            f'{user.username} changed "{task.name}" to {new_status.value}',
            NotificationType.TASK_STATUS_CHANGED.value,
            related_id=task.id,
            related_type="task",
        )

    log_activity(
        session, user.id, "task.status_changed", "task", task.id,
        old_values={"status": TaskStatus(old_status).value},
        new_values={"status": new_status.value},
    )
    return task


async def delete_task(
    session: Session,
    task_id: int,
    tutor: User,
    notifications: NotificationService,
) -> None:
    """Delete one row and tell its assignee."""
    task = get_owned_task(session, task_id, tutor)
    name, responsible_id = task.name, task.responsible_id

    session.delete(task)
    _commit(session, f"Could not delete task {task_id}")

    if responsible_id is not None:
        await notifications.notify(
            session,
            responsible_id,
            f'Task "{name}" was deleted',
            NotificationType.TASK_DELETED.value,
            related_id=task_id,
            related_type="task",
        )

    log_activity(session, tutor.id, "task.deleted", "task", task_id, old_values={"name": name})
