"""Task grouping for tutor and student read paths.

A task handed out to several students is stored as one row per assignee.
Tutors read those rows back as one logical task with the list of
assignees and a merged status; everyone else sees their own rows.

All functions here are pure: they work on the rows they are given and
never query the database.
"""

from collections.abc import Iterable, Sequence

from app.models.task import LogicalTaskGroup, Task, TaskResponsible, TaskStatus

GroupingKey = tuple[str, str, str, str, str, str]

# Lower rank wins: the most blocked member decides the group status
_STATUS_RANK: dict[TaskStatus, int] = {
    TaskStatus.PENDING: 0,
    TaskStatus.IN_PROGRESS: 1,
}
_COMPLETED_RANK = 2
_RANK_STATUS: dict[int, TaskStatus] = {
    0: TaskStatus.PENDING,
    1: TaskStatus.IN_PROGRESS,
    _COMPLETED_RANK: TaskStatus.COMPLETED,
}


def _text(value) -> str:
    if value is None:
        return ""
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def grouping_key(task: Task) -> GroupingKey:
    """Identity shared by every row of one logical task.

    A missing due date is the empty string, so all undated rows with the
    same other fields fall into one group.
    """
    return (
        task.name,
        task.description or "",
        task.due_date.isoformat() if task.due_date else "",
        _text(task.project_id),
        _text(task.priority),
        _text(task.type),
    )


def _status_rank(status: TaskStatus | str | None) -> int:
    try:
        return _STATUS_RANK.get(TaskStatus(status), _COMPLETED_RANK)
    except ValueError:
        return _COMPLETED_RANK


def merge_status(current: TaskStatus, incoming: TaskStatus | str | None) -> TaskStatus:
    """Combine a group status with one more member's status.

    Pending beats In Progress, which beats Completed. Statuses outside
    those two (e.g. Blocked) rank with Completed.
    """
    return _RANK_STATUS[min(_status_rank(current), _status_rank(incoming))]


def _new_group(task: Task) -> LogicalTaskGroup:
    return LogicalTaskGroup(
        name=task.name,
        description=task.description,
        due_date=task.due_date,
        priority=task.priority,
        type=task.type,
        project_id=task.project_id,
        tutor_id=task.tutor_id,
        status=_RANK_STATUS[_status_rank(task.status)],
        responsibles=[],
        task_ids=[],
    )


def _add_member(group: LogicalTaskGroup, task: Task) -> None:
    if task.id is not None:
        group.task_ids.append(task.id)
    if task.responsible_id is not None:
        group.responsibles.append(
            TaskResponsible(
                assignee_id=task.responsible_id,
                assignee_name=task.responsible.username if task.responsible else None,
                status=task.status,
            )
        )
    group.status = merge_status(group.status, task.status)


def _group(tasks: Iterable[Task]) -> list[LogicalTaskGroup]:
    # dict keeps first-seen key order
    groups: dict[GroupingKey, LogicalTaskGroup] = {}
    for task in tasks:
        key = grouping_key(task)
        group = groups.get(key)
        if group is None:
            group = groups[key] = _new_group(task)
        _add_member(group, task)
    return list(groups.values())


def group_for_tutor(tasks: Sequence[Task]) -> list[LogicalTaskGroup]:
    """Collapse a tutor's task rows into one entry per logical task.

    Args:
        tasks: Rows whose tutor_id is the requesting tutor

    Returns:
        Groups in first-seen order, each with its assignees in row order
    """
    return _group(tasks)


def view_for_non_tutor(tasks: Sequence[Task], user_id: int) -> list[Task]:
    """Rows visible to a student or admin: their own plus unassigned ones."""
    return [
        task for task in tasks
        if task.responsible_id is None or task.responsible_id == user_id
    ]


def group_single_task_for_tutor(
    task: Task,
    tasks: Sequence[Task],
    tutor_id: int,
) -> LogicalTaskGroup | None:
    """Build the grouped detail view for one row.

    Only rows owned by tutor_id and sharing the row's grouping key take
    part, so the detail has the same shape as the list entry.

    Returns:
        The group, or None if the tutor owns no row of that logical task
    """
    key = grouping_key(task)
    members = [
        other for other in tasks
        if other.tutor_id == tutor_id and grouping_key(other) == key
    ]
    if not members:
        return None
    return _group(members)[0]
