"""Task API endpoints."""

from fastapi import APIRouter, Query, status

from app.api.deps import Calendar, CurrentUser, DBSession, Notifications, TutorUser, raise_http_error
from app.models.task import (
    LogicalTaskGroup,
    TaskCreate,
    TaskCreateResponse,
    TaskResponse,
    TaskStatusUpdate,
    TaskUpdate,
)
from app.services.errors import NotFoundError, ServiceError
from app.services.tasks import (
    change_task_status,
    create_tasks,
    delete_task,
    get_task,
    get_task_group,
    get_tasks_for_user,
    update_task,
)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


@router.post("", response_model=TaskCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_task_endpoint(
    session: DBSession,
    tutor: TutorUser,
    task_data: TaskCreate,
    notifications: Notifications,
    calendar: Calendar,
) -> TaskCreateResponse:
    """Create one task row per assignee and notify them."""
    try:
        tasks, result = await create_tasks(session, tutor, task_data, notifications, calendar)
    except ServiceError as e:
        raise_http_error(e)

    return TaskCreateResponse(
        tasks=[TaskResponse.model_validate(t) for t in tasks],
        notified_user_ids=result.notified_user_ids,
    )


@router.get("", response_model=None)
def list_tasks_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    project_id: int | None = Query(default=None, description="Filter by project"),
) -> list[LogicalTaskGroup] | list[TaskResponse]:
    """Grouped tasks for tutors, own and unassigned rows for everyone else."""
    tasks = get_tasks_for_user(session, current_user, project_id)
    if current_user.is_tutor:
        return tasks
    return [TaskResponse.model_validate(t) for t in tasks]


@router.get("/{task_id}", response_model=None)
def get_task_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    task_id: int,
) -> LogicalTaskGroup | TaskResponse:
    """Grouped detail for the owning tutor; the row itself for its assignee."""
    try:
        if current_user.is_tutor:
            return get_task_group(session, task_id, current_user)

        task = get_task(session, task_id)
        if task.responsible_id not in (None, current_user.id):
            raise NotFoundError(f"Task {task_id} not found")
    except ServiceError as e:
        raise_http_error(e)

    return TaskResponse.model_validate(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task_endpoint(
    session: DBSession,
    tutor: TutorUser,
    task_id: int,
    task_data: TaskUpdate,
    notifications: Notifications,
) -> TaskResponse:
    """Update one task row."""
    try:
        task = await update_task(session, task_id, tutor, task_data, notifications)
    except ServiceError as e:
        raise_http_error(e)

    return TaskResponse.model_validate(task)


@router.patch("/{task_id}/status", response_model=TaskResponse)
async def change_task_status_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    task_id: int,
    status_data: TaskStatusUpdate,
    notifications: Notifications,
) -> TaskResponse:
    """Change the status of a task assigned to the caller."""
    try:
        task = await change_task_status(
            session, task_id, current_user, status_data.status, notifications
        )
    except ServiceError as e:
        raise_http_error(e)

    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task_endpoint(
    session: DBSession,
    tutor: TutorUser,
    task_id: int,
    notifications: Notifications,
) -> None:
    """Delete a task row."""
    try:
        await delete_task(session, task_id, tutor, notifications)
    except ServiceError as e:
        raise_http_error(e)
