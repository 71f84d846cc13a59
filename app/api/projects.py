"""Project API endpoints."""

from fastapi import APIRouter, status

from app.api.deps import CurrentUser, DBSession, Notifications, TutorUser, raise_http_error
from app.models.project import ProjectCreate, ProjectResponse, ProjectUpdate
from app.services.errors import ServiceError
from app.services.projects import (
    create_project,
    delete_project,
    get_project,
    get_projects_for_user,
    update_project,
)

router = APIRouter(prefix="/api/projects", tags=["Projects"])


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project_endpoint(
    session: DBSession,
    tutor: TutorUser,
    project_data: ProjectCreate,
    notifications: Notifications,
) -> ProjectResponse:
    """Create a project and notify its participants."""
    try:
        project, _ = await create_project(session, tutor, project_data, notifications)
    except ServiceError as e:
        raise_http_error(e)

    return ProjectResponse.from_project(project)


@router.get("", response_model=list[ProjectResponse])
def list_projects_endpoint(session: DBSession, current_user: CurrentUser) -> list[ProjectResponse]:
    """Projects owned by (tutor) or shared with (student) the caller."""
    projects = get_projects_for_user(session, current_user)
    return [ProjectResponse.from_project(p) for p in projects]


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    project_id: int,
) -> ProjectResponse:
    try:
        project = get_project(session, project_id, current_user)
    except ServiceError as e:
        raise_http_error(e)

    return ProjectResponse.from_project(project)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project_endpoint(
    session: DBSession,
    tutor: TutorUser,
    project_id: int,
    project_data: ProjectUpdate,
    notifications: Notifications,
) -> ProjectResponse:
    """Update a project owned by the caller."""
    try:
        project = await update_project(session, project_id, tutor, project_data, notifications)
    except ServiceError as e:
        raise_http_error(e)

    return ProjectResponse.from_project(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project_endpoint(
    session: DBSession,
    tutor: TutorUser,
    project_id: int,
    notifications: Notifications,
) -> None:
    """Delete a project owned by the caller."""
    try:
        await delete_project(session, project_id, tutor, notifications)
    except ServiceError as e:
        raise_http_error(e)
