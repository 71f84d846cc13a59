"""Project service."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.models.notification import NotificationType
from app.models.project import Project, ProjectCreate, ProjectParticipant, ProjectUpdate
from app.models.task import Task
from app.models.user import User, UserRole
from app.services.activity_log import log_activity
from app.services.errors import ForbiddenError, NotFoundError, PersistenceError, ValidationError
from app.services.notifications import BulkNotificationResult, NotificationService

logger = logging.getLogger(__name__)


def _commit(session: Session, message: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(message, original=e) from e


def _resolve_participants(session: Session, tutor: User, user_ids: list[int]) -> list[User]:
    """Load participants in first-seen order. The tutor is never one of them."""
    participants = []
    for user_id in dict.fromkeys(user_ids):
        if user_id == tutor.id:
            continue
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        participants.append(user)
    return participants


async def create_project(
    session: Session,
    tutor: User,
    data: ProjectCreate,
    notifications: NotificationService,
) -> tuple[Project, BulkNotificationResult]:
    """
    Create a project owned by the tutor and notify its participants.
    The tutor is never a participant of their own project.
    """
    participants = _resolve_participants(session, tutor, data.participant_ids)
    participant_ids = [user.id for user in participants]

    project = Project(
        **data.model_dump(exclude={"participant_ids"}),
        tutor_id=tutor.id,
        participants=participants,
    )
    session.add(project)
    _commit(session, "Could not store project")
    session.refresh(project)

    logger.info(
        "Project created",
        extra={"project_id": project.id, "tutor_id": tutor.id, "participants": participant_ids},
    )

    result = BulkNotificationResult()
    if participant_ids:
        result = await notifications.notify_bulk(
            session,
            participant_ids,
            f"You have been assigned to project: {project.name}",
            NotificationType.PROJECT_ASSIGNED.value,
            related_id=project.id,
            related_type="project",
        )

    log_activity(
        session, tutor.id, "project.created", "project", project.id,
        new_values={"name": project.name, "participant_ids": participant_ids},
    )
    return project, result


def get_projects_for_user(session: Session, user: User) -> list[Project]:
    """
    Tutors see the projects they own, students the ones they take part in.
    Other roles see none.
    """
    if user.role == UserRole.TUTOR:
        query = select(Project).where(Project.tutor_id == user.id)
    elif user.role == UserRole.STUDENT:
        query = (
            select(Project)
            .join(ProjectParticipant, ProjectParticipant.project_id == Project.id)
            .where(ProjectParticipant.user_id == user.id)
        )
    else:
        return []
    return list(session.exec(query.order_by(Project.id)).all())


def get_project(session: Session, project_id: int, user: User) -> Project:
    """
    Raises:
        NotFoundError: No such project
        ForbiddenError: The user neither owns nor takes part in it
    """
    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    if user.role != UserRole.ADMIN and project.tutor_id != user.id and all(
        participant.id != user.id for participant in project.participants
    ):
        raise ForbiddenError(f"Project {project_id} is not visible to user {user.id}")
    return project


def get_owned_project(session: Session, project_id: int, tutor: User) -> Project:
    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    if project.tutor_id != tutor.id:
        raise ForbiddenError(f"Project {project_id} belongs to another tutor")
    return project


async def update_project(
    session: Session,
    project_id: int,
    tutor: User,
    data: ProjectUpdate,
    notifications: NotificationService,
) -> Project:
    """Apply the owning tutor's changes.

    New participants are told they were assigned; participants who stay
    are told the project changed. Removed participants hear nothing.

    Raises:
        NotFoundError: No such project, or an unknown participant id
        ForbiddenError: The project belongs to another tutor
        ValidationError: Blank name
    """
    project = get_owned_project(session, project_id, tutor)

    changes = data.model_dump(exclude_unset=True, exclude={"participant_ids"})
    if "name" in changes and (changes["name"] is None or not changes["name"].strip()):
        raise ValidationError("Project name cannot be empty")
    if "status" in changes and changes["status"] is None:
        del changes["status"]

    previous_ids = [user.id for user in project.participants]
    if data.participant_ids is not None:
        project.participants = _resolve_participants(session, tutor, data.participant_ids)

    for key, value in changes.items():
        setattr(project, key, value)

    session.add(project)
    _commit(session, f"Could not update project {project_id}")
    session.refresh(project)

    current_ids = [user.id for user in project.participants]
    added_ids = [user_id for user_id in current_ids if user_id not in previous_ids]
    kept_ids = [user_id for user_id in current_ids if user_id in previous_ids]

    if added_ids:
        await notifications.notify_bulk(
            session,
            added_ids,
            f"You have been assigned to project: {project.name}",
            NotificationType.PROJECT_ASSIGNED.value,
            related_id=project.id,
            related_type="project",
        )
    if kept_ids:
        await notifications.notify_bulk(
            session,
            kept_ids,
            f'Project "{project.name}" was updated',
            NotificationType.PROJECT_UPDATED.value,
            related_id=project.id,
            related_type="project",
        )

    logger.info(
        "Project updated",
        extra={"project_id": project.id, "added": added_ids, "kept": kept_ids},
    )
    log_activity(
        session, tutor.id, "project.updated", "project", project.id,
        old_values={"participant_ids": previous_ids},
        new_values={"participant_ids": current_ids, "fields": sorted(changes)},
    )
    return project


async def delete_project(
    session: Session,
    project_id: int,
    tutor: User,
    notifications: NotificationService,
) -> None:
    """Delete a project owned by the tutor and tell its participants.

    Tasks of the project are kept and detached from it.
    """
    project = get_owned_project(session, project_id, tutor)
    name = project.name
    participant_ids = [user.id for user in project.participants]

    for task in session.exec(select(Task).where(Task.project_id == project_id)).all():
        task.project_id = None
        session.add(task)

    project.participants = []
    session.delete(project)
    _commit(session, f"Could not delete project {project_id}")

    logger.info("Project deleted", extra={"project_id": project_id, "tutor_id": tutor.id})

    if participant_ids:
        await notifications.notify_bulk(
            session,
            participant_ids,
            f'Project "{name}" was deleted',
            NotificationType.PROJECT_DELETED.value,
            related_id=project_id,
            related_type="project",
        )

    log_activity(session, tutor.id, "project.deleted", "project", project_id, old_values={"name": name})
