"""API dependencies for dependency injection."""

from collections.abc import Generator
from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.context import AppContext
from app.db.session import get_session
from app.models.user import User, UserRole
from app.services.auth import decode_user_id
from app.services.calendar import CalendarSync
from app.services.errors import (
    ChannelNotReadyError,
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    ServiceError,
    ValidationError,
)
from app.services.notifications import NotificationService
from app.services.reminders import ReminderScheduler

security = HTTPBearer()


def get_db_session() -> Generator[Session, None, None]:
    """Get database session dependency."""
    yield from get_session()


DBSession = Annotated[Session, Depends(get_db_session)]


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_notification_service(
    context: Annotated[AppContext, Depends(get_context)],
) -> NotificationService:
    return context.notifications


def get_reminder_scheduler(
    context: Annotated[AppContext, Depends(get_context)],
) -> ReminderScheduler:
    return context.reminders


def get_calendar(context: Annotated[AppContext, Depends(get_context)]) -> CalendarSync:
    return context.calendar


Notifications = Annotated[NotificationService, Depends(get_notification_service)]
Reminders = Annotated[ReminderScheduler, Depends(get_reminder_scheduler)]
Calendar = Annotated[CalendarSync, Depends(get_calendar)]


def get_current_user(
    session: DBSession,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> User:
    """Get current authenticated user from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = decode_user_id(credentials.credentials)
    if user_id is None:
        raise credentials_exception

    user = session.get(User, user_id)
    if user is None:
        raise credentials_exception

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_tutor(current_user: CurrentUser) -> User:
    """Only tutors (and admins) may manage projects and tasks."""
    if current_user.role not in (UserRole.TUTOR, UserRole.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tutor role required",
        )
    return current_user


TutorUser = Annotated[User, Depends(require_tutor)]


def raise_http_error(error: ServiceError) -> NoReturn:
    """Translate a service error into the matching HTTP response."""
    if isinstance(error, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, ForbiddenError):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, ValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, ChannelNotReadyError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    detail = str(error) if not isinstance(error, PersistenceError) else "Database error"
    raise HTTPException(status_code=status_code, detail=detail) from error
