"""Notification API endpoints.

Every endpoint works on the caller's own notifications, except creation
(single and bulk) which is reserved to tutors and admins.
"""

from fastapi import APIRouter, Query, status

from app.api.deps import CurrentUser, DBSession, Notifications, TutorUser, raise_http_error
from app.models.notification import (
    BulkNotificationFailure,
    BulkNotificationResponse,
    NotificationBulkCreate,
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
    NotificationStats,
)
from app.models.user import User
from app.services.errors import NotFoundError, ServiceError

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
def list_notifications_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    notifications: Notifications,
    unread_only: bool = Query(default=False, description="Only unread notifications"),
    limit: int = Query(default=50, ge=1, le=200, description="Maximum number of notifications"),
    offset: int = Query(default=0, ge=0, description="Number of notifications to skip"),
) -> NotificationListResponse:
    """List the caller's notifications, newest first."""
    items = notifications.list_for_user(session, current_user.id, unread_only, limit, offset)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in items],
        total=len(items),
    )


@router.get("/unread", response_model=NotificationListResponse)
def list_unread_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    notifications: Notifications,
) -> NotificationListResponse:
    items = notifications.unread_for_user(session, current_user.id)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in items],
        total=len(items),
    )


@router.get("/stats", response_model=NotificationStats)
def notification_stats_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    notifications: Notifications,
) -> NotificationStats:
    return notifications.stats_for_user(session, current_user.id)


@router.patch("/read-all")
def mark_all_read_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    notifications: Notifications,
) -> dict[str, int]:
    """Mark every unread notification of the caller as read."""
    updated = notifications.mark_all_read(session, current_user.id)
    return {"updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_read_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    notifications: Notifications,
    notification_id: int,
) -> NotificationResponse:
    try:
        notification = notifications.mark_read(session, notification_id, current_user.id)
    except ServiceError as e:
        raise_http_error(e)

    return NotificationResponse.model_validate(notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    notifications: Notifications,
    notification_id: int,
) -> None:
    try:
        notifications.delete(session, notification_id, current_user.id)
    except ServiceError as e:
        raise_http_error(e)


@router.post("", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def create_notification_endpoint(
    session: DBSession,
    sender: TutorUser,
    notifications: Notifications,
    data: NotificationCreate,
) -> NotificationResponse:
    """Send one notification to one user."""
    try:
        if session.get(User, data.user_id) is None:
            raise NotFoundError(f"User {data.user_id} not found")
        notification = await notifications.notify(
            session,
            data.user_id,
            data.message,
            data.type,
            related_id=data.related_id,
            related_type=data.related_type,
        )
    except ServiceError as e:
        raise_http_error(e)

    return NotificationResponse.model_validate(notification)


@router.post("/bulk", response_model=BulkNotificationResponse, status_code=status.HTTP_201_CREATED)
async def bulk_notify_endpoint(
    session: DBSession,
    sender: TutorUser,
    notifications: Notifications,
    data: NotificationBulkCreate,
) -> BulkNotificationResponse:
    """Send the same notification to several users."""
    try:
        result = await notifications.notify_bulk(
            session,
            data.user_ids,
            data.message,
            data.type,
            related_id=data.related_id,
            related_type=data.related_type,
        )
    except ServiceError as e:
        raise_http_error(e)

    return BulkNotificationResponse(
        notifications=[NotificationResponse.model_validate(n) for n in result.notifications],
        failed=[BulkNotificationFailure(**f) for f in result.failed],
    )
