"""Notification fanout service.

Creating a notification and pushing it to connected clients happen in one
call:

1. Persist the Notification row and commit (server assigns id and time)
2. Publish the persisted row to the recipient's room on the event channel
3. Return the row

The push never happens for a row that failed to persist. A user with no
open connection gets nothing live and reconciles by polling unread
notifications. Publishing before the channel is initialised raises
ChannelNotReadyError: that is a startup-ordering bug, not a transient.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.events.channel import ChannelHolder
from app.events.types import ChannelEvent
from app.models.notification import Notification, NotificationResponse, NotificationStats
from app.services.errors import ForbiddenError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


@dataclass
class BulkNotificationResult:
    """Per-recipient outcome of a bulk notification.

    Attributes:
        notifications: Rows persisted (and published), in recipient order
        failed: Recipients whose row could not be persisted
    """

    notifications: list[Notification] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    @property
    def notified_user_ids(self) -> list[int]:
        return [n.user_id for n in self.notifications]


def to_payload(notification: Notification) -> dict[str, Any]:
    """Serialize a persisted notification for the wire."""
    return NotificationResponse.model_validate(notification).model_dump(mode="json")


class NotificationService:
    """Creates, pushes and manages user notifications.

    One instance per process, built at startup and injected wherever
    notifications are emitted.
    """

    def __init__(self, channel: ChannelHolder) -> None:
        self.channel = channel

    # -------------------------------------------------------------------------
    # Fanout
    # -------------------------------------------------------------------------

    def _persist(
        self,
        session: Session,
        user_id: int,
        message: str,
        type: str,
        related_id: int | None,
        related_type: str | None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            message=message,
            type=type,
            related_id=related_id,
            related_type=related_type,
        )
        try:
            session.add(notification)
            session.commit()
            session.refresh(notification)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(
                f"Could not store notification for user {user_id}", original=e
            ) from e
        return notification

    async def _publish(self, notification: Notification) -> int:
        delivered = await self.channel.publish_to_user(
            notification.user_id,
            ChannelEvent.NOTIFICATION,
            to_payload(notification),
        )
        logger.info(
            "Notification emitted",
            extra={
                "notification_id": notification.id,
                "user_id": notification.user_id,
                "type": notification.type,
                "connections": delivered,
            },
        )
        return delivered

    async def notify(
        self,
        session: Session,
        user_id: int,
        message: str,
        type: str,
        related_id: int | None = None,
        related_type: str | None = None,
    ) -> Notification:
        """Persist a notification, then push it to the user's room.

        Raises:
            PersistenceError: The row could not be stored; nothing was published
            ChannelNotReadyError: The channel was never initialised (row is stored)
        """
        notification = self._persist(session, user_id, message, type, related_id, related_type)
        await self._publish(notification)
        return notification

    async def notify_bulk(
        self,
        session: Session,
        user_ids: list[int],
        message: str,
        type: str,
        related_id: int | None = None,
        related_type: str | None = None,
    ) -> BulkNotificationResult:
        """Create one notification per distinct user and push each to its owner.

        Best effort: a recipient whose row fails to persist is reported in
        the result and does not stop the others. Repeated ids are notified
        once, in first-seen order.
        """
        result = BulkNotificationResult()

        for user_id in dict.fromkeys(user_ids):
            try:
                notification = self._persist(
                    session, user_id, message, type, related_id, related_type
                )
            except PersistenceError as e:
                result.failed.append({"user_id": user_id, "error": str(e)})
                logger.error(
                    "Bulk notification failed for recipient",
                    extra={"user_id": user_id, "type": type, "error": str(e.original)},
                )
                continue

            await self._publish(notification)
            result.notifications.append(notification)

        if result.failed:
            logger.warning(
                "Bulk notification partially failed",
                extra={
                    "type": type,
                    "sent": len(result.notifications),
                    "failed": len(result.failed),
                },
            )

        return result

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def list_for_user(
        self,
        session: Session,
        user_id: int,
        unread_only: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Notification]:
        """Newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)  # noqa: E712
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
        query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return list(session.exec(query).all())

    def unread_for_user(self, session: Session, user_id: int) -> list[Notification]:
        return self.list_for_user(session, user_id, unread_only=True)

    def stats_for_user(self, session: Session, user_id: int) -> NotificationStats:
        notifications = self.list_for_user(session, user_id)
        return NotificationStats(
            total=len(notifications),
            unread=sum(1 for n in notifications if not n.is_read),
            by_type=dict(Counter(n.type for n in notifications)),
        )

    def get_owned(self, session: Session, notification_id: int, user_id: int) -> Notification:
        """Fetch a notification, checking it belongs to user_id.

        Raises:
            NotFoundError: No such notification
            ForbiddenError: It belongs to someone else
        """
        notification = session.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        if notification.user_id != user_id:
            raise ForbiddenError(f"Notification {notification_id} belongs to another user")
        return notification

    def mark_read(self, session: Session, notification_id: int, user_id: int) -> Notification:
        notification = self.get_owned(session, notification_id, user_id)
        if not notification.is_read:
            notification.is_read = True
            session.add(notification)
            session.commit()
            session.refresh(notification)
        return notification

    def mark_all_read(self, session: Session, user_id: int) -> int:
        """Mark every unread notification of the user as read.

        Returns:
            int: Number of notifications updated
        """
        unread = self.unread_for_user(session, user_id)
        for notification in unread:
            notification.is_read = True
            session.add(notification)
        session.commit()

        logger.info(
            "Notifications marked as read",
            extra={"user_id": user_id, "count": len(unread)},
        )
        return len(unread)

    def delete(self, session: Session, notification_id: int, user_id: int) -> None:
        notification = self.get_owned(session, notification_id, user_id)
        session.delete(notification)
        session.commit()
