"""Notification entity model."""

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel


class NotificationType(str, Enum):
    """Known notification type tags.

    The column itself is free-form; these are the tags the backend emits.
    """

    INFO = "info"
    TASK_ASSIGNED = "task_assigned"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    TASK_STATUS_CHANGED = "task_status_changed"
    PROJECT_ASSIGNED = "project_assigned"
    PROJECT_UPDATED = "project_updated"
    PROJECT_DELETED = "project_deleted"
    DEADLINE_REMINDER = "deadline_reminder"
    CUSTOM_REMINDER = "custom_reminder"


class Notification(SQLModel, table=True):
    """Notification database model.

    user_id and created_at never change after insert; only is_read does.
    """

    __tablename__ = "notifications"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    message: str
    type: str = Field(max_length=50, index=True)
    is_read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    related_id: int | None = Field(default=None)
    related_type: str | None = Field(default=None, max_length=50)


class NotificationCreate(SQLModel):
    """Schema for notification creation."""

    user_id: int
    message: str = Field(min_length=1)
    type: str = Field(default=NotificationType.INFO.value, max_length=50)
    related_id: int | None = None
    related_type: str | None = Field(default=None, max_length=50)


class NotificationBulkCreate(SQLModel):
    """Schema for creating the same notification for several users."""

    user_ids: list[int] = Field(min_length=1)
    message: str = Field(min_length=1)
    type: str = Field(default=NotificationType.INFO.value, max_length=50)
    related_id: int | None = None
    related_type: str | None = Field(default=None, max_length=50)


class NotificationResponse(SQLModel):
    """Schema for notification response."""

    id: int
    user_id: int
    message: str
    type: str
    is_read: bool
    created_at: datetime
    related_id: int | None
    related_type: str | None

    model_config = {"from_attributes": True}


class NotificationListResponse(SQLModel):
    """Schema for notification list response."""

    notifications: list[NotificationResponse]
    total: int


class NotificationStats(SQLModel):
    """Per-user notification counters."""

    total: int
    unread: int
    by_type: dict[str, int]


class BulkNotificationFailure(SQLModel):
    """A recipient whose notification could not be persisted."""

    user_id: int
    error: str


class BulkNotificationResponse(SQLModel):
    """Schema for bulk notification response."""

    notifications: list[NotificationResponse]
    failed: list[BulkNotificationFailure]
