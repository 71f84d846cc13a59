"""Reminder entity model."""

from datetime import datetime

from sqlmodel import Field, SQLModel


class Reminder(SQLModel, table=True):
    """User-authored reminder.

    is_active flips to False once the reminder fires; the row is kept.
    """

    __tablename__ = "reminders"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    title: str = Field(max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    scheduled_at: datetime = Field(index=True)
    is_active: bool = Field(default=True, index=True)
    related_id: int | None = Field(default=None)
    related_type: str | None = Field(default=None, max_length=50)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    fired_at: datetime | None = Field(default=None)


class ReminderCreate(SQLModel):
    """Schema for reminder creation."""

    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    scheduled_at: datetime
    related_id: int | None = None
    related_type: str | None = Field(default=None, max_length=50)


class ReminderUpdate(SQLModel):
    """Schema for reminder update."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    scheduled_at: datetime | None = None
    is_active: bool | None = None
    related_id: int | None = None
    related_type: str | None = Field(default=None, max_length=50)


class CustomReminderCreate(SQLModel):
    """Schema for an ad-hoc reminder that is not stored as a Reminder row."""

    message: str = Field(min_length=1)
    scheduled_at: datetime
    related_id: int | None = None
    related_type: str | None = Field(default=None, max_length=50)


class ReminderResponse(SQLModel):
    """Schema for reminder response."""

    id: int
    user_id: int
    title: str
    description: str | None
    scheduled_at: datetime
    is_active: bool
    related_id: int | None
    related_type: str | None
    created_at: datetime
    fired_at: datetime | None

    model_config = {"from_attributes": True}


class CustomReminderResponse(SQLModel):
    """Schema returned after scheduling an ad-hoc reminder."""

    job_id: str
    scheduled_at: datetime


class SchedulerStatus(SQLModel):
    """Runtime state of the reminder scheduler."""

    running: bool
    next_sweep: datetime | None = None
    active_jobs: int = 0
