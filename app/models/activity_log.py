"""ActivityLog entity model for user activity history."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class ActivityLog(SQLModel, table=True):
    """Activity log database model for immutable activity records."""

    __tablename__ = "activity_logs"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    action: str = Field(max_length=50, index=True)
    entity_type: str = Field(max_length=50, index=True)
    entity_id: int | None = Field(default=None, index=True)
    details: str | None = Field(default=None, max_length=1000)
    old_values: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    new_values: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    timestamp: datetime = Field(default_factory=datetime.utcnow, index=True)


class ActivityLogResponse(SQLModel):
    """Schema for activity log response."""

    id: int
    user_id: int
    action: str
    entity_type: str
    entity_id: int | None
    details: str | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    timestamp: datetime

    model_config = {"from_attributes": True}


class ActivityLogListResponse(SQLModel):
    """Schema for activity log list response."""

    logs: list[ActivityLogResponse]
    total: int
