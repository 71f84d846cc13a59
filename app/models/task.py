"""Task entity model and task view schemas."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.project import Project
    from app.models.user import User


class TaskStatus(str, Enum):
    """Per-assignee task status."""
    PENDING = "Pendiente"
    IN_PROGRESS = "En progreso"
    COMPLETED = "Completada"
    BLOCKED = "Bloqueada"


class Priority(str, Enum):
    """Task priority levels."""
    LOW = "Baja"
    MEDIUM = "Media"
    HIGH = "Alta"


class TaskType(str, Enum):
    """Task kinds."""
    DAILY = "daily"
    PROJECT = "project"


class TaskBase(SQLModel):
    """Base Task schema."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)


class Task(TaskBase, table=True):
    """Task database model.

    A task handed to several students is stored as one row per assignee;
    the rows share name, description, due date, project, priority and type.
    """

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    due_date: datetime | None = Field(default=None, index=True)
    priority: Priority = Field(default=Priority.MEDIUM)
    status: TaskStatus = Field(default=TaskStatus.PENDING, index=True)
    type: TaskType = Field(default=TaskType.PROJECT)
    project_id: int | None = Field(default=None, foreign_key="projects.id", index=True)
    responsible_id: int | None = Field(default=None, foreign_key="users.id", index=True)
    tutor_id: int | None = Field(default=None, foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    responsible: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "Task.responsible_id"},
    )
    project: Optional["Project"] = Relationship()


class TaskCreate(SQLModel):
    """Schema for task creation.

    One task row is created per entry in responsible_ids; an empty list
    creates a single unassigned task.
    """

    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    due_date: datetime | None = None
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    type: TaskType = TaskType.PROJECT
    project_id: int | None = None
    responsible_ids: list[int] = Field(default_factory=list)


class TaskUpdate(SQLModel):
    """Schema for task update."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    due_date: datetime | None = None
    priority: Priority | None = None
    status: TaskStatus | None = None
    type: TaskType | None = None
    project_id: int | None = None
    responsible_id: int | None = None


class TaskStatusUpdate(SQLModel):
    """Schema for an assignee changing their own task status."""

    status: TaskStatus


class TaskResponse(SQLModel):
    """Schema for task response."""

    id: int
    name: str
    description: str | None
    due_date: datetime | None
    priority: Priority
    status: TaskStatus
    type: TaskType
    project_id: int | None
    responsible_id: int | None
    tutor_id: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskResponsible(SQLModel):
    """One assignee inside a logical task group."""

    assignee_id: int
    assignee_name: str | None = None
    status: TaskStatus


class LogicalTaskGroup(SQLModel):
    """Aggregated view of the task rows that make up one logical task."""

    name: str
    description: str | None
    due_date: datetime | None
    priority: Priority | None
    type: TaskType | None
    project_id: int | None
    tutor_id: int | None
    status: TaskStatus
    responsibles: list[TaskResponsible] = []
    task_ids: list[int] = []


class TaskCreateResponse(SQLModel):
    """Schema for the rows created from one TaskCreate request."""

    tasks: list[TaskResponse]
    notified_user_ids: list[int]
