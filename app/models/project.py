"""Project entity model."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.user import User


class ProjectStatus(str, Enum):
    """Project lifecycle values."""
    PLANNING = "Planificación"
    IN_PROGRESS = "En progreso"
    COMPLETED = "Completado"
    PAUSED = "Pausado"


class ProjectParticipant(SQLModel, table=True):
    """Junction table for project-student many-to-many relationship."""

    __tablename__ = "project_participants"

    project_id: int = Field(foreign_key="projects.id", primary_key=True)
    user_id: int = Field(foreign_key="users.id", primary_key=True)


class Project(SQLModel, table=True):
    """Project database model."""

    __tablename__ = "projects"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    start_date: datetime | None = Field(default=None)
    end_date: datetime | None = Field(default=None, index=True)
    status: ProjectStatus = Field(default=ProjectStatus.PLANNING, index=True)
    tutor_id: int | None = Field(default=None, foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    participants: list["User"] = Relationship(link_model=ProjectParticipant)


class ProjectCreate(SQLModel):
    """Schema for project creation."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    start_date: datetime | None = None
    end_date: datetime | None = None
    status: ProjectStatus = ProjectStatus.PLANNING
    participant_ids: list[int] = Field(default_factory=list)


class ProjectUpdate(SQLModel):
    """Schema for project update. participant_ids replaces the whole list."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    start_date: datetime | None = None
    end_date: datetime | None = None
    status: ProjectStatus | None = None
    participant_ids: list[int] | None = None


class ProjectResponse(SQLModel):
    """Schema for project response."""

    id: int
    name: str
    description: str | None
    start_date: datetime | None
    end_date: datetime | None
    status: ProjectStatus
    tutor_id: int | None
    participant_ids: list[int] = []
    created_at: datetime

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            description=project.description,
            start_date=project.start_date,
            end_date=project.end_date,
            status=project.status,
            tutor_id=project.tutor_id,
            participant_ids=[user.id for user in project.participants],
            created_at=project.created_at,
        )
