"""User entity model."""

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    """Roles known to the platform."""
    ADMIN = "Admin"
    TUTOR = "Tutor"
    STUDENT = "Alumno"


class UserBase(SQLModel):
    """Base User schema."""

    username: str = Field(max_length=255, unique=True, index=True)


class User(UserBase, table=True):
    """User database model."""

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str = Field(max_length=255)
    role: UserRole = Field(default=UserRole.STUDENT, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_tutor(self) -> bool:
        return self.role == UserRole.TUTOR


class UserCreate(SQLModel):
    """Schema for user registration."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    role: UserRole = UserRole.STUDENT


class UserLogin(SQLModel):
    """Schema for user login."""

    username: str
    password: str


class UserResponse(SQLModel):
    """Schema for user response (no password)."""

    id: int
    username: str
    role: UserRole
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(SQLModel):
    """Schema for authentication response."""

    user: UserResponse
    token: str
    expires_at: datetime
