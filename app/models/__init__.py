"""SQLModel entities for the EduTrack backend."""

from app.models.activity_log import ActivityLog
from app.models.notification import Notification, NotificationType
from app.models.project import Project, ProjectParticipant, ProjectStatus
from app.models.reminder import Reminder
from app.models.task import LogicalTaskGroup, Priority, Task, TaskResponsible, TaskStatus, TaskType
from app.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Project",
    "ProjectParticipant",
    "ProjectStatus",
    "Task",
    "TaskStatus",
    "TaskType",
    "Priority",
    "TaskResponsible",
    "LogicalTaskGroup",
    "Notification",
    "NotificationType",
    "Reminder",
    "ActivityLog",
]
