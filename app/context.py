"""Process-wide service wiring.

Built once at startup and stored on app.state.context. Tests build their
own context around an in-memory database and a fake channel.
"""

from collections.abc import Callable
from dataclasses import dataclass

from sqlmodel import Session

from app.config import Settings
from app.db.session import new_session
from app.events.channel import ChannelHolder, ConnectionManager
from app.services.calendar import CalendarSync
from app.services.notifications import NotificationService
from app.services.reminders import ReminderScheduler


@dataclass
class AppContext:
    """Long-lived collaborators shared by the API layer."""

    channel: ChannelHolder
    connections: ConnectionManager
    notifications: NotificationService
    reminders: ReminderScheduler
    calendar: CalendarSync
    session_factory: Callable[[], Session] = new_session


def build_context(settings: Settings) -> AppContext:
    """Wire services from settings.

    The channel holder is created empty; the lifespan sets it to the
    connection manager once the socket layer is up.
    """
    channel = ChannelHolder()
    notifications = NotificationService(channel)
    return AppContext(
        channel=channel,
        connections=ConnectionManager(),
        notifications=notifications,
        reminders=ReminderScheduler(
            notifications,
            sweep_interval_minutes=settings.DEADLINE_SWEEP_INTERVAL_MINUTES,
            deduplicate_deadlines=settings.DEADLINE_REMINDER_DEDUPLICATE,
        ),
        calendar=CalendarSync(
            url=settings.CALENDAR_SYNC_URL,
            timeout=settings.CALENDAR_SYNC_TIMEOUT_SECONDS,
        ),
    )
