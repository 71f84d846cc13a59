"""Calendar sync collaborator.

When a task with a due date is created, an event is pushed to an
external calendar bridge over HTTP. The sync is best-effort: it is never
retried and its failures never reach the caller.
"""

import logging
from datetime import timedelta
from typing import Any

import httpx

from app.models.task import Task

logger = logging.getLogger(__name__)


class CalendarSync:
    """Posts task due dates to the calendar bridge at CALENDAR_SYNC_URL.

    Disabled when no URL is configured.
    """

    def __init__(
        self,
        url: str = "",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the calendar sync.

        Args:
            url: Endpoint receiving calendar events (empty disables sync)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.url = url
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def build_event(self, task: Task) -> dict[str, Any]:
        """Calendar event body for a task's due date."""
        start = task.due_date
        end = start + timedelta(hours=1)
        return {
            "summary": task.name,
            "description": task.description or "",
            "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": end.isoformat(), "timeZone": "UTC"},
            "attendee_user_id": task.responsible_id,
            "task_id": task.id,
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "popup", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 60},
                ],
            },
        }

    async def sync_task(self, task: Task) -> bool:
        """Push one task to the calendar.

        Returns:
            bool: True if the bridge accepted the event, False otherwise
        """
        if not self.enabled or task.due_date is None:
            return False

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.url, json=self.build_event(task))
                response.raise_for_status()

        except httpx.ConnectError:
            logger.warning(
                "Calendar bridge not available, task not synced",
                extra={"task_id": task.id},
            )
            return False

        except httpx.HTTPStatusError as e:
            logger.error(
                "Calendar sync failed with HTTP error",
                extra={
                    "task_id": task.id,
                    "status_code": e.response.status_code,
                    "response": e.response.text,
                },
            )
            return False

        except httpx.HTTPError as e:
            logger.error(
                "Unexpected error syncing task to calendar",
                extra={"task_id": task.id, "error": str(e)},
            )
            return False

        logger.info("Task synced to calendar", extra={"task_id": task.id})
        return True
