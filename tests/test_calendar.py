"""Tests for the calendar sync collaborator."""

from datetime import datetime

import httpx
import pytest

from app.models.task import Task
from app.services.calendar import CalendarSync

DUE = datetime(2030, 4, 2, 15, 0)


def make_task(**overrides) -> Task:
    fields = {"id": 9, "name": "Essay", "description": "500 words", "due_date": DUE, "responsible_id": 4}
    fields.update(overrides)
    return Task(**fields)


class TestCalendarSync:

    def test_disabled_without_url(self):
        assert CalendarSync().enabled is False

    def test_build_event(self):
        event = CalendarSync("http://calendar.local/events").build_event(make_task())

        assert event["summary"] == "Essay"
        assert event["start"]["dateTime"] == "2030-04-02T15:00:00"
        assert event["end"]["dateTime"] == "2030-04-02T16:00:00"
        assert event["attendee_user_id"] == 4
        assert [o["minutes"] for o in event["reminders"]["overrides"]] == [1440, 60]

    @pytest.mark.asyncio
    async def test_sync_posts_event(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(201, json={"id": "evt-1"})

        calendar = CalendarSync("http://calendar.local/events", transport=httpx.MockTransport(handler))

        assert await calendar.sync_task(make_task()) is True
        assert len(received) == 1
        assert received[0].method == "POST"
        assert received[0].url == "http://calendar.local/events"

    @pytest.mark.asyncio
    async def test_http_error_is_reported_not_raised(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        calendar = CalendarSync("http://calendar.local/events", transport=transport)

        assert await calendar.sync_task(make_task()) is False

    @pytest.mark.asyncio
    async def test_connect_error_is_reported_not_raised(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        calendar = CalendarSync("http://calendar.local/events", transport=httpx.MockTransport(handler))

        assert await calendar.sync_task(make_task()) is False

    @pytest.mark.asyncio
    async def test_skipped_without_due_date_or_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        transport = httpx.MockTransport(handler)

        assert await CalendarSync("http://calendar.local/events", transport=transport).sync_task(
            make_task(due_date=None)
        ) is False
        assert await CalendarSync("", transport=transport).sync_task(make_task()) is False
