from datetime import UTC, datetime

import pytest

from bookingdesk.auth.verify import optional_session
from bookingdesk.models.domain.calendar_domain import CalendarEvent
from bookingdesk.models.domain.integration_domain import CalendarIntegration
from bookingdesk.services.calendar.google_client import GoogleCalendarError

# Sunday 2025-01-12 12:00 in New York (EST, UTC-5)
SUNDAY_NOON_NY = datetime(2025, 1, 12, 17, 0, tzinfo=UTC)


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[optional_session] = auth_override

    return _apply


@pytest.fixture
def sunday_noon_ny():
    return SUNDAY_NOON_NY


class FakeCalendarClient:
    """Records calls; returns canned busy periods, events and created events.

    Busy periods and events are filtered to the requested window.
    """

    def __init__(self, busy=None, events=None, created=None, error=None, list_error=None):
        self.busy = busy or []
        self.events = events or []
        self.created = created or {
            "id": "evt-1",
            "htmlLink": "https://calendar.google.com/event?eid=evt-1",
            "start": {"dateTime": "2025-01-13T14:00:00Z"},
            "end": {"dateTime": "2025-01-13T14:30:00Z"},
        }
        self.error = error
        self.list_error = list_error
        self.calls: list[tuple[str, dict]] = []

    async def query_busy(self, access_token, time_min, time_max, calendar_id="primary"):
        self.calls.append(
            ("query_busy", {"time_min": time_min, "time_max": time_max, "calendar_id": calendar_id})
        )
        if self.error:
            raise self.error
        return [period for period in self.busy if period.start < time_max and period.end > time_min]

    async def list_events(self, access_token, time_min, time_max, calendar_id="primary"):
        window = {"time_min": time_min, "time_max": time_max, "calendar_id": calendar_id}
        self.calls.append(("list_events", window))
        if self.list_error:
            raise self.list_error
        events = [CalendarEvent(item) for item in self.events]
        # Google returns only events overlapping the requested window
        return [
            event
            for event in events
            if event.start_time is None
            or (event.start_time < time_max and (event.end_time or event.start_time) > time_min)
        ]

    async def create_event(self, access_token, event_data, calendar_id="primary", send_updates="all"):
        self.calls.append(
            (
                "create_event",
                {"payload": event_data, "calendar_id": calendar_id, "send_updates": send_updates},
            )
        )
        if self.error:
            raise self.error
        return CalendarEvent(self.created)


class FakeIntegrations:
    def __init__(self, timezone="America/New_York", calendar_id="primary", error=None):
        self.integration = CalendarIntegration(
            integration_id="int-1",
            tenant_id="user-123",
            provider="GOOGLE_CALENDAR",
            calendar_id=calendar_id,
            timezone=timezone,
            access_token="access-token",
            refresh_token="refresh-token",
        )
        self.error = error
        self.requested: list[str] = []

    async def get_calendar_credential(self, tenant_id):
        self.requested.append(tenant_id)
        if self.error:
            raise self.error
        return self.integration, "access-token"


@pytest.fixture
def fake_calendar():
    return FakeCalendarClient()


@pytest.fixture
def fake_integrations():
    return FakeIntegrations()


@pytest.fixture
def calendar_error():
    return GoogleCalendarError("Calendar not found. Please check your calendar ID.", "notFound", 404)
