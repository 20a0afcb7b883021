"""
Tests for the internal scheduling endpoints.
Calendar and integration collaborators are replaced with in-memory fakes.
"""

import pytest
from fastapi.testclient import TestClient

from bookingdesk.config import settings
from bookingdesk import main as main_module
from bookingdesk.main import app
from bookingdesk.routes import scheduling as scheduling_routes
from bookingdesk.services.scheduling.errors import IntegrationNotFoundError
from bookingdesk.services.scheduling.scheduling_service import SchedulingService
from tests.conftest import SUNDAY_NOON_NY, FakeCalendarClient, FakeIntegrations

client = TestClient(app)

VALID_SLOT = {"start": "2025-01-13T14:00:00Z", "end": "2025-01-13T14:30:00Z"}


@pytest.fixture(autouse=True)
def no_api_key(monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_API_KEY", None)
    monkeypatch.setattr(settings, "N8N_API_KEY", None)


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def install_service(monkeypatch):
    def _install(calendar=None, integrations=None):
        calendar = calendar or FakeCalendarClient()
        integrations = integrations or FakeIntegrations()
        service = SchedulingService(
            integrations=integrations, calendar=calendar, clock=lambda: SUNDAY_NOON_NY
        )
        monkeypatch.setattr(scheduling_routes, "scheduling_service", service)
        return calendar, integrations

    return _install


@pytest.mark.parametrize("path", ["/internal/calendar/get-slots", "/internal/calendar/book-event"])
def test_get_is_not_allowed(path):
    response = client.get(path)

    assert response.status_code == 405
    assert response.json() == {
        "error": "This endpoint only accepts POST requests. Please use POST method with JSON body."
    }


def test_get_slots_returns_utc_instants(install_service):
    install_service()

    response = client.post(
        "/internal/calendar/get-slots", json={"tenantId": "user-123", "maxSlots": 2}
    )

    assert response.status_code == 200
    assert response.json() == {
        "slots": [
            {"start": "2025-01-13T14:00:00.000Z", "end": "2025-01-13T14:30:00.000Z"},
            {"start": "2025-01-13T14:30:00.000Z", "end": "2025-01-13T15:00:00.000Z"},
        ]
    }


def test_get_slots_empty_is_not_an_error(install_service):
    install_service()

    response = client.post(
        "/internal/calendar/get-slots",
        json={"tenantId": "user-123", "daysAhead": 1, "closedDays": ["sat", "sun", "mon"]},
    )

    assert response.status_code == 200
    assert response.json() == {"slots": []}


def test_get_slots_requires_identity(install_service):
    install_service()

    response = client.post("/internal/calendar/get-slots", json={"maxSlots": 2})

    assert response.status_code == 400
    assert response.json()["error"] == "workflowId or tenantId is required"


def test_get_slots_rejects_invalid_json(install_service):
    install_service()

    response = client.post(
        "/internal/calendar/get-slots",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400


def test_get_slots_wrong_api_key(install_service, monkeypatch):
    install_service()
    monkeypatch.setattr(settings, "INTERNAL_API_KEY", "secret-key")

    response = client.post(
        "/internal/calendar/get-slots", json={"tenantId": "user-123", "apiKey": "nope"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid API key"


def test_session_tenant_mismatch(install_service, apply_auth_override):
    install_service()
    apply_auth_override(app)

    response = client.post("/internal/calendar/get-slots", json={"tenantId": "someone-else"})

    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden: Tenant ID does not match session"


def test_session_identity_used(install_service, apply_auth_override):
    _, integrations = install_service()
    apply_auth_override(app)

    response = client.post("/internal/calendar/get-slots", json={"maxSlots": 1})

    assert response.status_code == 200
    assert integrations.requested == ["user-123"]


def test_get_slots_integration_missing(install_service):
    install_service(
        integrations=FakeIntegrations(
            error=IntegrationNotFoundError("Calendar integration not found or not connected")
        )
    )

    response = client.post("/internal/calendar/get-slots", json={"tenantId": "user-123"})

    assert response.status_code == 404
    assert response.json()["error"] == "Calendar integration not found or not connected"


def test_get_slots_upstream_failure(install_service, calendar_error):
    install_service(calendar=FakeCalendarClient(error=calendar_error))

    response = client.post("/internal/calendar/get-slots", json={"tenantId": "user-123"})

    assert response.status_code == 502
    assert response.json()["details"] == {"status_code": 404, "error_code": "notFound"}


def test_book_event_success(install_service):
    calendar, _ = install_service(
        calendar=FakeCalendarClient(
            created={
                "id": "evt-7",
                "htmlLink": "https://calendar.google.com/event?eid=evt-7",
                "hangoutLink": "https://meet.google.com/abc-defg-hij",
                "start": {"dateTime": "2025-01-13T09:00:00-05:00"},
                "end": {"dateTime": "2025-01-13T09:30:00-05:00"},
            }
        )
    )

    response = client.post(
        "/internal/calendar/book-event",
        json={
            "workflowId": None,
            "tenantId": "user-123",
            "slot": VALID_SLOT,
            "title": "Intro call",
            "attendees": '["a@x.com", "a@x.com"]',
            "addMeetLink": "true",
        },
    )

    assert response.status_code == 200
    assert response.json() == {
        "eventId": "evt-7",
        "htmlLink": "https://calendar.google.com/event?eid=evt-7",
        "start": "2025-01-13T09:00:00-05:00",
        "end": "2025-01-13T09:30:00-05:00",
        "meetLink": "https://meet.google.com/abc-defg-hij",
    }
    _, call = calendar.calls[0]
    assert call["payload"]["attendees"] == [{"email": "a@x.com", "displayName": "a@x.com"}]
    assert "conferenceData" in call["payload"]


def test_book_event_without_meet_link_returns_null(install_service):
    install_service()

    response = client.post(
        "/internal/calendar/book-event",
        json={"tenantId": "user-123", **VALID_SLOT, "title": "Intro call"},
    )

    assert response.status_code == 200
    assert response.json()["meetLink"] is None


def test_book_event_end_before_start(install_service):
    calendar, integrations = install_service()

    response = client.post(
        "/internal/calendar/book-event",
        json={
            "tenantId": "user-123",
            "slot": {"start": "2025-01-15T14:00:00Z", "end": "2025-01-15T13:00:00Z"},
            "title": "Intro call",
        },
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid slot: end time must be after start time"
    assert body["received"] == {"start": "2025-01-15T14:00:00Z", "end": "2025-01-15T13:00:00Z"}
    assert "suggestion" in body
    assert calendar.calls == []
    assert integrations.requested == []


def test_book_event_missing_title(install_service):
    install_service()

    response = client.post(
        "/internal/calendar/book-event", json={"tenantId": "user-123", "slot": VALID_SLOT}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Title is required"


def test_book_event_upstream_failure(install_service, calendar_error):
    install_service(calendar=FakeCalendarClient(error=calendar_error))

    response = client.post(
        "/internal/calendar/book-event",
        json={"tenantId": "user-123", "slot": VALID_SLOT, "title": "Intro call"},
    )

    assert response.status_code == 502
    assert response.json()["suggestion"].startswith("Calendar booking failed")


def test_cors_preflight_allows_any_origin():
    response = client.options(
        "/internal/calendar/get-slots",
        headers={"Origin": "https://widget.example", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "POST" in response.headers["Access-Control-Allow-Methods"]


def test_cors_header_on_post(install_service):
    install_service()

    response = client.post(
        "/internal/calendar/get-slots",
        json={"tenantId": "user-123"},
        headers={"Origin": "https://widget.example"},
    )

    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_request_log_carries_resolved_tenant(install_service, monkeypatch):
    install_service()
    logged = []
    monkeypatch.setattr(main_module, "log_request", lambda **fields: logged.append(fields))

    response = client.post(
        "/internal/calendar/get-slots",
        json={"tenantId": "user-123"},
        headers={"X-Request-ID": "req-42"},
    )

    assert response.headers["X-Request-ID"] == "req-42"
    assert logged[-1]["tenant_id"] == "user-123"
    assert logged[-1]["status_code"] == 200


def test_request_log_without_identity_has_no_tenant(monkeypatch):
    logged = []
    monkeypatch.setattr(main_module, "log_request", lambda **fields: logged.append(fields))

    response = client.get("/healthz")

    assert response.headers["X-Request-ID"]
    assert logged[-1]["tenant_id"] is None
