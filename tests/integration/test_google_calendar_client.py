import json
import re
from datetime import UTC, datetime

import httpx
import pytest

from bookingdesk.services.calendar.google_client import GoogleCalendarError, GoogleCalendarService

FREEBUSY_URL = "https://www.googleapis.com/calendar/v3/freeBusy"
EVENTS_URL = re.compile(r"https://www\.googleapis\.com/calendar/v3/calendars/primary/events(\?.*)?$")

TIME_MIN = datetime(2025, 1, 12, 17, 0, tzinfo=UTC)
TIME_MAX = datetime(2025, 1, 19, 17, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_query_busy_success(httpx_mock):
    service = GoogleCalendarService()

    httpx_mock.add_response(
        method="POST",
        url=FREEBUSY_URL,
        json={
            "calendars": {
                "primary": {
                    "busy": [
                        {"start": "2025-01-13T15:00:00Z", "end": "2025-01-13T15:30:00Z"},
                        {"start": "broken"},
                    ]
                }
            }
        },
    )

    periods = await service.query_busy("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert len(periods) == 1
    assert periods[0].start == datetime(2025, 1, 13, 15, 0, tzinfo=UTC)

    request = httpx_mock.get_request()
    assert request.headers["Authorization"] == "Bearer token"
    assert json.loads(request.content) == {
        "timeMin": "2025-01-12T17:00:00.000Z",
        "timeMax": "2025-01-19T17:00:00.000Z",
        "items": [{"id": "primary"}],
    }


@pytest.mark.asyncio
async def test_query_busy_calendar_errors_raise(httpx_mock):
    service = GoogleCalendarService()

    httpx_mock.add_response(
        method="POST",
        url=FREEBUSY_URL,
        json={"calendars": {"primary": {"errors": [{"reason": "notFound"}], "busy": []}}},
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await service.query_busy("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert exc.value.error_code == "notFound"
    assert "primary" in str(exc.value)


@pytest.mark.asyncio
async def test_list_events_success(httpx_mock):
    service = GoogleCalendarService()

    httpx_mock.add_response(
        method="GET",
        url=EVENTS_URL,
        json={
            "items": [
                {
                    "id": "evt-1",
                    "summary": "Standup",
                    "start": {"dateTime": "2025-01-13T15:00:00Z"},
                    "end": {"dateTime": "2025-01-13T15:15:00Z"},
                },
                {"id": "evt-2", "start": {"date": "2025-01-14"}, "end": {"date": "2025-01-15"}},
            ]
        },
    )

    events = await service.list_events("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert [event.id for event in events] == ["evt-1", "evt-2"]
    assert events[1].is_all_day() is True

    params = httpx_mock.get_request().url.params
    assert params["singleEvents"] == "true"
    assert params["orderBy"] == "startTime"
    assert params["maxResults"] == "2500"


@pytest.mark.asyncio
async def test_create_event_notifies_attendees_and_requests_conference(httpx_mock):
    service = GoogleCalendarService()

    httpx_mock.add_response(
        method="POST",
        url=EVENTS_URL,
        json={
            "id": "evt-3",
            "htmlLink": "https://calendar.google.com/event?eid=evt-3",
            "hangoutLink": "https://meet.google.com/abc-defg-hij",
            "start": {"dateTime": "2025-01-13T09:00:00-05:00", "timeZone": "America/New_York"},
            "end": {"dateTime": "2025-01-13T09:30:00-05:00", "timeZone": "America/New_York"},
        },
    )

    event = await service.create_event(
        "token",
        {
            "summary": "Intro call",
            "start": {"dateTime": "2025-01-13T14:00:00.000Z", "timeZone": "America/New_York"},
            "end": {"dateTime": "2025-01-13T14:30:00.000Z", "timeZone": "America/New_York"},
            "conferenceData": {"createRequest": {"requestId": "bookingdesk-1"}},
        },
    )
    await service.close()

    assert event.meet_link == "https://meet.google.com/abc-defg-hij"
    params = httpx_mock.get_request().url.params
    assert params["sendUpdates"] == "all"
    assert params["conferenceDataVersion"] == "1"


@pytest.mark.asyncio
async def test_create_event_without_conference_omits_version(httpx_mock):
    service = GoogleCalendarService()

    httpx_mock.add_response(method="POST", url=EVENTS_URL, json={"id": "evt-4"})

    await service.create_event("token", {"summary": "Intro call"})
    await service.close()

    params = httpx_mock.get_request().url.params
    assert "conferenceDataVersion" not in params


@pytest.mark.asyncio
async def test_calendar_id_is_url_encoded(httpx_mock):
    service = GoogleCalendarService()

    httpx_mock.add_response(
        method="GET",
        url=re.compile(r".*/calendars/team%40x\.com/events.*"),
        json={"items": []},
    )

    assert await service.list_events("token", TIME_MIN, TIME_MAX, calendar_id="team@x.com") == []
    await service.close()


@pytest.mark.asyncio
async def test_unauthorized_error_mapping(httpx_mock):
    service = GoogleCalendarService()

    httpx_mock.add_response(
        method="POST",
        url=FREEBUSY_URL,
        status_code=401,
        json={"error": {"code": 401, "message": "Invalid Credentials"}},
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await service.query_busy("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert exc.value.status_code == 401
    assert "reconnect" in str(exc.value).lower()


@pytest.mark.asyncio
async def test_api_not_enabled_includes_activation_url(httpx_mock):
    service = GoogleCalendarService()
    activation_url = "https://console.developers.google.com/apis/api/calendar-json.googleapis.com/overview?project=123"

    httpx_mock.add_response(
        method="POST",
        url=FREEBUSY_URL,
        status_code=403,
        json={
            "error": {
                "code": 403,
                "message": "Google Calendar API has not been used in project 123",
                "errors": [{"reason": "accessNotConfigured"}],
                "details": [{"metadata": {"activationUrl": activation_url}}],
            }
        },
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await service.query_busy("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert exc.value.error_code == "accessNotConfigured"
    assert activation_url in str(exc.value)


@pytest.mark.asyncio
async def test_non_json_error_body(httpx_mock):
    service = GoogleCalendarService()

    httpx_mock.add_response(method="POST", url=FREEBUSY_URL, status_code=502, text="Bad Gateway")

    with pytest.raises(GoogleCalendarError) as exc:
        await service.query_busy("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_timeout_is_not_retried(httpx_mock):
    service = GoogleCalendarService()

    httpx_mock.add_exception(httpx.ReadTimeout("timed out"), method="POST", url=FREEBUSY_URL)

    with pytest.raises(GoogleCalendarError) as exc:
        await service.query_busy("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert exc.value.error_code == "timeout"
    assert len(httpx_mock.get_requests()) == 1
