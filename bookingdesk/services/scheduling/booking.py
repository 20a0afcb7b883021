"""
Booking executor.

Turns a validated BookingRequest into a Google Calendar event payload and
issues exactly one create call (attendees notified). Slot availability is not
re-checked here; the provider's event store is the only arbiter of
concurrent bookings.
"""

import uuid
from typing import Any

from bookingdesk.config import settings
from bookingdesk.infrastructure.observability.logging import get_logger
from bookingdesk.models.domain.calendar_domain import CalendarEvent
from bookingdesk.models.domain.scheduling_domain import BookingRequest, TenantSchedulingConfig
from bookingdesk.services.calendar.google_client import (
    CALENDAR_PRIMARY,
    GoogleCalendarError,
    GoogleCalendarService,
    google_calendar_service,
)
from bookingdesk.services.scheduling.booking_input import parse_slot
from bookingdesk.services.scheduling.errors import UpstreamProviderError
from bookingdesk.services.scheduling.time_utils import isoformat_utc

logger = get_logger(__name__)

CONFERENCE_REQUEST_PREFIX = "bookingdesk"


def new_conference_request_id() -> str:
    """Unique per booking attempt so client retries never collide on conference ids."""
    return f"{CONFERENCE_REQUEST_PREFIX}-{uuid.uuid4().hex}"


def build_event_payload(
    config: TenantSchedulingConfig,
    request: BookingRequest,
    default_description: str | None = None,
) -> dict[str, Any]:
    """Google Calendar event resource for ``request``."""
    event: dict[str, Any] = {
        "summary": request.title,
        "description": request.description
        or default_description
        or settings.DEFAULT_BOOKING_DESCRIPTION,
        "start": {
            "dateTime": isoformat_utc(request.slot.start),
            "timeZone": config.timezone,
        },
        "end": {
            "dateTime": isoformat_utc(request.slot.end),
            "timeZone": config.timezone,
        },
    }

    if request.attendees:
        event["attendees"] = [
            {"email": email, "displayName": email} for email in request.attendees
        ]

    if request.add_meet_link:
        event["conferenceData"] = {
            "createRequest": {
                "requestId": new_conference_request_id(),
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        }

    return event


async def book_slot(
    config: TenantSchedulingConfig,
    access_token: str,
    request: BookingRequest,
    calendar_id: str = CALENDAR_PRIMARY,
    client: GoogleCalendarService | None = None,
) -> CalendarEvent:
    """
    Create the calendar event for a booking.

    Args:
        config: Tenant scheduling config (supplies the event timezone)
        access_token: Valid calendar access token
        request: Normalized booking request
        calendar_id: Target calendar
        client: Calendar client (defaults to the shared service)

    Returns:
        CalendarEvent: The provider's created event

    Raises:
        ValidationError: If the slot is inverted (no remote call is made)
        UpstreamProviderError: If the provider rejects or fails the creation
    """
    # Re-validate in case the request was built without normalize_booking_input
    parse_slot(request.slot.start, request.slot.end)

    client = client or google_calendar_service
    payload = build_event_payload(config, request)

    try:
        event = await client.create_event(
            access_token, payload, calendar_id=calendar_id, send_updates="all"
        )
    except GoogleCalendarError as e:
        logger.error(
            "Calendar event creation failed",
            calendar_id=calendar_id,
            status_code=e.status_code,
            error=str(e),
        )
        raise UpstreamProviderError(
            str(e),
            details={"status_code": e.status_code, "error_code": e.error_code},
        ) from e

    logger.info(
        "Slot booked",
        calendar_id=calendar_id,
        event_id=event.id,
        attendees_count=len(request.attendees),
        has_meet_link=bool(event.meet_link),
    )
    return event
