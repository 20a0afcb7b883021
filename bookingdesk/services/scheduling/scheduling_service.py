"""
Scheduling service: request-level orchestration of slot computation and booking.

Slot computation: credential -> constraints -> one freebusy query over the
whole local horizon (+ events for booking caps over whole weeks, best-effort)
-> in-memory slot generation.
Booking: validate -> credential -> one create-event call.
"""

from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from bookingdesk.config import settings
from bookingdesk.infrastructure.observability.logging import get_logger
from bookingdesk.models.domain.calendar_domain import CalendarEvent
from bookingdesk.models.domain.scheduling_domain import (
    CandidateSlot,
    ResolvedIdentity,
    TenantSchedulingConfig,
)
from bookingdesk.services.calendar.google_client import (
    GoogleCalendarError,
    GoogleCalendarService,
    google_calendar_service,
)
from bookingdesk.services.integration_service import (
    CalendarIntegrationService,
    calendar_integration_service,
)
from bookingdesk.services.scheduling.availability import compute_available_slots
from bookingdesk.services.scheduling.booking import book_slot
from bookingdesk.services.scheduling.booking_input import normalize_booking_input
from bookingdesk.services.scheduling.constraints import (
    normalize_scheduling_config,
    normalize_slot_request,
)
from bookingdesk.services.scheduling.errors import UpstreamProviderError
from bookingdesk.services.scheduling.time_utils import (
    get_zone,
    local_midnight,
    start_of_week,
    to_local,
    to_utc,
)

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SchedulingService:
    """Availability and booking for one tenant per call. Holds no per-request state."""

    def __init__(
        self,
        integrations: CalendarIntegrationService | None = None,
        calendar: GoogleCalendarService | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._integrations = integrations or calendar_integration_service
        self._calendar = calendar or google_calendar_service
        self._clock = clock

    async def _fetch_event_starts(
        self,
        access_token: str,
        calendar_id: str,
        config: TenantSchedulingConfig,
        time_min: datetime,
        time_max: datetime,
    ) -> list[datetime]:
        """Existing event starts for booking caps. Failures skip the caps."""
        try:
            events = await self._calendar.list_events(
                access_token, time_min, time_max, calendar_id=calendar_id
            )
        except GoogleCalendarError as e:
            logger.warning(
                "Failed to fetch existing events for booking limits",
                calendar_id=calendar_id,
                error=str(e),
            )
            return []

        tz = get_zone(config.timezone)
        starts = []
        for event in events:
            start = event.start_in(tz)
            if start is None:
                logger.warning("Skipping event without a parseable start", event_id=event.id)
                continue
            starts.append(start)
        return starts

    async def get_available_slots(
        self, identity: ResolvedIdentity, payload: Mapping[str, Any]
    ) -> list[CandidateSlot]:
        """
        Compute bookable slots for the identified tenant.

        Raises:
            IntegrationNotFoundError, OAuthConfigurationError: credential problems
            UpstreamProviderError: freebusy query failed
        """
        integration, access_token = await self._integrations.get_calendar_credential(
            identity.tenant_id
        )

        raw_config = dict(payload)
        raw_config["timezone"] = payload.get("timezone") or integration.timezone
        config = normalize_scheduling_config(raw_config, default_timezone=settings.DEFAULT_TIMEZONE)
        slot_request = normalize_slot_request(payload)

        tz = get_zone(config.timezone)
        now = to_utc(self._clock())
        today = to_local(now, tz).date()
        horizon = today + timedelta(days=slot_request.days_ahead)

        # Whole local days: candidate slots run through the end of the horizon day
        busy_min = to_utc(local_midnight(today, tz))
        busy_max = to_utc(local_midnight(horizon + timedelta(days=1), tz))

        try:
            busy_periods = await self._calendar.query_busy(
                access_token, busy_min, busy_max, calendar_id=integration.calendar_id
            )
        except GoogleCalendarError as e:
            raise UpstreamProviderError(
                str(e), details={"status_code": e.status_code, "error_code": e.error_code}
            ) from e

        event_starts: list[datetime] = []
        if config.has_booking_caps():
            # Caps count whole Monday-start weeks, including days before today
            events_min = to_utc(local_midnight(start_of_week(today), tz))
            events_max = to_utc(local_midnight(start_of_week(horizon) + timedelta(days=7), tz))
            event_starts = await self._fetch_event_starts(
                access_token, integration.calendar_id, config, events_min, events_max
            )

        slots = compute_available_slots(config, slot_request, busy_periods, event_starts, now=now)

        logger.info(
            "Available slots computed",
            tenant_id=identity.tenant_id,
            calendar_id=integration.calendar_id,
            timezone=config.timezone,
            days_ahead=slot_request.days_ahead,
            busy_count=len(busy_periods),
            slot_count=len(slots),
        )
        return slots

    async def book_event(
        self, identity: ResolvedIdentity, payload: Mapping[str, Any]
    ) -> CalendarEvent:
        """
        Validate and book a slot for the identified tenant.

        Raises:
            ValidationError: before any remote call
            IntegrationNotFoundError, OAuthConfigurationError: credential problems
            UpstreamProviderError: event creation failed
        """
        booking_request = normalize_booking_input(payload)

        logger.info(
            "Booking requested",
            tenant_id=identity.tenant_id,
            start=booking_request.slot.start.isoformat(),
            end=booking_request.slot.end.isoformat(),
            attendees_count=len(booking_request.attendees),
            add_meet_link=booking_request.add_meet_link,
        )

        integration, access_token = await self._integrations.get_calendar_credential(
            identity.tenant_id
        )
        config = normalize_scheduling_config(
            {"timezone": integration.timezone}, default_timezone=settings.DEFAULT_TIMEZONE
        )

        return await book_slot(
            config,
            access_token,
            booking_request,
            calendar_id=integration.calendar_id,
            client=self._calendar,
        )


# Singleton instance for application use
scheduling_service = SchedulingService()
