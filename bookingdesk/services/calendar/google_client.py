"""
Google Calendar API client.
Low-level freebusy / events / event-creation calls used by the scheduling services.

Each call is a single round-trip: transient failures are surfaced to the
caller as GoogleCalendarError instead of being retried here.
"""

from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from bookingdesk.config import settings
from bookingdesk.infrastructure.observability.logging import get_logger
from bookingdesk.models.domain.calendar_domain import CalendarEvent
from bookingdesk.models.domain.scheduling_domain import BusyPeriod
from bookingdesk.services.scheduling.time_utils import isoformat_utc, parse_instant

logger = get_logger(__name__)

# Google Calendar API configuration
CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
CALENDAR_PRIMARY = "primary"
MAX_EVENTS_PER_PAGE = 2500  # Google Calendar API limit


class GoogleCalendarError(Exception):
    """Custom exception for Google Calendar API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


class GoogleCalendarService:
    """
    Service for the Google Calendar API operations the booking engine needs.

    Busy-period queries, event listing for booking caps, and event creation.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        """Create async HTTP client for Calendar API."""
        timeout = httpx.Timeout(settings.CALENDAR_REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(self, method: str, url: str, operation: str, **kwargs) -> httpx.Response:
        if self._client.is_closed:
            self._client = self._create_client()
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Calendar API {operation} timed out", error=str(e))
            raise GoogleCalendarError(
                f"Google Calendar API timed out during {operation}", error_code="timeout"
            ) from e
        except httpx.RequestError as e:
            logger.error(
                f"Calendar API {operation} request error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GoogleCalendarError(f"Google Calendar API request failed: {e}") from e

    def _get_auth_headers(self, access_token: str) -> dict:
        """Get authorization headers for Calendar API requests."""
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Handle and validate Calendar API response.

        Args:
            response: HTTP response from Calendar API
            operation: Operation name for logging

        Returns:
            dict: Parsed response data

        Raises:
            GoogleCalendarError: If response contains errors
        """
        logger.debug(
            f"Calendar API {operation} response",
            status_code=response.status_code,
            response_size=len(response.text) if response.text else 0,
        )

        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Calendar API {operation} response", error=str(e))
                raise GoogleCalendarError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                f"Calendar API {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise GoogleCalendarError(
                f"Google Calendar API error: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            ) from None

        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        if not isinstance(error_info, dict):
            error_info = {"message": str(error_info)}

        logger.error(
            f"Calendar API {operation} failed",
            status_code=response.status_code,
            error_message=error_info.get("message"),
            reason=self._error_reason(error_info),
        )

        raise GoogleCalendarError(
            self._map_calendar_error(response.status_code, error_info),
            error_code=self._error_reason(error_info) or str(response.status_code),
            status_code=response.status_code,
            response_data=error_data,
        )

    def _error_reason(self, error_info: dict) -> str | None:
        if error_info.get("reason"):
            return error_info["reason"]
        errors = error_info.get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get("reason")
        return None

    def _map_calendar_error(self, status_code: int, error_info: dict) -> str:
        """Map Calendar API errors to actionable messages."""
        message = error_info.get("message") or f"Google Calendar API error: {status_code}"

        if status_code == 403 and self._error_reason(error_info) == "accessNotConfigured":
            activation_url = None
            for detail in error_info.get("details") or []:
                activation_url = (detail.get("metadata") or {}).get("activationUrl")
                if activation_url:
                    break
            if activation_url:
                return f"Google Calendar API is not enabled. Please enable it at: {activation_url}"
            return (
                "Google Calendar API is not enabled in your Google Cloud project. "
                "Please enable it in the Google Cloud Console."
            )
        if status_code == 401:
            return "Invalid or expired Google Calendar access token. Please reconnect your calendar."
        if status_code == 404:
            return "Calendar not found. Please check your calendar ID."
        if status_code == 400:
            reasons = [
                e.get("message") or e.get("reason")
                for e in error_info.get("errors") or []
                if isinstance(e, dict)
            ]
            details = "; ".join(r for r in reasons if r) or message
            return f"Invalid request to Google Calendar API: {details}"

        return message

    async def query_busy(
        self,
        access_token: str,
        time_min: datetime,
        time_max: datetime,
        calendar_id: str = CALENDAR_PRIMARY,
    ) -> list[BusyPeriod]:
        """
        Query busy intervals for one calendar.

        Args:
            access_token: Valid OAuth access token
            time_min: Start of the window (aware)
            time_max: End of the window (aware)
            calendar_id: Calendar ID (default: primary)

        Returns:
            List[BusyPeriod]: Busy intervals in UTC

        Raises:
            GoogleCalendarError: If the freebusy query fails
        """
        query_data = {
            "timeMin": isoformat_utc(time_min),
            "timeMax": isoformat_utc(time_max),
            "items": [{"id": calendar_id}],
        }

        logger.info(
            "Querying calendar busy periods",
            calendar_id=calendar_id,
            time_min=query_data["timeMin"],
            time_max=query_data["timeMax"],
        )

        response = await self._request(
            "POST",
            f"{CALENDAR_API_BASE_URL}/freeBusy",
            "query_busy",
            headers=self._get_auth_headers(access_token),
            json=query_data,
        )
        data = self._handle_api_response(response, "query_busy")

        calendar_data = data.get("calendars", {}).get(calendar_id, {})
        calendar_errors = calendar_data.get("errors") or []
        if calendar_errors:
            reason = self._error_reason({"errors": calendar_errors}) or "calendarError"
            logger.error(
                "Freebusy returned calendar errors",
                calendar_id=calendar_id,
                errors=calendar_errors,
            )
            raise GoogleCalendarError(
                f"Could not read busy times for calendar {calendar_id}: {reason}",
                error_code=reason,
                response_data=data,
            )

        busy_periods = []
        for period in calendar_data.get("busy", []):
            try:
                busy_periods.append(
                    BusyPeriod(start=parse_instant(period["start"]), end=parse_instant(period["end"]))
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed busy period", period=period, error=str(e))

        logger.info(
            "Busy periods retrieved", calendar_id=calendar_id, busy_count=len(busy_periods)
        )
        return busy_periods

    async def list_events(
        self,
        access_token: str,
        time_min: datetime,
        time_max: datetime,
        calendar_id: str = CALENDAR_PRIMARY,
        max_results: int = MAX_EVENTS_PER_PAGE,
    ) -> list[CalendarEvent]:
        """
        List single (expanded) events in a window, ordered by start time.

        Raises:
            GoogleCalendarError: If listing events fails
        """
        params = {
            "timeMin": isoformat_utc(time_min),
            "timeMax": isoformat_utc(time_max),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": max_results,
        }

        logger.info(
            "Listing calendar events",
            calendar_id=calendar_id,
            time_min=params["timeMin"],
            time_max=params["timeMax"],
        )

        response = await self._request(
            "GET",
            f"{CALENDAR_API_BASE_URL}/calendars/{quote(calendar_id, safe='')}/events",
            "list_events",
            headers=self._get_auth_headers(access_token),
            params=params,
        )
        data = self._handle_api_response(response, "list_events")

        events = [CalendarEvent(item) for item in data.get("items", [])]
        logger.info("Events listed successfully", calendar_id=calendar_id, event_count=len(events))
        return events

    async def create_event(
        self,
        access_token: str,
        event_data: dict[str, Any],
        calendar_id: str = CALENDAR_PRIMARY,
        send_updates: str = "all",
    ) -> CalendarEvent:
        """
        Create a calendar event from a prepared payload.

        Args:
            access_token: Valid OAuth access token
            event_data: Google Calendar event resource
            calendar_id: Calendar ID (default: primary)
            send_updates: Attendee notification policy

        Returns:
            CalendarEvent: Created event

        Raises:
            GoogleCalendarError: If creating the event fails
        """
        params: dict[str, Any] = {"sendUpdates": send_updates}
        if "conferenceData" in event_data:
            params["conferenceDataVersion"] = 1

        logger.info(
            "Creating calendar event",
            calendar_id=calendar_id,
            summary=event_data.get("summary"),
            start=event_data.get("start"),
            end=event_data.get("end"),
            attendees_count=len(event_data.get("attendees", [])),
            has_meet_link="conferenceData" in event_data,
            send_updates=send_updates,
        )

        response = await self._request(
            "POST",
            f"{CALENDAR_API_BASE_URL}/calendars/{quote(calendar_id, safe='')}/events",
            "create_event",
            headers=self._get_auth_headers(access_token),
            params=params,
            json=event_data,
        )
        data = self._handle_api_response(response, "create_event")

        event = CalendarEvent(data)
        logger.info("Event created successfully", event_id=event.id, calendar_id=calendar_id)
        return event


# Singleton instance for application use
google_calendar_service = GoogleCalendarService()
