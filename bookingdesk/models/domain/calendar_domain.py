# bookingdesk/models/domain/calendar_domain.py
"""
Calendar Domain Models
Wrappers around Google Calendar API payloads with the small amount of
business logic the scheduling services need.
"""

from datetime import UTC, datetime, time
from typing import Any
from zoneinfo import ZoneInfo


class CalendarEvent:
    """Domain model for calendar events."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.summary = data.get("summary", "")
        self.description = data.get("description", "")
        self.start_time = self._parse_datetime(data.get("start", {}))
        self.end_time = self._parse_datetime(data.get("end", {}))
        self.timezone = data.get("start", {}).get("timeZone", "UTC")
        self.status = data.get("status", "confirmed")
        self.attendees = data.get("attendees", [])
        self.html_link = data.get("htmlLink")
        self.meet_link = data.get("hangoutLink")
        self.raw_data = data

    def _parse_datetime(self, dt_data: dict) -> datetime | None:
        """Parse datetime from Google Calendar format."""
        if not dt_data:
            return None

        try:
            # All-day events (date only)
            if "date" in dt_data:
                return datetime.strptime(dt_data["date"], "%Y-%m-%d").replace(tzinfo=UTC)
            if "dateTime" in dt_data:
                return datetime.fromisoformat(dt_data["dateTime"].replace("Z", "+00:00"))
        except (TypeError, ValueError, AttributeError):
            return None

        return None

    def is_all_day(self) -> bool:
        """Check if this is an all-day event."""
        return "date" in self.raw_data.get("start", {})

    def start_in(self, tz: ZoneInfo) -> datetime | None:
        """
        Event start as an aware datetime in ``tz``.

        All-day events start at local midnight of their date rather than at
        UTC midnight. Unparseable starts give None.
        """
        if self.is_all_day():
            if not self.start_time:
                return None
            day = self.start_time.date()
            return datetime.combine(day, time.min, tzinfo=tz)
        if not self.start_time:
            return None
        start = self.start_time
        if start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        return start.astimezone(tz)

    def start_value(self) -> str | None:
        """Start exactly as the provider reported it."""
        start = self.raw_data.get("start", {})
        return start.get("dateTime") or start.get("date")

    def end_value(self) -> str | None:
        end = self.raw_data.get("end", {})
        return end.get("dateTime") or end.get("date")

    def to_booking_dict(self) -> dict[str, Any]:
        """Shape returned to booking callers."""
        return {
            "eventId": self.id,
            "htmlLink": self.html_link,
            "start": self.start_value(),
            "end": self.end_value(),
            "meetLink": self.meet_link,
        }
