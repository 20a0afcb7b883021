# bookingdesk/models/domain/scheduling_domain.py
"""
Scheduling Domain Models
Immutable per-request values consumed by the availability calculator and the
booking executor.
"""

from datetime import date, datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BUSINESS_HOURS: dict[str, tuple[str, str]] = {
    "mon": ("09:00", "17:00"),
    "tue": ("09:00", "17:00"),
    "wed": ("09:00", "17:00"),
    "thu": ("09:00", "17:00"),
    "fri": ("09:00", "17:00"),
}
DEFAULT_CLOSED_DAYS: frozenset[str] = frozenset({"sat", "sun"})

# Longest search horizon a single slot request may ask for
MAX_DAYS_AHEAD = 366


class TenantSchedulingConfig(BaseModel):
    """Fully-populated scheduling constraints for one tenant and one request."""

    model_config = ConfigDict(frozen=True)

    timezone: str = "UTC"
    business_hours: dict[str, tuple[str, str]] = DEFAULT_BUSINESS_HOURS
    closed_days: frozenset[str] = DEFAULT_CLOSED_DAYS
    holiday_dates: frozenset[date] = frozenset()
    buffer_minutes_between_meetings: int = 0
    max_bookings_per_day: int | None = None
    max_bookings_per_week: int | None = None

    def has_booking_caps(self) -> bool:
        return bool(self.max_bookings_per_day or self.max_bookings_per_week)


class SlotRequest(BaseModel):
    """How far ahead to search and how to shape candidate slots."""

    model_config = ConfigDict(frozen=True)

    days_ahead: int = Field(default=7, ge=1, le=MAX_DAYS_AHEAD)
    slot_duration_minutes: int = 30
    slot_interval: int = 30
    max_slots: int = 5
    skip_past_time_today: bool = True


class BusyPeriod(BaseModel):
    """Interval during which the remote calendar is occupied (UTC)."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    def end_with_buffer(self, buffer_minutes: int) -> datetime:
        return self.end + timedelta(minutes=buffer_minutes)


class CandidateSlot(BaseModel):
    """A bookable window (UTC). Not reserved."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class BookingSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class BookingRequest(BaseModel):
    """Strongly-typed booking input produced by booking_input normalization."""

    model_config = ConfigDict(frozen=True)

    slot: BookingSlot
    title: str
    description: str | None = None
    attendees: tuple[str, ...] = ()
    add_meet_link: bool = False


class ResolvedIdentity(BaseModel):
    """Tenant a request acts on, and how that was established."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    source: Literal["session", "workflow", "tenant"]
