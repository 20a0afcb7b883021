"""
Availability calculator.

Generates bookable slots by sweeping tenant-local days forward from today:

    candidate days -> open-day filter -> business-hours window
    -> today's round-up -> booking caps -> slot starts -> busy/buffer filter

Every stage is a plain function so it can be tested on its own. Busy periods
are neither merged nor sorted; each candidate is checked against all of them
and the cursor always advances by one interval (no backtracking).
"""

import math
from collections.abc import Iterator, Sequence
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from bookingdesk.infrastructure.observability.logging import get_logger
from bookingdesk.models.domain.scheduling_domain import (
    BusyPeriod,
    CandidateSlot,
    SlotRequest,
    TenantSchedulingConfig,
)
from bookingdesk.services.scheduling.time_utils import (
    combine_local,
    get_zone,
    intervals_overlap,
    local_midnight,
    start_of_week,
    to_local,
    to_utc,
    weekday_abbreviation,
)

logger = get_logger(__name__)


def candidate_days(now_local: datetime, days_ahead: int) -> Iterator[date]:
    """Local calendar days from today through ``today + days_ahead`` inclusive, lazily."""
    today = now_local.date()
    for offset in range(days_ahead + 1):
        yield today + timedelta(days=offset)


def is_day_open(config: TenantSchedulingConfig, day: date) -> bool:
    """False for closed weekdays, holidays and weekdays without business hours."""
    weekday = weekday_abbreviation(day)
    if weekday in config.closed_days:
        return False
    if day in config.holiday_dates:
        return False
    return weekday in config.business_hours


def day_window(config: TenantSchedulingConfig, day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Business-hours window for ``day`` as UTC instants."""
    start_str, end_str = config.business_hours[weekday_abbreviation(day)]
    return (
        to_utc(combine_local(day, start_str, tz)),
        to_utc(combine_local(day, end_str, tz)),
    )


def first_slot_start(day_start: datetime, now: datetime, interval_minutes: int) -> datetime:
    """
    First cursor position for today.

    The smallest ``day_start + k * interval`` (k >= 0) that lies at least one
    full interval after ``now``.
    """
    interval = timedelta(minutes=interval_minutes)
    earliest = now + interval
    if earliest <= day_start:
        return day_start
    steps = math.ceil((earliest - day_start) / interval)
    return day_start + steps * interval


def count_events_in_range(
    event_starts: Sequence[datetime], range_start: datetime, range_end: datetime
) -> int:
    """Count event starts in ``[range_start, range_end)``."""
    return sum(1 for start in event_starts if range_start <= to_utc(start) < range_end)


def day_cap_reached(
    config: TenantSchedulingConfig, day: date, tz: ZoneInfo, event_starts: Sequence[datetime]
) -> bool:
    if not config.max_bookings_per_day:
        return False
    start = to_utc(local_midnight(day, tz))
    end = to_utc(local_midnight(day + timedelta(days=1), tz))
    return count_events_in_range(event_starts, start, end) >= config.max_bookings_per_day


def week_cap_reached(
    config: TenantSchedulingConfig, day: date, tz: ZoneInfo, event_starts: Sequence[datetime]
) -> bool:
    if not config.max_bookings_per_week:
        return False
    monday = start_of_week(day)
    start = to_utc(local_midnight(monday, tz))
    end = to_utc(local_midnight(monday + timedelta(days=7), tz))
    return count_events_in_range(event_starts, start, end) >= config.max_bookings_per_week


def iter_slot_starts(
    cursor: datetime, day_end: datetime, duration_minutes: int, interval_minutes: int
) -> Iterator[datetime]:
    """Cursor positions whose slot still ends within business hours."""
    duration = timedelta(minutes=duration_minutes)
    interval = timedelta(minutes=interval_minutes)
    while cursor + duration <= day_end:
        yield cursor
        cursor += interval


def overlaps_busy(
    slot_start: datetime,
    slot_end: datetime,
    busy_periods: Sequence[BusyPeriod],
    buffer_minutes: int = 0,
) -> bool:
    """True when the slot overlaps any busy period whose end is pushed out by the buffer."""
    return any(
        intervals_overlap(slot_start, slot_end, busy.start, busy.end_with_buffer(buffer_minutes))
        for busy in busy_periods
    )


def compute_available_slots(
    config: TenantSchedulingConfig,
    request: SlotRequest,
    busy_periods: Sequence[BusyPeriod],
    existing_event_starts: Sequence[datetime] = (),
    now: datetime | None = None,
) -> list[CandidateSlot]:
    """
    Produce up to ``request.max_slots`` non-busy slots in ascending order.

    Args:
        config: Normalized tenant constraints
        request: Slot shape and search horizon
        busy_periods: Provider busy intervals (UTC)
        existing_event_starts: Start instants of existing events, used only
            for the per-day / per-week booking caps
        now: Current instant (defaults to the wall clock)

    Returns:
        List[CandidateSlot]: UTC slots, ``end = start + slot_duration_minutes``
    """
    tz = get_zone(config.timezone)
    now = to_utc(now or datetime.now(UTC))
    now_local = to_local(now, tz)
    today = now_local.date()
    duration = timedelta(minutes=request.slot_duration_minutes)

    slots: list[CandidateSlot] = []
    days_checked = 0

    for day in candidate_days(now_local, request.days_ahead):
        if len(slots) >= request.max_slots:
            break
        days_checked += 1

        if not is_day_open(config, day):
            continue

        day_start, day_end = day_window(config, day, tz)
        cursor = day_start

        if day == today and request.skip_past_time_today:
            cursor = first_slot_start(day_start, now, request.slot_interval)
            if cursor + duration > day_end:
                continue

        if day_cap_reached(config, day, tz, existing_event_starts):
            logger.debug("Daily booking cap reached", day=day.isoformat())
            continue
        if week_cap_reached(config, day, tz, existing_event_starts):
            logger.debug("Weekly booking cap reached", day=day.isoformat())
            continue

        for slot_start in iter_slot_starts(
            cursor, day_end, request.slot_duration_minutes, request.slot_interval
        ):
            if len(slots) >= request.max_slots:
                break
            slot_end = slot_start + duration
            if overlaps_busy(
                slot_start, slot_end, busy_periods, config.buffer_minutes_between_meetings
            ):
                continue
            slots.append(CandidateSlot(start=slot_start, end=slot_end))

    logger.debug(
        "Slots computed",
        timezone=config.timezone,
        days_checked=days_checked,
        busy_periods=len(busy_periods),
        slot_count=len(slots),
    )
    return slots[: request.max_slots]
