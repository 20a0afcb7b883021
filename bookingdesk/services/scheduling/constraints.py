"""
Constraint normalization.

Turns raw, possibly partial tenant input (camelCase as sent by callers, or
snake_case) into one immutable TenantSchedulingConfig / SlotRequest. All
scheduling defaults live here and nowhere else.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from bookingdesk.infrastructure.observability.logging import get_logger
from bookingdesk.models.domain.scheduling_domain import (
    DEFAULT_BUSINESS_HOURS,
    DEFAULT_CLOSED_DAYS,
    MAX_DAYS_AHEAD,
    SlotRequest,
    TenantSchedulingConfig,
)
from bookingdesk.services.scheduling.time_utils import (
    WEEKDAY_ABBREVIATIONS,
    get_zone,
    parse_hhmm,
    parse_local_date,
)

logger = get_logger(__name__)

_SLOT_REQUEST_DEFAULTS = SlotRequest()


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _weekday_key(value: Any) -> str | None:
    key = str(value).strip().lower()[:3]
    return key if key in WEEKDAY_ABBREVIATIONS else None


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number > 0 else None


def _normalize_business_hours(raw_hours: Any) -> dict[str, tuple[str, str]]:
    if not isinstance(raw_hours, Mapping):
        return dict(DEFAULT_BUSINESS_HOURS)

    hours: dict[str, tuple[str, str]] = {}
    for day, window in raw_hours.items():
        key = _weekday_key(day)
        if key is None or not window:
            continue
        try:
            start, end = window[0], window[1]
            if parse_hhmm(end) <= parse_hhmm(start):
                raise ValueError("end must be after start")
        except (TypeError, ValueError, IndexError, KeyError) as e:
            logger.warning("Ignoring invalid business hours", weekday=key, window=window, error=str(e))
            continue
        hours[key] = (str(start).strip(), str(end).strip())
    return hours


def _normalize_closed_days(raw_days: Any) -> frozenset[str]:
    if raw_days is None:
        return DEFAULT_CLOSED_DAYS
    if isinstance(raw_days, str):
        raw_days = [raw_days]
    if not isinstance(raw_days, Iterable):
        return DEFAULT_CLOSED_DAYS
    return frozenset(key for key in (_weekday_key(day) for day in raw_days) if key)


def _normalize_holidays(raw_dates: Any) -> frozenset:
    if not raw_dates:
        return frozenset()
    if isinstance(raw_dates, str):
        raw_dates = [raw_dates]

    holidays = set()
    for value in raw_dates:
        parsed = parse_local_date(value)
        if parsed is None:
            logger.warning("Ignoring unparseable holiday date", value=value)
            continue
        holidays.add(parsed)
    return frozenset(holidays)


def normalize_scheduling_config(
    raw: Mapping[str, Any] | None, default_timezone: str = "UTC"
) -> TenantSchedulingConfig:
    """
    Fill in defaults for a partially specified scheduling configuration.

    Never raises: invalid pieces are dropped (and logged) in favour of the
    documented defaults. Unknown keys are ignored.
    """
    raw = raw or {}

    timezone = _pick(raw, "timezone", "timeZone")
    zone = get_zone(timezone, fallback=default_timezone)

    buffer = _pick(raw, "bufferMinutesBetweenMeetings", "buffer_minutes_between_meetings")
    try:
        buffer_minutes = max(0, int(buffer)) if buffer is not None else 0
    except (TypeError, ValueError):
        buffer_minutes = 0

    return TenantSchedulingConfig(
        timezone=zone.key,
        business_hours=_normalize_business_hours(_pick(raw, "businessHours", "business_hours")),
        closed_days=_normalize_closed_days(_pick(raw, "closedDays", "closed_days")),
        holiday_dates=_normalize_holidays(_pick(raw, "holidayDates", "holiday_dates")),
        buffer_minutes_between_meetings=buffer_minutes,
        max_bookings_per_day=_positive_int(_pick(raw, "maxBookingsPerDay", "max_bookings_per_day")),
        max_bookings_per_week=_positive_int(
            _pick(raw, "maxBookingsPerWeek", "max_bookings_per_week")
        ),
    )


def normalize_slot_request(raw: Mapping[str, Any] | None) -> SlotRequest:
    """
    Apply SlotRequest defaults; non-positive or non-numeric values fall back.

    ``daysAhead`` is clamped to MAX_DAYS_AHEAD.
    """
    raw = raw or {}
    defaults = _SLOT_REQUEST_DEFAULTS

    skip_past = _pick(raw, "skipPastTimeToday", "skip_past_time_today")
    if isinstance(skip_past, str):
        skip_past = skip_past.strip().lower() != "false"
    elif skip_past is None:
        skip_past = defaults.skip_past_time_today

    days_ahead = _positive_int(_pick(raw, "daysAhead", "days_ahead")) or defaults.days_ahead
    if days_ahead > MAX_DAYS_AHEAD:
        logger.warning("Clamping daysAhead", requested=days_ahead, max_days_ahead=MAX_DAYS_AHEAD)

    return SlotRequest(
        days_ahead=min(days_ahead, MAX_DAYS_AHEAD),
        slot_duration_minutes=_positive_int(
            _pick(raw, "slotDurationMinutes", "slot_duration_minutes")
        )
        or defaults.slot_duration_minutes,
        slot_interval=_positive_int(_pick(raw, "slotInterval", "slot_interval"))
        or defaults.slot_interval,
        max_slots=_positive_int(_pick(raw, "maxSlots", "max_slots")) or defaults.max_slots,
        skip_past_time_today=bool(skip_past),
    )
