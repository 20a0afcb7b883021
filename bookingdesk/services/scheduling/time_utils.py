"""
Timezone-aware date arithmetic used by the availability calculator.
Pure functions, no I/O.
"""

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

WEEKDAY_ABBREVIATIONS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def get_zone(tz_name: str | None, fallback: str = "UTC") -> ZoneInfo:
    """Resolve an IANA zone name, falling back when it is empty or unknown."""
    for name in (tz_name, fallback, "UTC"):
        if not name:
            continue
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return ZoneInfo("UTC")


def weekday_abbreviation(day: date) -> str:
    return WEEKDAY_ABBREVIATIONS[day.weekday()]


def to_local(instant: datetime, tz: ZoneInfo) -> datetime:
    """Convert an instant to wall-clock time in ``tz``. Naive input is taken as UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(tz)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def parse_hhmm(value: str) -> time:
    """Parse ``HH:MM`` (``HH:MM:SS`` tolerated). Raises ValueError on bad input."""
    parts = str(value).strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time of day: {value!r}")
    return time(int(parts[0]), int(parts[1]))


def combine_local(day: date, hhmm: str, tz: ZoneInfo) -> datetime:
    """Return ``day`` at the ``HH:MM`` wall-clock time in ``tz``."""
    return datetime.combine(day, parse_hhmm(hhmm), tzinfo=tz)


def start_of_week(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open interval overlap: ``[a) ∩ [b) != ∅``."""
    return start_a < end_b and end_a > start_b


def parse_instant(value) -> datetime:
    """
    Parse an ISO-8601 instant into an aware UTC datetime.

    Accepts ``datetime`` objects, a trailing ``Z`` and explicit offsets; naive
    values are taken as UTC. Raises ValueError when the value is unparseable.
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not an ISO-8601 instant: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


def parse_local_date(value) -> date | None:
    """
    Parse the leading ``YYYY-MM-DD`` of a string as a calendar date.

    Any time or zone suffix is ignored so that ``2025-12-25T00:00:00Z`` is
    the 25th everywhere, not the 24th west of UTC.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    parts = value.strip()[:10].split("-")
    if len(parts) != 3:
        return None
    try:
        return date(int(parts[0]), int(parts[1]), int(parts[2]))
    except ValueError:
        return None


def isoformat_utc(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return to_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")
