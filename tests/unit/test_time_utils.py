from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from bookingdesk.services.scheduling.time_utils import (
    combine_local,
    get_zone,
    intervals_overlap,
    isoformat_utc,
    parse_hhmm,
    parse_instant,
    parse_local_date,
    start_of_week,
    weekday_abbreviation,
)

NY = ZoneInfo("America/New_York")


def test_get_zone_fallbacks():
    assert get_zone("America/New_York").key == "America/New_York"
    assert get_zone(None, fallback="Europe/Paris").key == "Europe/Paris"
    assert get_zone("Not/AZone", fallback="Also/Bad").key == "UTC"


def test_weekday_abbreviation():
    assert weekday_abbreviation(date(2025, 1, 13)) == "mon"
    assert weekday_abbreviation(date(2025, 1, 12)) == "sun"


def test_parse_hhmm():
    assert parse_hhmm("09:30") == time(9, 30)
    assert parse_hhmm(" 17:00:00 ") == time(17, 0)
    with pytest.raises(ValueError):
        parse_hhmm("9")
    with pytest.raises(ValueError):
        parse_hhmm("25:00")


def test_combine_local_uses_zone_offset():
    summer = combine_local(date(2025, 7, 1), "09:00", NY)
    winter = combine_local(date(2025, 1, 6), "09:00", NY)
    assert summer.astimezone(UTC).hour == 13
    assert winter.astimezone(UTC).hour == 14


def test_start_of_week_is_monday():
    assert start_of_week(date(2025, 1, 12)) == date(2025, 1, 6)
    assert start_of_week(date(2025, 1, 13)) == date(2025, 1, 13)


def test_intervals_overlap_touching_is_free():
    a = datetime(2025, 1, 13, 9, tzinfo=UTC)
    b = datetime(2025, 1, 13, 10, tzinfo=UTC)
    c = datetime(2025, 1, 13, 11, tzinfo=UTC)
    assert intervals_overlap(a, b, b, c) is False
    assert intervals_overlap(a, c, b, c) is True


def test_parse_instant_forms():
    expected = datetime(2025, 1, 15, 14, 0, tzinfo=UTC)
    assert parse_instant("2025-01-15T14:00:00Z") == expected
    assert parse_instant("2025-01-15T09:00:00-05:00") == expected
    assert parse_instant("2025-01-15T14:00:00") == expected
    assert parse_instant(expected) == expected
    assert parse_instant("2025-01-15T09:00:00-05:00").tzinfo == UTC


@pytest.mark.parametrize("value", ["", "tomorrow", None, 12345, "2025-13-01T00:00:00Z"])
def test_parse_instant_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_instant(value)


def test_parse_local_date():
    assert parse_local_date("2025-12-25") == date(2025, 12, 25)
    assert parse_local_date("2025-12-25T23:00:00-08:00") == date(2025, 12, 25)
    assert parse_local_date("Dec 25") is None
    assert parse_local_date(None) is None


def test_isoformat_utc():
    value = datetime(2025, 1, 13, 9, 0, tzinfo=NY)
    assert isoformat_utc(value) == "2025-01-13T14:00:00.000Z"
