"""
Booking input normalization.

Callers (mostly automation workflows) send loosely typed payloads: the slot
nested or flat, attendees as a string, a JSON-encoded list or a list, and the
meeting-link flag as a bool or a string. All of that coercion happens here;
the executor only ever sees a BookingRequest.
"""

import json
from collections.abc import Mapping
from typing import Any

from bookingdesk.models.domain.scheduling_domain import BookingRequest, BookingSlot
from bookingdesk.services.scheduling.errors import ValidationError
from bookingdesk.services.scheduling.time_utils import parse_instant

SLOT_REQUIRED_MESSAGE = (
    "Invalid slot: start and end are required. "
    "Provide either { slot: { start, end } } or { start, end } in the request body."
)
INVALID_DATE_MESSAGE = "Invalid date format: start and end must be valid ISO 8601 dates"


def normalize_attendees(value: Any) -> tuple[str, ...]:
    """
    Coerce attendees to unique, trimmed, non-empty strings (first-seen order).

    ``"a@x.com"``, ``["a@x.com"]`` and ``'["a@x.com"]'`` all give ``("a@x.com",)``.
    """
    if value is None:
        return ()

    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            parsed = None
        items = parsed if isinstance(parsed, list) else [value]
    elif isinstance(value, list | tuple | set | frozenset):
        items = list(value)
    else:
        return ()

    attendees: list[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        email = item.strip()
        if email and email not in attendees:
            attendees.append(email)
    return tuple(attendees)


def normalize_flag(value: Any) -> bool:
    """Bool, or the strings ``"true"``/``"false"`` (any case). Anything else is False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def extract_slot(raw: Mapping[str, Any]) -> tuple[Any, Any]:
    """Return raw ``(start, end)`` from ``{slot: {start, end}}`` or flat ``{start, end}``."""
    slot = raw.get("slot")
    if isinstance(slot, Mapping) and slot.get("start") and slot.get("end"):
        return slot["start"], slot["end"]
    if raw.get("start") and raw.get("end"):
        return raw["start"], raw["end"]
    raise ValidationError(SLOT_REQUIRED_MESSAGE, field="slot")


def parse_slot(start: Any, end: Any) -> BookingSlot:
    received = {"start": str(start), "end": str(end)}
    try:
        start_at = parse_instant(start)
        end_at = parse_instant(end)
    except (TypeError, ValueError) as e:
        raise ValidationError(INVALID_DATE_MESSAGE, field="slot", received=received) from e

    if end_at <= start_at:
        raise ValidationError(
            "Invalid slot: end time must be after start time", field="slot", received=received
        )
    return BookingSlot(start=start_at, end=end_at)


def normalize_booking_input(raw: Mapping[str, Any]) -> BookingRequest:
    """
    Build a BookingRequest from a raw request body.

    Raises:
        ValidationError: missing/unparseable slot, ``end <= start`` or missing title
    """
    start, end = extract_slot(raw)

    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required", field="title")

    slot = parse_slot(start, end)

    description = raw.get("description")
    if description is not None and not isinstance(description, str):
        description = str(description)

    return BookingRequest(
        slot=slot,
        title=title.strip(),
        description=description or None,
        attendees=normalize_attendees(raw.get("attendees")),
        add_meet_link=normalize_flag(raw.get("addMeetLink", raw.get("add_meet_link"))),
    )
