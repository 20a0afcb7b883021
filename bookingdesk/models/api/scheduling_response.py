# bookingdesk/models/api/scheduling_response.py
"""
Scheduling API response models.
Field aliases keep the camelCase wire format the automation engine expects.
"""

from pydantic import BaseModel, ConfigDict, Field

from bookingdesk.models.domain.calendar_domain import CalendarEvent
from bookingdesk.models.domain.scheduling_domain import CandidateSlot
from bookingdesk.services.scheduling.time_utils import isoformat_utc


class SlotResponse(BaseModel):
    """One bookable slot, UTC instants."""

    start: str = Field(..., description="Slot start (ISO-8601, UTC)")
    end: str = Field(..., description="Slot end (ISO-8601, UTC)")

    @classmethod
    def from_slot(cls, slot: CandidateSlot) -> "SlotResponse":
        return cls(start=isoformat_utc(slot.start), end=isoformat_utc(slot.end))


class SlotsResponse(BaseModel):
    """Response for slot computation."""

    slots: list[SlotResponse] = Field(..., description="Available slots in chronological order")


class BookEventResponse(BaseModel):
    """Response for a created booking."""

    model_config = ConfigDict(populate_by_name=True)

    event_id: str | None = Field(None, alias="eventId", description="Provider event ID")
    html_link: str | None = Field(None, alias="htmlLink", description="Link to the event")
    start: str | None = Field(None, description="Event start as stored by the provider")
    end: str | None = Field(None, description="Event end as stored by the provider")
    meet_link: str | None = Field(None, alias="meetLink", description="Video conference link")

    @classmethod
    def from_event(cls, event: CalendarEvent) -> "BookEventResponse":
        return cls.model_validate(event.to_booking_dict())
