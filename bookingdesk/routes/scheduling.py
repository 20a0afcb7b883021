"""
Scheduling API Routes
Internal endpoints the automation engine (and the dashboard) call to list
bookable slots and to book one.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from bookingdesk.auth.verify import optional_session
from bookingdesk.infrastructure.observability.logging import bind_request_context, get_logger
from bookingdesk.models.api.scheduling_request import SchedulingIdentityRequest
from bookingdesk.models.api.scheduling_response import (
    BookEventResponse,
    SlotResponse,
    SlotsResponse,
)
from bookingdesk.models.domain.scheduling_domain import ResolvedIdentity
from bookingdesk.services.identity_service import resolve_identity
from bookingdesk.services.scheduling.errors import SchedulingError, ValidationError
from bookingdesk.services.scheduling.scheduling_service import scheduling_service

logger = get_logger(__name__)

router = APIRouter(prefix="/internal/calendar", tags=["scheduling"])

POST_ONLY_MESSAGE = "This endpoint only accepts POST requests. Please use POST method with JSON body."

BOOKING_VALIDATION_SUGGESTION = (
    "Please check that the slot dates are valid ISO 8601 format "
    '(e.g., "2025-01-15T14:00:00Z") and the end time is after the start time.'
)
BOOKING_FAILURE_SUGGESTION = (
    "Calendar booking failed. Please try again or contact support if the issue persists."
)


async def _read_payload(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError as e:
        raise ValidationError("Request body must be valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


async def _identify(request: Request, claims: dict | None) -> tuple[dict[str, Any], ResolvedIdentity]:
    payload = await _read_payload(request)
    try:
        envelope = SchedulingIdentityRequest.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError("Invalid identity fields", field="tenantId") from e

    identity = await resolve_identity(
        claims,
        tenant_id=envelope.tenant_id,
        workflow_id=envelope.workflow_id,
        api_key=envelope.api_key,
    )
    request.state.tenant_id = identity.tenant_id
    bind_request_context(tenant_id=identity.tenant_id)
    return payload, identity


def _error_response(error: SchedulingError, suggestion: str | None = None) -> JSONResponse:
    content = error.to_dict()
    if suggestion:
        content["suggestion"] = suggestion
    return JSONResponse(status_code=error.status_code, content=content)


@router.get("/get-slots", include_in_schema=False)
@router.get("/book-event", include_in_schema=False)
async def post_only():
    """Both endpoints take a JSON body."""
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"error": POST_ONLY_MESSAGE},
        headers={"Allow": "POST, OPTIONS"},
    )


@router.post("/get-slots", response_model=SlotsResponse)
async def get_slots(request: Request, claims: dict | None = Depends(optional_session)):
    """List bookable slots for a tenant's connected calendar."""
    tenant_id = None
    try:
        payload, identity = await _identify(request, claims)
        tenant_id = identity.tenant_id
        slots = await scheduling_service.get_available_slots(identity, payload)
        return SlotsResponse(slots=[SlotResponse.from_slot(slot) for slot in slots])

    except SchedulingError as e:
        logger.warning(
            "Slot request rejected",
            tenant_id=tenant_id,
            error=e.message,
            status_code=e.status_code,
        )
        return _error_response(e)
    except Exception as e:
        logger.error(
            "Error getting calendar slots",
            tenant_id=tenant_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to get calendar slots", "details": str(e)},
        )


@router.post("/book-event", response_model=BookEventResponse)
async def book_event(request: Request, claims: dict | None = Depends(optional_session)):
    """Book a slot on a tenant's connected calendar and invite attendees."""
    tenant_id = None
    try:
        payload, identity = await _identify(request, claims)
        tenant_id = identity.tenant_id
        event = await scheduling_service.book_event(identity, payload)

        logger.info("Calendar event booked", tenant_id=tenant_id, event_id=event.id)
        return BookEventResponse.from_event(event)

    except ValidationError as e:
        logger.warning("Booking rejected", tenant_id=tenant_id, error=e.message)
        return _error_response(e, BOOKING_VALIDATION_SUGGESTION)
    except SchedulingError as e:
        logger.warning(
            "Booking failed",
            tenant_id=tenant_id,
            error=e.message,
            status_code=e.status_code,
        )
        suggestion = BOOKING_FAILURE_SUGGESTION if e.status_code >= 500 else None
        return _error_response(e, suggestion)
    except Exception as e:
        logger.error(
            "Error booking calendar event",
            tenant_id=tenant_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Failed to book calendar event",
                "details": str(e),
                "suggestion": BOOKING_FAILURE_SUGGESTION,
            },
        )
