# bookingdesk/models/api/scheduling_request.py
"""
Scheduling API request models.
Only the identity envelope is typed here. Scheduling fields are lenient and
normalized by the scheduling services, so unknown keys are kept.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SchedulingIdentityRequest(BaseModel):
    """Identity fields shared by the get-slots and book-event bodies."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    tenant_id: str | None = Field(default=None, alias="tenantId", description="Tenant (user) ID")
    workflow_id: str | None = Field(
        default=None, alias="workflowId", description="Workflow ID (ours or the automation engine's)"
    )
    api_key: str | None = Field(default=None, alias="apiKey", description="Internal API key")

    @field_validator("tenant_id", "workflow_id", "api_key", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str | None:
        if value is None or value == "":
            return None
        return str(value)
