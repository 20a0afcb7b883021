# bookingdesk/models/domain/integration_domain.py
"""
Calendar integration domain model (decrypted view of a tenant's connected calendar).
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel


class CalendarIntegration(BaseModel):
    """A tenant's Google Calendar connection with decrypted credentials."""

    integration_id: str
    tenant_id: str
    provider: str = "GOOGLE_CALENDAR"
    calendar_id: str = "primary"
    timezone: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
    oauth_client_id: str | None = None
    oauth_client_secret: str | None = None
    raw_configuration: dict[str, Any] = {}

    def has_tokens(self) -> bool:
        return bool(self.access_token or self.refresh_token)

    def has_own_oauth_client(self) -> bool:
        return bool(self.oauth_client_id and self.oauth_client_secret)

    def needs_refresh(self, buffer_minutes: int = 5) -> bool:
        """Check if the access token expires within the buffer."""
        if not self.access_token:
            return True
        if not self.expires_at:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return datetime.now(UTC) + timedelta(minutes=buffer_minutes) >= expires_at
