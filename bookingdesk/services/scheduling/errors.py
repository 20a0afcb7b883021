"""
Error taxonomy for slot computation and booking.
Each error carries the HTTP status the route layer should answer with.
"""

from typing import Any


class SchedulingError(Exception):
    """Base exception for scheduling operations."""

    status_code = 500

    def __init__(self, message: str, details: Any = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "details": self.details}


class ValidationError(SchedulingError):
    """Malformed or logically inconsistent input. Never retried."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None, received: Any = None):
        super().__init__(message, details=field)
        self.field = field
        self.received = received

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.received is not None:
            data["received"] = self.received
        return data


class AuthorizationError(SchedulingError):
    """Identity could not be resolved or does not match the session."""

    status_code = 401


class IntegrationNotFoundError(SchedulingError):
    """Tenant has no connected calendar (or the workflow is unknown)."""

    status_code = 404


class OAuthConfigurationError(SchedulingError):
    """No OAuth client credentials are available for the calendar provider."""

    status_code = 500


class UpstreamProviderError(SchedulingError):
    """The calendar provider or token endpoint failed."""

    status_code = 502


class ServiceUnavailableError(SchedulingError):
    """A required backing service (database) is not available."""

    status_code = 503
