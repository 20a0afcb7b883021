"""
Google OAuth token refresh for calendar integrations.
Tenants may bring their own OAuth client, so client credentials are passed
per call instead of being read from settings.
"""

from datetime import UTC, datetime, timedelta

import httpx

from bookingdesk.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
REQUEST_TIMEOUT = 10  # seconds


class GoogleOAuthError(Exception):
    """Custom exception for Google OAuth-related errors."""

    def __init__(
        self, message: str, error_code: str | None = None, response_data: dict | None = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.response_data = response_data or {}


class TokenResponse:
    """Structured representation of OAuth token response."""

    def __init__(self, data: dict):
        self.access_token = data.get("access_token")
        self.refresh_token = data.get("refresh_token")
        self.token_type = data.get("token_type", "Bearer")
        self.expires_in = data.get("expires_in")
        self.scope = data.get("scope", "")

        if self.expires_in:
            self.expires_at = datetime.now(UTC) + timedelta(seconds=int(self.expires_in))
        else:
            self.expires_at = None

    def is_valid(self) -> bool:
        """Check if token response contains required fields."""
        return bool(self.access_token and self.token_type)


def _map_google_error(error_code: str) -> str:
    error_messages = {
        "invalid_grant": "Calendar authorization expired or was revoked. Please reconnect your calendar.",
        "invalid_client": "Calendar OAuth client configuration is invalid.",
        "unauthorized_client": "Calendar OAuth client is not authorized for this grant.",
    }
    return error_messages.get(error_code, f"Failed to refresh calendar token ({error_code})")


async def refresh_access_token(
    refresh_token: str,
    client_id: str,
    client_secret: str,
    client: httpx.AsyncClient | None = None,
) -> TokenResponse:
    """
    Exchange a refresh token for a new access token.

    Args:
        refresh_token: Stored refresh token
        client_id: OAuth client id (tenant's or system)
        client_secret: OAuth client secret
        client: Optional HTTP client to reuse

    Returns:
        TokenResponse: New access token; the refresh token is preserved when
        Google does not rotate it

    Raises:
        GoogleOAuthError: If the refresh fails
    """
    data = {
        "client_id": client_id,
        "client_secret": client_secret,
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }

    logger.info("Refreshing calendar access token", client_id_preview=client_id[:12] + "...")

    try:
        if client is not None:
            response = await client.post(GOOGLE_TOKEN_URL, data=data)
        else:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as http:
                response = await http.post(GOOGLE_TOKEN_URL, data=data)
    except httpx.RequestError as e:
        logger.error("Network error during token refresh", error=str(e), error_type=type(e).__name__)
        raise GoogleOAuthError(f"Network error during token refresh: {e}") from e

    if not response.is_success:
        try:
            error_data = response.json()
        except ValueError:
            logger.error(
                "Token refresh failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise GoogleOAuthError(
                f"Failed to refresh token: {response.status_code} {response.text[:200]}"
            ) from None

        error_code = error_data.get("error", "unknown_error")
        logger.error(
            "Token refresh failed",
            status_code=response.status_code,
            error_code=error_code,
            error_description=error_data.get("error_description"),
        )
        raise GoogleOAuthError(
            _map_google_error(error_code), error_code=error_code, response_data=error_data
        )

    try:
        token_response = TokenResponse(response.json())
    except ValueError as e:
        raise GoogleOAuthError(f"Failed to parse Google response: {e}") from e

    if not token_response.is_valid():
        raise GoogleOAuthError("Invalid token response from Google")

    if not token_response.refresh_token:
        token_response.refresh_token = refresh_token

    logger.info("Calendar access token refreshed", expires_in=token_response.expires_in)
    return token_response
