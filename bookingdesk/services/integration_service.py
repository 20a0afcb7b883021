"""
Calendar integration service.
Loads a tenant's connected Google Calendar, decrypts its secrets and hands
out a valid (refreshed when needed) access token.
"""

from datetime import UTC, datetime
from typing import Any

from psycopg.types.json import Jsonb

from bookingdesk.config import settings
from bookingdesk.db.helpers import DatabaseError, execute_query, fetch_one, with_db_retry
from bookingdesk.db.pool import db_pool
from bookingdesk.infrastructure.observability.logging import get_logger
from bookingdesk.models.domain.integration_domain import CalendarIntegration
from bookingdesk.services.google_oauth_service import GoogleOAuthError, refresh_access_token
from bookingdesk.services.infrastructure.encryption_service import (
    EncryptionError,
    decrypt_if_encrypted,
    encrypt_token,
)
from bookingdesk.services.scheduling.errors import (
    IntegrationNotFoundError,
    OAuthConfigurationError,
    ServiceUnavailableError,
    UpstreamProviderError,
)

logger = get_logger(__name__)

GOOGLE_CALENDAR_PROVIDER = "GOOGLE_CALENDAR"


def _expiry_from_config(value: Any) -> datetime | None:
    """Token expiry is stored as epoch milliseconds."""
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=UTC)
    except (TypeError, ValueError, OverflowError):
        return None


def integration_from_row(row: dict[str, Any]) -> CalendarIntegration:
    """
    Build the decrypted domain model from an ``integrations`` row.

    Raises:
        EncryptionError: If a stored secret cannot be decrypted
    """
    config = row.get("configuration") or {}
    tokens = config.get("tokens") or {}

    return CalendarIntegration(
        integration_id=str(row["id"]),
        tenant_id=str(row["user_id"]),
        provider=config.get("provider", GOOGLE_CALENDAR_PROVIDER),
        calendar_id=config.get("calendarId") or "primary",
        timezone=config.get("timezone") or None,
        access_token=decrypt_if_encrypted(tokens.get("accessToken")),
        refresh_token=decrypt_if_encrypted(tokens.get("refreshToken")),
        expires_at=_expiry_from_config(tokens.get("expiryDate")),
        oauth_client_id=decrypt_if_encrypted(config.get("oauthClientId")),
        oauth_client_secret=decrypt_if_encrypted(config.get("oauthClientSecret")),
        raw_configuration=config,
    )


class CalendarIntegrationService:
    """Resolves tenants to calendar integrations and usable access tokens."""

    def _ensure_database(self) -> None:
        if not db_pool.initialized:
            raise ServiceUnavailableError("Database not available")

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def _fetch_integration_row(self, tenant_id: str) -> dict[str, Any] | None:
        query = """
        SELECT id, user_id, configuration
        FROM integrations
        WHERE user_id = %s AND type = 'CALENDAR' AND is_active = true
        ORDER BY updated_at DESC
        LIMIT 1
        """
        return await fetch_one(query, (tenant_id,))

    async def get_integration(self, tenant_id: str) -> CalendarIntegration:
        """
        Load the tenant's active Google Calendar integration.

        Raises:
            IntegrationNotFoundError: No active Google Calendar integration
            ServiceUnavailableError: Database unavailable
        """
        self._ensure_database()

        try:
            row = await self._fetch_integration_row(tenant_id)
        except DatabaseError as e:
            logger.error("Database error loading calendar integration", tenant_id=tenant_id, error=str(e))
            raise ServiceUnavailableError("Database not available", details=str(e)) from e

        if not row or (row.get("configuration") or {}).get("provider") != GOOGLE_CALENDAR_PROVIDER:
            logger.info("No connected calendar integration", tenant_id=tenant_id)
            raise IntegrationNotFoundError("Calendar integration not found or not connected")

        try:
            integration = integration_from_row(row)
        except EncryptionError as e:
            logger.error("Failed to decrypt calendar integration", tenant_id=tenant_id, error=str(e))
            raise OAuthConfigurationError(
                "Calendar credentials could not be decrypted", details=str(e)
            ) from e

        if not integration.has_tokens():
            raise IntegrationNotFoundError(
                "Calendar tokens not found. Please reconnect your calendar."
            )
        return integration

    def resolve_oauth_client(self, integration: CalendarIntegration) -> tuple[str, str]:
        """
        Tenant-supplied OAuth client when present, system client otherwise.

        Raises:
            OAuthConfigurationError: Neither is configured
        """
        if integration.has_own_oauth_client():
            return integration.oauth_client_id, integration.oauth_client_secret

        if settings.GOOGLE_CALENDAR_CLIENT_ID and settings.GOOGLE_CALENDAR_CLIENT_SECRET:
            return settings.GOOGLE_CALENDAR_CLIENT_ID, settings.GOOGLE_CALENDAR_CLIENT_SECRET

        raise OAuthConfigurationError("Google Calendar OAuth not configured")

    async def get_valid_access_token(self, integration: CalendarIntegration) -> str:
        """
        Return a usable access token, refreshing (and persisting) it when it
        expires within the configured buffer.

        Raises:
            OAuthConfigurationError: No OAuth client available for the refresh
            UpstreamProviderError: Google rejected the refresh
        """
        client_id, client_secret = self.resolve_oauth_client(integration)

        if not integration.needs_refresh(settings.TOKEN_REFRESH_BUFFER_MINUTES):
            return integration.access_token

        if not integration.refresh_token:
            raise IntegrationNotFoundError(
                "Calendar tokens not found. Please reconnect your calendar."
            )

        try:
            token_response = await refresh_access_token(
                integration.refresh_token, client_id, client_secret
            )
        except GoogleOAuthError as e:
            raise UpstreamProviderError(
                str(e), details={"error_code": e.error_code}
            ) from e

        await self._store_refreshed_token(integration, token_response.access_token, token_response.expires_at)
        return token_response.access_token

    async def _store_refreshed_token(
        self, integration: CalendarIntegration, access_token: str, expires_at: datetime | None
    ) -> None:
        """Persist the refreshed token. Failures are logged, the token is still used."""
        tokens = dict(integration.raw_configuration.get("tokens") or {})
        try:
            tokens["accessToken"] = encrypt_token(access_token)
            tokens["expiryDate"] = int(expires_at.timestamp() * 1000) if expires_at else None

            query = """
            UPDATE integrations
            SET configuration = jsonb_set(configuration, '{tokens}', %s), updated_at = NOW()
            WHERE id = %s
            """
            await execute_query(query, (Jsonb(tokens), integration.integration_id))
            logger.info("Refreshed calendar token stored", tenant_id=integration.tenant_id)
        except (DatabaseError, EncryptionError) as e:
            logger.warning(
                "Failed to store refreshed calendar token",
                tenant_id=integration.tenant_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def get_calendar_credential(self, tenant_id: str) -> tuple[CalendarIntegration, str]:
        """Integration plus a valid access token for ``tenant_id``."""
        integration = await self.get_integration(tenant_id)
        access_token = await self.get_valid_access_token(integration)
        return integration, access_token


# Singleton instance for application use
calendar_integration_service = CalendarIntegrationService()
