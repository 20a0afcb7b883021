from urllib.parse import parse_qs

import pytest

from bookingdesk.services.google_oauth_service import (
    GOOGLE_TOKEN_URL,
    GoogleOAuthError,
    refresh_access_token,
)


@pytest.mark.asyncio
async def test_refresh_keeps_refresh_token_when_not_rotated(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        json={"access_token": "new-access", "expires_in": 3599, "token_type": "Bearer"},
    )

    token = await refresh_access_token("refresh-1", "client-id-123456", "client-secret")

    assert token.access_token == "new-access"
    assert token.refresh_token == "refresh-1"
    assert token.expires_at is not None

    form = parse_qs(httpx_mock.get_request().content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["client_id"] == ["client-id-123456"]


@pytest.mark.asyncio
async def test_invalid_grant_is_mapped(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        status_code=400,
        json={"error": "invalid_grant", "error_description": "Token has been expired or revoked."},
    )

    with pytest.raises(GoogleOAuthError) as exc:
        await refresh_access_token("refresh-1", "client-id-123456", "client-secret")

    assert exc.value.error_code == "invalid_grant"
    assert "reconnect" in str(exc.value).lower()
