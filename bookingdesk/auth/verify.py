"""
verify.py
---------
Purpose:
    Dashboard session verification for scheduling endpoints.

Notes:
    - Session JWTs are verified against the dashboard's JWKS and cached keys.
    - The bearer header is optional: automation callers identify themselves
      with a workflow or tenant id in the body instead.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from bookingdesk.config import settings

_jwk_client = PyJWKClient(settings.SESSION_JWKS_URL)
_security = HTTPBearer(auto_error=False)


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client.get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256", "RS256"],
            audience=settings.SESSION_JWT_AUDIENCE,
            options={"verify_exp": True},
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def optional_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> dict | None:
    """Session claims when a bearer token is present, otherwise None."""
    if credentials is None:
        return None
    return verify_jwt(credentials.credentials)
