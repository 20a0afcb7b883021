"""
CORS Middleware - Cross-Origin Resource Sharing configuration.

The scheduling endpoints are called server-to-server by the automation
engine and from browser widgets, so the default policy is "*".

Configuration:
- CORS_ALLOWED_ORIGINS="*": any origin, no credentials
- CORS_ALLOWED_ORIGINS="https://a.example,https://b.example": listed origins only

Usage:
    from bookingdesk.middleware.cors import CORSMiddleware

    app.add_middleware(CORSMiddleware, allowed_origins=settings.cors_origins())

Headers added:
- Access-Control-Allow-Origin: "*" or the echoed origin
- Access-Control-Allow-Methods: Which HTTP methods allowed
- Access-Control-Allow-Headers: Which headers allowed
- Access-Control-Max-Age: How long to cache preflight responses
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from bookingdesk.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

WILDCARD = "*"


class CORSMiddleware(BaseHTTPMiddleware):
    """
    CORS (Cross-Origin Resource Sharing) middleware.

    Handles preflight OPTIONS requests and adds CORS headers to responses.
    """

    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        max_age: int = 600,
    ):
        """
        Initialize CORS middleware.

        Args:
            app: FastAPI application
            allowed_origins: Allowed origins; ["*"] allows any origin
            allow_methods: Allowed HTTP methods (default: POST and OPTIONS plus GET for health)
            allow_headers: Allowed request headers
            max_age: How long (seconds) to cache preflight responses
        """
        super().__init__(app)
        self.allowed_origins = allowed_origins or []
        self.allow_any_origin = WILDCARD in self.allowed_origins
        self.allow_methods = allow_methods or ["GET", "POST", "OPTIONS"]
        self.allow_headers = allow_headers or [
            "Accept",
            "Content-Type",
            "Authorization",
            "X-Request-ID",
        ]
        self.max_age = max_age

        logger.info(
            "CORS middleware initialized",
            allowed_origins=self.allowed_origins,
            allow_any_origin=self.allow_any_origin,
        )

    def _allowed_origin_header(self, origin: str | None) -> str | None:
        """Value for Access-Control-Allow-Origin, or None when not allowed."""
        if self.allow_any_origin:
            return WILDCARD
        if origin and origin in self.allowed_origins:
            return origin
        return None

    async def dispatch(self, request, call_next):
        """
        Process request and add CORS headers.

        Handles:
        1. Preflight OPTIONS requests (return immediately)
        2. Regular requests (add CORS headers to response)
        """
        origin = request.headers.get("origin")
        allow_origin = self._allowed_origin_header(origin)

        if request.method == "OPTIONS":
            if allow_origin:
                return self._preflight_response(allow_origin)

            logger.warning(
                "CORS preflight rejected - origin not allowed",
                origin=origin,
                allowed_origins=self.allowed_origins,
            )
            return Response(status_code=403, content="Origin not allowed")

        response = await call_next(request)

        if allow_origin:
            response.headers["Access-Control-Allow-Origin"] = allow_origin
            if allow_origin != WILDCARD:
                response.headers["Vary"] = "Origin"
        elif origin:
            logger.warning(
                "CORS request from disallowed origin",
                origin=origin,
                path=request.url.path,
            )

        return response

    def _preflight_response(self, allow_origin: str) -> Response:
        headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
            "Access-Control-Max-Age": str(self.max_age),
        }

        logger.debug("CORS preflight request handled", allow_origin=allow_origin)

        return Response(status_code=200, headers=headers)
