"""
CORS Middleware - Cross-Origin Resource Sharing configuration.

The listings web client calls these endpoints from the browser (the same
way it called the Supabase edge functions), so pre-flight requests must be
answered and responses must carry CORS headers.

Configuration:
- ``["*"]`` allows any origin (no credentials, the bearer token travels in
  the Authorization header)
- an explicit list locks the API down to those origins

Usage:
    app.add_middleware(CORSMiddleware, allowed_origins=settings.CORS_ALLOWED_ORIGINS)
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


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
        Args:
            app: FastAPI application
            allowed_origins: allowed origins, ``["*"]`` for any
            allow_methods: allowed HTTP methods (default: POST, GET, OPTIONS)
            allow_headers: allowed request headers (default: Supabase client headers)
            max_age: how long (seconds) browsers may cache preflight responses
        """
        super().__init__(app)
        self.allowed_origins = allowed_origins or ["*"]
        self.allow_any_origin = "*" in self.allowed_origins
        self.allow_methods = allow_methods or ["POST", "GET", "OPTIONS"]
        self.allow_headers = allow_headers or DEFAULT_ALLOW_HEADERS
        self.max_age = max_age

        logger.info(
            "CORS middleware initialized",
            allowed_origins=self.allowed_origins,
            allow_any_origin=self.allow_any_origin,
        )

    def _allowed_origin_header(self, origin: str | None) -> str | None:
        """Value for Access-Control-Allow-Origin, or None when not allowed."""
        if self.allow_any_origin:
            return "*"
        if origin and origin in self.allowed_origins:
            return origin
        return None

    async def dispatch(self, request, call_next):
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
            response.headers["Access-Control-Allow-Headers"] = ", ".join(self.allow_headers)
            if allow_origin != "*":
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
        if allow_origin != "*":
            headers["Vary"] = "Origin"

        logger.debug("CORS preflight request handled", origin=allow_origin)
        return Response(status_code=200, headers=headers)
