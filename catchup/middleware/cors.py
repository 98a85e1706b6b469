"""
CORS Middleware - lets the browser frontend call the session API.

Only origins from Settings.get_cors_origins() (FRONTEND_URL by default) get
CORS headers. Preflight requests from other origins are refused with 403.
WebSocket upgrades are not HTTP requests here and pass straight through.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from catchup.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]
DEFAULT_HEADERS = ["Accept", "Content-Type", "X-Request-ID", "X-Requested-With"]


class CORSMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        max_age: int = 600,
    ):
        super().__init__(app)
        self.allowed_origins = allowed_origins or []
        self.allow_methods = allow_methods or DEFAULT_METHODS
        self.allow_headers = allow_headers or DEFAULT_HEADERS
        self.max_age = max_age

        logger.info("CORS middleware initialized", allowed_origins=self.allowed_origins)

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        is_allowed_origin = bool(origin) and origin in self.allowed_origins

        if request.method == "OPTIONS" and origin:
            if not is_allowed_origin:
                logger.warning("CORS preflight rejected - origin not allowed", origin=origin)
                return Response(status_code=403, content="Origin not allowed")
            return Response(
                status_code=204,
                headers={
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
                    "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
                    "Access-Control-Max-Age": str(self.max_age),
                    "Vary": "Origin",
                },
            )

        response = await call_next(request)

        if is_allowed_origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
        elif origin:
            logger.warning("CORS request from disallowed origin", origin=origin, path=request.url.path)

        return response
