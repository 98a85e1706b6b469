"""
RequestContext Middleware - request id and client address for every HTTP call.

Binds request_id and client_ip into structlog context vars so every log line
emitted while handling the request carries them, and echoes the id back as
X-Request-ID.
"""

import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from catchup.config import settings
from catchup.infrastructure.observability.logging import get_logger, log_request

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        client_ip = self._extract_client_ip(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, client_ip=client_ip)

        start_time = time.time()
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "client_ip")

        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.time() - start_time) * 1000, 2),
            request_id=request_id,
            client_ip=client_ip,
        )
        response.headers["X-Request-ID"] = request_id
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Client IP, trusting X-Forwarded-For only behind a configured proxy.
        """
        direct_ip = request.client.host if request.client else None
        if not settings.TRUST_X_FORWARDED_FOR or direct_ip not in settings.TRUSTED_PROXY_IPS:
            return direct_ip

        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # "client, proxy1, proxy2"
            return forwarded_for.split(",")[0].strip()
        return direct_ip
