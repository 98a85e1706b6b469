"""
Middleware components for HTTP request processing.

- Request context (request ID, client IP, request logging)
- CORS for the browser frontend
- Security headers
"""

from catchup.middleware.cors import CORSMiddleware
from catchup.middleware.request_context import RequestContextMiddleware
from catchup.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "RequestContextMiddleware",
    "CORSMiddleware",
    "SecurityHeadersMiddleware",
]
