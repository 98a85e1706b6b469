"""
Structured logging setup for the catchup planning service.
Provides JSON-formatted logs with consistent fields for session tracing.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            # Request-scoped fields (request_id) bound by middleware
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_service_context,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_service_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag every entry with the service name."""
    event_dict.setdefault("service", "catchup")
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_session_event(event: str, session_id: str | None, **fields: Any) -> None:
    """Log a session lifecycle transition with consistent fields."""
    logger = get_logger("session.lifecycle")
    logger.info("Session lifecycle event", lifecycle_event=event, session_id=session_id, **fields)


def log_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    request_id: str = None,
    client_ip: str = None,
):
    """Log HTTP requests with consistent fields."""
    logger = get_logger("http")

    log_data = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "event_type": "http_request",
    }

    if request_id:
        log_data["request_id"] = request_id
    if client_ip:
        log_data["client_ip"] = client_ip

    if status_code >= 400:
        logger.warning("HTTP request failed", **log_data)
    else:
        logger.info("HTTP request completed", **log_data)
