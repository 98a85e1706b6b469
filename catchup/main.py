"""
Application entry point and composition root.

Owns the single SessionStore, wires the broadcaster to it, and manages the
expiration sweep task across the app lifespan.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from catchup.config import settings
from catchup.infrastructure.observability.logging import get_logger, setup_logging
from catchup.jobs.expiration_sweep_job import start_expiration_sweep_scheduler
from catchup.middleware import CORSMiddleware, RequestContextMiddleware, SecurityHeadersMiddleware
from catchup.models.api.session_response import ErrorResponse
from catchup.models.domain.errors import ErrorCode, SessionError
from catchup.routes import health, realtime, session
from catchup.services.broadcaster import SessionBroadcaster
from catchup.services.classifier_service import KeywordClassifier, build_classifier
from catchup.services.session_store import SessionStore

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)

ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INACTIVE_SESSION: 410,
    ErrorCode.NAME_CONFLICT: 409,
    ErrorCode.AUTHORIZATION: 403,
    ErrorCode.SESSION_FULL: 409,
}


async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(exc.code, 400)
    logger.info(
        "Session request rejected",
        path=request.url.path,
        status_code=status_code,
        error_code=exc.code.value,
        field=exc.field,
    )
    return JSONResponse(status_code=status_code, content=ErrorResponse(**exc.to_dict()).to_wire())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or mistyped body fields use the same error body as store validation."""
    fields = [str(err["loc"][-1]) for err in exc.errors() if err.get("loc")]
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorCode.VALIDATION.value,
            message="Invalid request body",
            field=", ".join(fields) or None,
        ).to_wire(),
    )


def create_app(
    store: SessionStore | None = None,
    classifier: KeywordClassifier | None = None,
    sweep_interval_seconds: float | None = None,
) -> FastAPI:
    """
    Build the application around one store instance.

    Tests pass their own store (short TTL, fake clock) and classifier.
    """
    store = store or SessionStore(**settings.get_store_config())
    broadcaster = SessionBroadcaster(store)
    classifier = classifier or build_classifier(settings)
    interval = sweep_interval_seconds or settings.SESSION_SWEEP_INTERVAL_SECONDS

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Application starting",
            environment=settings.environment,
            debug=settings.debug,
            classifier=classifier.name,
        )
        sweep_task = asyncio.create_task(start_expiration_sweep_scheduler(store, interval))

        yield

        logger.info("Application shutting down")
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
        logger.info("Expiration sweep stopped", connections=broadcaster.connection_count)

    app = FastAPI(
        title="Catchup Planning Service",
        description="Real-time collaborative meetup planning",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.classifier = classifier

    # Last added runs first: request context wraps everything
    app.add_middleware(SecurityHeadersMiddleware, enforce_https=settings.environment == "production")
    app.add_middleware(CORSMiddleware, allowed_origins=settings.get_cors_origins())
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(SessionError, session_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(health.router)
    app.include_router(session.router)
    app.include_router(realtime.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
