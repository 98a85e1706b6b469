"""
Liveness and readiness endpoints.
"""

from fastapi import APIRouter, Depends

from catchup.dependencies import get_broadcaster, get_store
from catchup.services.broadcaster import SessionBroadcaster
from catchup.services.session_store import SessionStore

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "catchup"}


@router.get("/readyz")
async def readyz(
    store: SessionStore = Depends(get_store),
    broadcaster: SessionBroadcaster = Depends(get_broadcaster),
):
    """In-memory engine has no external dependencies; report its load instead."""
    summary = store.summary()
    return {
        "status": "ready",
        "checks": {
            "store": {"ok": True, **summary},
            "realtime": {"ok": True, "connections": broadcaster.connection_count},
        },
    }
