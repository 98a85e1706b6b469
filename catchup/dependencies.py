"""
FastAPI dependencies for the shared session engine objects.

The composition root (catchup.main.create_app) puts exactly one store,
broadcaster and classifier on ``app.state``; routes pull them from there
instead of importing module-level singletons.
"""

from fastapi import Request, WebSocket

from catchup.services.broadcaster import SessionBroadcaster
from catchup.services.classifier_service import KeywordClassifier
from catchup.services.session_store import SessionStore


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_broadcaster(request: Request) -> SessionBroadcaster:
    return request.app.state.broadcaster


def get_classifier(request: Request) -> KeywordClassifier:
    return request.app.state.classifier


def get_ws_broadcaster(websocket: WebSocket) -> SessionBroadcaster:
    return websocket.app.state.broadcaster
