"""
realtime.py
-----------
Purpose:
    WebSocket gateway at /ws. Clients send ``{"type": ..., "data": {...}}``
    messages; server pushes broadcaster events on the same socket.

Inbound types:
    join-session   {sessionId, userId}           subscribe, receive snapshot
    leave-session  {sessionId, userId}           unsubscribe
    add-keyword    {sessionId, userId, text, category}
    vote           {sessionId, userId, keywordId, value}
    typing         {sessionId, userId, isTyping} relayed, never stored

Failures never close the socket: the acting connection gets an ``error``
event with the same body the HTTP gateway would return.
"""

from collections.abc import Callable

import pydantic
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from catchup.dependencies import get_ws_broadcaster
from catchup.infrastructure.observability.logging import get_logger
from catchup.models.api.session_request import (
    SocketAddKeywordData,
    SocketJoinData,
    SocketMessage,
    SocketTypingData,
    SocketVoteData,
)
from catchup.models.domain.errors import SessionError, ValidationError
from catchup.services.broadcaster import ConnectionHandle, SessionBroadcaster

router = APIRouter(tags=["realtime"])
logger = get_logger(__name__)


def _on_join(broadcaster: SessionBroadcaster, handle: ConnectionHandle, data: dict) -> None:
    payload = SocketJoinData.model_validate(data)
    broadcaster.join_room(handle, payload.session_id, payload.user_id)


def _on_leave(broadcaster: SessionBroadcaster, handle: ConnectionHandle, data: dict) -> None:
    broadcaster.leave_room(handle)


def _on_add_keyword(broadcaster: SessionBroadcaster, handle: ConnectionHandle, data: dict) -> None:
    payload = SocketAddKeywordData.model_validate(data)
    broadcaster.store.add_tag(payload.session_id, payload.user_id, payload.text, payload.category)


def _on_vote(broadcaster: SessionBroadcaster, handle: ConnectionHandle, data: dict) -> None:
    payload = SocketVoteData.model_validate(data)
    broadcaster.store.vote(payload.session_id, payload.user_id, payload.keyword_id, payload.value)


def _on_typing(broadcaster: SessionBroadcaster, handle: ConnectionHandle, data: dict) -> None:
    payload = SocketTypingData.model_validate(data)
    broadcaster.relay_typing(handle, payload.session_id, payload.user_id, payload.is_typing)


MESSAGE_HANDLERS: dict[str, Callable[[SessionBroadcaster, ConnectionHandle, dict], None]] = {
    "join-session": _on_join,
    "leave-session": _on_leave,
    "add-keyword": _on_add_keyword,
    "vote": _on_vote,
    "typing": _on_typing,
}


def handle_message(broadcaster: SessionBroadcaster, handle: ConnectionHandle, raw: str) -> None:
    """Parse and dispatch one inbound frame; report failures to the sender only."""
    try:
        message = SocketMessage.model_validate_json(raw)
    except pydantic.ValidationError:
        broadcaster.send_error(handle, ValidationError("Malformed message"))
        return

    handler = MESSAGE_HANDLERS.get(message.type)
    if handler is None:
        broadcaster.send_error(
            handle, ValidationError(f"Unknown message type: {message.type}", field="type")
        )
        return

    try:
        handler(broadcaster, handle, message.data)
    except pydantic.ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        broadcaster.send_error(
            handle,
            ValidationError(f"Invalid {message.type} payload", field=", ".join(missing) or None),
        )
    except SessionError as e:
        logger.info(
            "Realtime command rejected",
            connection_id=handle.id,
            message_type=message.type,
            error_code=e.code.value,
            recoverable=e.recoverable,
        )
        broadcaster.send_error(handle, e)


@router.websocket("/ws")
async def session_socket(
    websocket: WebSocket, broadcaster: SessionBroadcaster = Depends(get_ws_broadcaster)
):
    await websocket.accept()
    handle = ConnectionHandle(websocket.send_json)
    broadcaster.register(handle)
    handle.start()

    try:
        while True:
            raw = await websocket.receive_text()
            handle_message(broadcaster, handle, raw)
    except WebSocketDisconnect:
        logger.debug("Client disconnected", connection_id=handle.id)
    finally:
        await broadcaster.disconnect(handle)
