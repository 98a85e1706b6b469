"""
Realtime fan-out of store mutations to connected clients.

Design:
    - Each realtime connection is a ``ConnectionHandle`` with its own FIFO
      queue drained by a single sender task, so one connection always sees
      events in the order the store committed them
    - ``SessionBroadcaster.handle_store_event`` is a store listener; it runs
      under the store lock and only builds payloads and ``put_nowait``s them
    - First sync is always a full ``session-updated`` snapshot, never a delta
    - Every event names the participant whose action caused it so clients
      can drop echoes of their own writes
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from catchup.infrastructure.observability.logging import get_logger
from catchup.models.api.events import BroadcastEvent, EventType
from catchup.models.domain.errors import SessionError
from catchup.models.domain.session_domain import Session, TerminationReason
from catchup.services.serialization import (
    format_timestamp,
    serialize_participant,
    serialize_session,
    serialize_tag,
    serialize_votes,
    session_stats,
)
from catchup.services.session_store import SessionStore, StoreEvent, StoreEventKind

logger = get_logger(__name__)

SendFunc = Callable[[dict[str, Any]], Awaitable[None]]

_CLOSE = None  # queue sentinel

_TERMINATION_MESSAGES = {
    TerminationReason.DELETED: "Session has been deleted by the admin",
    TerminationReason.EXPIRED: "Session has expired",
    TerminationReason.REPLACED: "Session was replaced by a new session",
}


class ConnectionHandle:
    """One client connection and its ordered outbound queue."""

    def __init__(self, send: SendFunc, connection_id: str | None = None):
        self.id = connection_id or f"conn_{uuid.uuid4().hex[:12]}"
        self.session_id: str | None = None
        self.participant_id: str | None = None
        self._send = send
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self.sent_count = 0

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._drain(), name=f"sender-{self.id}")

    def enqueue(self, message: dict[str, Any]) -> None:
        self._queue.put_nowait(message)

    async def close(self) -> None:
        """Flush whatever is queued, then stop the sender task."""
        self._queue.put_nowait(_CLOSE)
        if self._task is not None:
            await self._task
            self._task = None

    async def _drain(self) -> None:
        while True:
            message = await self._queue.get()
            if message is _CLOSE:
                return
            try:
                await self._send(message)
                self.sent_count += 1
            except Exception as e:
                logger.warning("Send failed, stopping sender", connection_id=self.id, error=str(e))
                return


class SessionBroadcaster:
    """Translates ``StoreEvent``s into push events for session subscribers."""

    def __init__(self, store: SessionStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(UTC))
        self._connections: dict[str, ConnectionHandle] = {}
        self._rooms: dict[str, dict[str, ConnectionHandle]] = {}
        store.subscribe(self.handle_store_event)

    # -----------------------------------------------------------------
    # Connection management (called by the realtime gateway)
    # -----------------------------------------------------------------

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def subscriber_count(self, session_id: str) -> int:
        return len(self._rooms.get(session_id, {}))

    def register(self, handle: ConnectionHandle) -> None:
        self._connections[handle.id] = handle
        logger.info("Realtime connection opened", connection_id=handle.id)

    def join_room(self, handle: ConnectionHandle, session_id: str, participant_id: str) -> None:
        """
        Subscribe a connection to a session.

        The store validates the pair and, through CONNECTION_ATTACHED, the
        joiner gets a snapshot and everybody gets the new online count.

        Raises:
            NotFoundError: Unknown session or participant
        """
        if handle.session_id and handle.session_id != session_id:
            self._rooms.get(handle.session_id, {}).pop(handle.id, None)
        self.store.attach_connection(session_id, participant_id, handle.id)
        handle.session_id = session_id
        handle.participant_id = participant_id

    def leave_room(self, handle: ConnectionHandle) -> None:
        session_id = handle.session_id
        participant_id = handle.participant_id
        if session_id is None:
            return

        self._rooms.get(session_id, {}).pop(handle.id, None)
        handle.session_id = None
        handle.participant_id = None
        self.store.detach_connection(handle.id)

        self._publish(
            session_id,
            EventType.PARTICIPANT_LEFT,
            {"userId": participant_id},
            origin=participant_id,
        )

    async def disconnect(self, handle: ConnectionHandle) -> None:
        if handle.session_id is not None:
            self._rooms.get(handle.session_id, {}).pop(handle.id, None)
        self._connections.pop(handle.id, None)
        self.store.detach_connection(handle.id)
        await handle.close()
        logger.info("Realtime connection closed", connection_id=handle.id, delivered=handle.sent_count)

    def relay_typing(self, handle: ConnectionHandle, session_id: str, participant_id: str, is_typing: bool) -> None:
        """Typing indicators bypass the store; they go to everyone but the typist."""
        if handle.session_id != session_id:
            return
        self._publish(
            session_id,
            EventType.USER_TYPING,
            {"userId": participant_id, "isTyping": is_typing},
            origin=participant_id,
            exclude=handle.id,
        )

    def send_error(self, handle: ConnectionHandle, error: SessionError | str) -> None:
        payload = error.to_dict() if isinstance(error, SessionError) else {"message": error}
        handle.enqueue(self._envelope(EventType.ERROR, handle.session_id, payload, handle.participant_id))

    # -----------------------------------------------------------------
    # Store listener
    # -----------------------------------------------------------------

    def handle_store_event(self, event: StoreEvent) -> None:
        session = event.session
        kind = event.kind

        if kind == StoreEventKind.PARTICIPANT_JOINED:
            self._publish(
                session.id,
                EventType.PARTICIPANT_JOINED,
                serialize_participant(event.participant).to_wire(),
                origin=event.actor_id,
            )
            self._publish_count(session, event.actor_id)
            self._publish_stats(session, event.actor_id)

        elif kind == StoreEventKind.TAG_ADDED:
            self._publish(
                session.id,
                EventType.KEYWORD_ADDED,
                serialize_tag(event.tag).to_wire(),
                origin=event.actor_id,
            )
            self._publish_stats(session, event.actor_id)

        elif kind == StoreEventKind.VOTES_CHANGED:
            tag = event.tag
            self._publish(
                session.id,
                EventType.VOTE_UPDATED,
                {
                    "keywordId": tag.id,
                    "totalScore": tag.total_score,
                    "votes": [vote.to_wire() for vote in serialize_votes(tag)],
                },
                origin=event.actor_id,
            )
            self._publish_stats(session, event.actor_id)

        elif kind == StoreEventKind.CONSENSUS_REACHED:
            keywords = []
            for tag_id in event.tag_ids:
                tag = session.tags.get(tag_id)
                if tag is not None:
                    keywords.append(
                        {
                            "id": tag.id,
                            "text": tag.text,
                            "category": tag.category.value,
                            "totalScore": tag.total_score,
                        }
                    )
            self._publish(
                session.id,
                EventType.CONSENSUS_REACHED,
                {"keywordIds": list(event.tag_ids), "keywords": keywords},
                origin=event.actor_id,
            )

        elif kind == StoreEventKind.CONNECTION_ATTACHED:
            handle = self._connections.get(event.connection_id)
            if handle is not None:
                self._rooms.setdefault(session.id, {})[handle.id] = handle
                handle.enqueue(
                    self._envelope(
                        EventType.SESSION_UPDATED,
                        session.id,
                        serialize_session(session).to_wire(),
                        event.actor_id,
                    )
                )
            self._publish_count(session, event.actor_id)

        elif kind == StoreEventKind.CONNECTION_DETACHED:
            self._publish(
                session.id,
                EventType.PARTICIPANT_OFFLINE,
                {"userId": event.participant.id, "name": event.participant.name},
                origin=event.actor_id,
            )
            self._publish_count(session, event.actor_id)

        elif kind == StoreEventKind.SESSION_CLOSED:
            self._close_room(event)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _close_room(self, event: StoreEvent) -> None:
        session = event.session
        admin = session.participants.get(event.actor_id) if event.actor_id else None
        payload = {
            "reason": event.reason.value,
            "message": _TERMINATION_MESSAGES[event.reason],
        }
        if event.reason == TerminationReason.DELETED:
            payload["adminName"] = admin.name if admin else "Admin"

        self._publish(session.id, EventType.SESSION_DELETED, payload, origin=event.actor_id)

        room = self._rooms.pop(session.id, {})
        for handle in room.values():
            handle.session_id = None
            handle.participant_id = None
        logger.info(
            "Subscriber group torn down",
            session_id=session.id,
            reason=event.reason.value,
            subscribers=len(room),
        )

    def _publish_count(self, session: Session, origin: str | None) -> None:
        online = sum(1 for p in session.participants.values() if p.is_online)
        self._publish(
            session.id,
            EventType.PARTICIPANT_COUNT_UPDATED,
            {"total": len(session.participants), "online": online},
            origin=origin,
        )

    def _publish_stats(self, session: Session, origin: str | None) -> None:
        self._publish(
            session.id,
            EventType.SESSION_STATS_UPDATED,
            {"stats": session_stats(session).to_wire()},
            origin=origin,
        )

    def _publish(
        self,
        session_id: str,
        event_type: EventType,
        payload: dict[str, Any],
        origin: str | None = None,
        exclude: str | None = None,
    ) -> int:
        room = self._rooms.get(session_id)
        if not room:
            return 0

        message = self._envelope(event_type, session_id, payload, origin)
        delivered = 0
        for handle_id, handle in room.items():
            if handle_id == exclude:
                continue
            handle.enqueue(message)
            delivered += 1

        logger.debug(
            "Event published",
            event_type=event_type.value,
            session_id=session_id,
            delivered=delivered,
        )
        return delivered

    def _envelope(
        self,
        event_type: EventType,
        session_id: str | None,
        payload: dict[str, Any],
        origin: str | None,
    ) -> dict[str, Any]:
        return BroadcastEvent(
            type=event_type,
            session_id=session_id,
            origin_participant_id=origin,
            timestamp=format_timestamp(self._clock()),
            payload=payload,
        ).to_wire()
