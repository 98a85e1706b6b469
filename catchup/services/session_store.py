"""
Session store: the single authoritative aggregate and its mutation surface.

Architecture:
    - One ``SessionStore`` instance per process, owned by the app (app.state)
    - Every public method holds one re-entrant lock for its whole duration,
      reads included, and never awaits
    - All validation happens before any mutation, so a failing call leaves
      no partial state
    - Committed changes are reported to subscribed listeners as
      ``StoreEvent``s while the lock is still held, which gives listeners the
      exact commit order

Usage:
    store = SessionStore(ttl_seconds=3600)
    store.subscribe(broadcaster.handle_store_event)
    created = store.create_session("weekend brunch", "Sarah")
    store.add_tag(created.session_id, created.participant_id, "saturday-morning", "time")
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from catchup.infrastructure.observability.logging import get_logger, log_session_event
from catchup.models.api.session_response import SessionSnapshot, SessionStats
from catchup.models.domain.errors import (
    AuthorizationError,
    InactiveSessionError,
    NameConflictError,
    NotFoundError,
    ValidationError,
)
from catchup.models.domain.session_domain import (
    VOTE_VALUES,
    Category,
    Participant,
    Session,
    SessionStatus,
    Tag,
    TerminationReason,
    Vote,
)
from catchup.services import consensus, identity_service
from catchup.services.lifecycle import LifecycleManager
from catchup.services.serialization import serialize_session, session_stats
from catchup.services.tag_validation import normalize_tag, tag_error_message, validate_tag

logger = get_logger(__name__)

DEFAULT_SESSION_ID = "current"
DEFAULT_TTL_SECONDS = 24 * 60 * 60
DESCRIPTION_MIN_LENGTH = 3


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =================================================================
# RESULTS AND EVENTS
# =================================================================


@dataclass(frozen=True, slots=True)
class CreateSessionResult:
    session_id: str
    participant_id: str
    participant_code: str


@dataclass(frozen=True, slots=True)
class JoinSessionResult:
    participant_id: str
    participant_code: str


@dataclass(frozen=True, slots=True)
class RejoinSessionResult:
    participant_id: str
    participant_code: str
    name: str
    is_creator: bool
    is_admin: bool


@dataclass(frozen=True, slots=True)
class AddTagResult:
    tag: Tag
    was_newly_created: bool
    consensus_reached: bool = False


@dataclass(frozen=True, slots=True)
class VoteResult:
    tag_id: str
    total_score: int
    votes: list[Vote]
    consensus_reached: bool = False


class StoreEventKind(str, Enum):
    PARTICIPANT_JOINED = "participant_joined"
    TAG_ADDED = "tag_added"
    VOTES_CHANGED = "votes_changed"
    CONSENSUS_REACHED = "consensus_reached"
    CONNECTION_ATTACHED = "connection_attached"
    CONNECTION_DETACHED = "connection_detached"
    SESSION_CLOSED = "session_closed"


@dataclass(frozen=True, slots=True)
class StoreEvent:
    """
    A committed mutation. Domain objects are live references: listeners
    must read them synchronously, before returning.
    """

    kind: StoreEventKind
    session: Session
    actor_id: str | None = None
    participant: Participant | None = None
    tag: Tag | None = None
    tag_ids: tuple[str, ...] = ()
    connection_id: str | None = None
    reason: TerminationReason | None = None


StoreListener = Callable[[StoreEvent], None]


# =================================================================
# STORE
# =================================================================


class SessionStore:
    """Authoritative in-memory state for the single planning session."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_participants: int = 20,
        categories: tuple[str, ...] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        lifecycle: LifecycleManager | None = None,
        session_id: str = DEFAULT_SESSION_ID,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_participants = max_participants
        # Category() rejects names outside the fixed enumeration early
        self.categories = frozenset(
            Category(c).value for c in (categories or [c.value for c in Category])
        )
        self.session_id = session_id
        self._clock = clock
        self._lifecycle = lifecycle or LifecycleManager()
        self._lock = threading.RLock()
        self._session: Session | None = None
        self._generation = 0
        self._listeners: list[StoreListener] = []

    # -----------------------------------------------------------------
    # Listener plumbing
    # -----------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: StoreListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # State is already committed; a broken listener must not undo it
                logger.error(
                    "Store listener failed",
                    event_kind=event.kind.value,
                    session_id=event.session.id,
                    error=str(e),
                )

    # -----------------------------------------------------------------
    # Lookups (call with the lock held)
    # -----------------------------------------------------------------

    @property
    def has_session(self) -> bool:
        with self._lock:
            return self._live_session() is not None

    def _live_session(self) -> Session | None:
        """Current session, discarding it first if it has expired."""
        session = self._session
        if session is not None and session.is_expired(self._clock()):
            self._discard(TerminationReason.EXPIRED)
            return None
        return session

    def _require_session(self, session_id: str) -> Session:
        session = self._live_session()
        if session is None or session.id != session_id:
            raise NotFoundError("Session not found", field="sessionId")
        return session

    def _require_active_session(self, session_id: str) -> Session:
        session = self._require_session(session_id)
        if session.status != SessionStatus.ACTIVE:
            raise InactiveSessionError(f"Session is {session.status.value}", field="sessionId")
        return session

    @staticmethod
    def _require_participant(session: Session, participant_id: str) -> Participant:
        participant = session.participants.get(participant_id)
        if participant is None:
            raise NotFoundError("Participant not found in session", field="userId")
        return participant

    @staticmethod
    def _validated_name(name: str) -> str:
        result = identity_service.validate_name(name)
        if not result.is_valid:
            raise ValidationError(result.error, field="name")
        return name.strip()

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def create_session(self, description: str, creator_name: str) -> CreateSessionResult:
        """
        Start a new session, replacing any existing one.

        Raises:
            ValidationError: Bad creator name or too-short description
        """
        with self._lock:
            name = self._validated_name(creator_name)
            description = (description or "").strip()
            if len(description) < DESCRIPTION_MIN_LENGTH:
                raise ValidationError(
                    f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters",
                    field="description",
                )

            if self._session is not None:
                self._discard(TerminationReason.REPLACED)

            now = self._clock()
            participant_id = identity_service.allocate_participant_id()
            code = identity_service.allocate_user_code()
            creator = Participant(
                id=participant_id,
                name=name,
                code=code,
                joined_at=now,
                is_creator=True,
                is_admin=True,
            )
            session = Session(
                id=self.session_id,
                description=description,
                creator_id=participant_id,
                admin_id=participant_id,
                created_at=now,
                expires_at=now + self.ttl,
                participants={participant_id: creator},
            )

            self._session = session
            self._generation += 1
            self._schedule_expiry(session)

            log_session_event(
                "created",
                session.id,
                participant_id=participant_id,
                expires_at=session.expires_at.isoformat(),
            )
            return CreateSessionResult(
                session_id=session.id, participant_id=participant_id, participant_code=code
            )

    def join_session(self, session_id: str, name: str) -> JoinSessionResult:
        """
        Add a participant.

        Raises:
            NotFoundError, InactiveSessionError, ValidationError, NameConflictError,
            SessionFullError
        """
        with self._lock:
            session = self._require_active_session(session_id)
            name = self._validated_name(name)

            existing = identity_service.find_participant_by_name(session, name)
            if existing is not None:
                logger.info("Join rejected - name taken", session_id=session_id)
                raise NameConflictError(name, conflicting_code=existing.code)

            code = identity_service.allocate_user_code(identity_service.existing_user_codes(session))
            participant = Participant(
                id=identity_service.allocate_participant_id(),
                name=name,
                code=code,
                joined_at=self._clock(),
            )
            session.participants[participant.id] = participant

            if len(session.participants) > self.max_participants:
                logger.warning(
                    "Participant soft cap exceeded",
                    session_id=session_id,
                    participants=len(session.participants),
                    max_participants=self.max_participants,
                )

            logger.info("Participant joined", session_id=session_id, participant_id=participant.id)
            self._emit(
                StoreEvent(
                    kind=StoreEventKind.PARTICIPANT_JOINED,
                    session=session,
                    actor_id=participant.id,
                    participant=participant,
                )
            )
            return JoinSessionResult(participant_id=participant.id, participant_code=code)

    def rejoin_session(self, session_id: str, user_code: str) -> RejoinSessionResult:
        """Look up an existing identity by code. Performs no mutation."""
        with self._lock:
            if not identity_service.is_valid_user_code(user_code):
                raise ValidationError("User code must be 3 digits", field="userCode")

            session = self._require_active_session(session_id)
            participant = identity_service.find_participant_by_code(session, user_code.strip())
            if participant is None:
                raise NotFoundError("Code not found", field="userCode")

            logger.info("Participant rejoined", session_id=session_id, participant_id=participant.id)
            return RejoinSessionResult(
                participant_id=participant.id,
                participant_code=participant.code,
                name=participant.name,
                is_creator=participant.is_creator,
                is_admin=participant.is_admin,
            )

    def get_session(self, session_id: str) -> Session:
        """
        Raises:
            NotFoundError: No session, id mismatch, or expired
        """
        with self._lock:
            return self._require_session(session_id)

    def get_snapshot(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            return serialize_session(self._require_session(session_id))

    def add_tag(
        self, session_id: str, participant_id: str, raw_text: str, category: str
    ) -> AddTagResult:
        """
        Add a proposal, or fold it into an existing equivalent one as a +1 vote.

        Text must already be in tag format; "Coffee-Shop" is stored as
        "coffee-shop" while "coffee shop" is rejected with that suggestion.

        Raises:
            NotFoundError, InactiveSessionError, ValidationError
        """
        with self._lock:
            session = self._require_active_session(session_id)
            self._require_participant(session, participant_id)

            if category not in self.categories:
                raise ValidationError(
                    f"Category must be one of: {', '.join(sorted(self.categories))}",
                    field="category",
                )

            validation = validate_tag(raw_text)
            if not validation.is_valid:
                raise ValidationError(
                    tag_error_message(validation), field="text", suggestion=validation.suggestion
                )
            text = normalize_tag(raw_text)

            existing = session.find_tag_by_text(text)
            if existing is not None:
                # Duplicate contribution counts as an endorsement
                reached = self._apply_vote(session, existing, participant_id, 1)
                logger.info(
                    "Duplicate tag folded into vote",
                    session_id=session_id,
                    participant_id=participant_id,
                    tag_id=existing.id,
                    total_score=existing.total_score,
                )
                return AddTagResult(tag=existing, was_newly_created=False, consensus_reached=reached)

            tag = Tag(
                id=identity_service.allocate_tag_id(),
                text=text,
                category=Category(category),
                added_by=participant_id,
                created_at=self._clock(),
            )
            session.tags[tag.id] = tag
            session.consensus.pending.append(tag.id)

            logger.info(
                "Tag added",
                session_id=session_id,
                participant_id=participant_id,
                tag_id=tag.id,
                category=category,
            )
            self._emit(
                StoreEvent(
                    kind=StoreEventKind.TAG_ADDED, session=session, actor_id=participant_id, tag=tag
                )
            )
            return AddTagResult(tag=tag, was_newly_created=True)

    def vote(self, session_id: str, participant_id: str, tag_id: str, value: int) -> VoteResult:
        """
        Cast or flip a vote.

        Raises:
            ValidationError: value not in {+1, -1}
            NotFoundError, InactiveSessionError
        """
        with self._lock:
            # bool is an int subclass; True must not count as +1
            if isinstance(value, bool) or value not in VOTE_VALUES:
                raise ValidationError("Vote value must be 1 or -1", field="value")

            session = self._require_active_session(session_id)
            self._require_participant(session, participant_id)
            tag = session.tags.get(tag_id)
            if tag is None:
                raise NotFoundError("Keyword not found", field="keywordId")

            reached = self._apply_vote(session, tag, participant_id, value)
            logger.info(
                "Vote recorded",
                session_id=session_id,
                participant_id=participant_id,
                tag_id=tag_id,
                value=value,
                total_score=tag.total_score,
            )
            return VoteResult(
                tag_id=tag.id,
                total_score=tag.total_score,
                votes=list(tag.votes.values()),
                consensus_reached=reached,
            )

    def _apply_vote(self, session: Session, tag: Tag, participant_id: str, value: int) -> bool:
        """Upsert, rescore, evaluate consensus. Returns True on finalization."""
        tag.votes[participant_id] = Vote(
            participant_id=participant_id, value=value, timestamp=self._clock()
        )
        tag.recompute_score()
        self._emit(
            StoreEvent(
                kind=StoreEventKind.VOTES_CHANGED, session=session, actor_id=participant_id, tag=tag
            )
        )

        outcome = consensus.evaluate(
            tag.votes.values(),
            len(session.participants),
            already_finalized=tag.id in session.consensus.finalized,
        )
        if outcome != consensus.ConsensusOutcome.FINALIZED:
            return False

        session.consensus.pending.remove(tag.id)
        session.consensus.finalized.append(tag.id)
        logger.info("Consensus reached", session_id=session.id, tag_id=tag.id, text=tag.text)
        self._emit(
            StoreEvent(
                kind=StoreEventKind.CONSENSUS_REACHED,
                session=session,
                actor_id=participant_id,
                tag=tag,
                tag_ids=(tag.id,),
            )
        )
        return True

    def delete_session(self, session_id: str, participant_id: str) -> None:
        """
        Admin-only teardown.

        Raises:
            NotFoundError: Unknown or mismatched session
            AuthorizationError: Caller is not the admin
        """
        with self._lock:
            session = self._require_session(session_id)
            if not identity_service.is_admin(session, participant_id):
                logger.warning(
                    "Delete rejected - not admin", session_id=session_id, participant_id=participant_id
                )
                raise AuthorizationError("Only the session admin can delete the session")

            self._discard(TerminationReason.DELETED, actor_id=participant_id)

    def expire_session(self, session_id: str | None = None) -> bool:
        """Discard the session if its window has passed. Used by timers and sweeps."""
        with self._lock:
            session = self._session
            if session is None or (session_id is not None and session.id != session_id):
                return False
            if not session.is_expired(self._clock()):
                return False
            self._discard(TerminationReason.EXPIRED)
            return True

    # -----------------------------------------------------------------
    # Realtime connection bookkeeping
    # -----------------------------------------------------------------

    def attach_connection(self, session_id: str, participant_id: str, connection_id: str) -> Participant:
        """
        Mark a participant reachable through ``connection_id``.

        Raises:
            NotFoundError: Unknown session or participant
        """
        with self._lock:
            session = self._require_session(session_id)
            participant = self._require_participant(session, participant_id)
            for other in session.participants.values():
                if other.connection_id == connection_id:
                    other.connection_id = None
            participant.connection_id = connection_id

            logger.info(
                "Connection attached",
                session_id=session_id,
                participant_id=participant_id,
                connection_id=connection_id,
            )
            self._emit(
                StoreEvent(
                    kind=StoreEventKind.CONNECTION_ATTACHED,
                    session=session,
                    actor_id=participant_id,
                    participant=participant,
                    connection_id=connection_id,
                )
            )
            return participant

    def detach_connection(self, connection_id: str) -> Participant | None:
        """Forget a dropped connection. The participant record stays."""
        with self._lock:
            session = self._session
            if session is None:
                return None

            for participant in session.participants.values():
                if participant.connection_id == connection_id:
                    participant.connection_id = None
                    logger.info(
                        "Connection detached",
                        session_id=session.id,
                        participant_id=participant.id,
                        connection_id=connection_id,
                    )
                    self._emit(
                        StoreEvent(
                            kind=StoreEventKind.CONNECTION_DETACHED,
                            session=session,
                            actor_id=participant.id,
                            participant=participant,
                            connection_id=connection_id,
                        )
                    )
                    return participant
            return None

    def participant_counts(self) -> tuple[int, int]:
        """(total, online) for the current session; (0, 0) when absent."""
        with self._lock:
            session = self._live_session()
            if session is None:
                return 0, 0
            online = sum(1 for p in session.participants.values() if p.is_online)
            return len(session.participants), online

    # -----------------------------------------------------------------
    # Projections
    # -----------------------------------------------------------------

    def serialize(self, session: Session) -> SessionSnapshot:
        with self._lock:
            return serialize_session(session)

    def stats(self, session_id: str) -> SessionStats:
        with self._lock:
            return session_stats(self._require_session(session_id))

    def summary(self) -> dict:
        """Health view of the store."""
        with self._lock:
            session = self._live_session()
            return {
                "hasActiveSession": session is not None,
                "sessionId": session.id if session else None,
                "participantCount": len(session.participants) if session else 0,
                "keywordCount": len(session.tags) if session else 0,
            }

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    def _schedule_expiry(self, session: Session) -> None:
        generation = self._generation
        delay = (session.expires_at - self._clock()).total_seconds()
        self._lifecycle.schedule(delay, lambda: self._on_expiry_timer(generation))

    def _on_expiry_timer(self, generation: int) -> None:
        with self._lock:
            session = self._session
            if session is None or generation != self._generation:
                logger.debug("Stale expiration timer ignored", generation=generation)
                return
            if session.is_expired(self._clock()):
                self._discard(TerminationReason.EXPIRED)
            else:
                # Loop clock ran ahead of wall clock; try again at expiry
                self._schedule_expiry(session)

    def _discard(self, reason: TerminationReason, actor_id: str | None = None) -> None:
        session = self._session
        if session is None:
            return

        self._lifecycle.cancel()
        if reason == TerminationReason.EXPIRED:
            session.status = SessionStatus.EXPIRED
        self._session = None
        self._generation += 1

        log_session_event(
            reason.value,
            session.id,
            actor_id=actor_id,
            participants=len(session.participants),
            keywords=len(session.tags),
        )
        self._emit(
            StoreEvent(
                kind=StoreEventKind.SESSION_CLOSED,
                session=session,
                actor_id=actor_id,
                reason=reason,
            )
        )
