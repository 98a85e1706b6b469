"""Push events delivered to realtime subscribers."""

from enum import Enum
from typing import Any

from pydantic import Field

from catchup.models.api.session_response import WireModel
from catchup.models.domain.session_domain import TerminationReason

__all__ = ["BroadcastEvent", "EventType", "TerminationReason"]


class EventType(str, Enum):
    SESSION_UPDATED = "session-updated"
    PARTICIPANT_JOINED = "participant-joined"
    PARTICIPANT_LEFT = "participant-left"
    PARTICIPANT_OFFLINE = "participant-offline"
    PARTICIPANT_COUNT_UPDATED = "participant-count-updated"
    KEYWORD_ADDED = "keyword-added"
    VOTE_UPDATED = "vote-updated"
    CONSENSUS_REACHED = "consensus-reached"
    SESSION_STATS_UPDATED = "session-stats-updated"
    SESSION_DELETED = "session-deleted"
    USER_TYPING = "user-typing"
    ERROR = "error"


class BroadcastEvent(WireModel):
    """
    Envelope for every pushed event.

    ``origin_participant_id`` lets clients drop echoes of their own actions.
    """

    type: EventType
    session_id: str | None = None
    origin_participant_id: str | None = None
    timestamp: str
    payload: dict[str, Any] = Field(default_factory=dict)
