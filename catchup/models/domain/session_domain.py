"""
Domain models for the planning session aggregate.

These are the mutable records owned by ``SessionStore``. Nothing outside the
store mutates them; the wire representation lives in
``catchup.models.api.session_response`` and is produced by ``serialize``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Category(str, Enum):
    """Fixed proposal categories."""

    TIME = "time"
    LOCATION = "location"
    FOOD = "food"
    ACTIVITY = "activity"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


class TerminationReason(str, Enum):
    """Why a session was torn down; clients show different messages."""

    DELETED = "deleted"
    EXPIRED = "expired"
    REPLACED = "replaced"


VOTE_VALUES = (1, -1)


@dataclass(slots=True)
class Vote:
    """One participant's stance on one tag. Re-voting overwrites in place."""

    participant_id: str
    value: int
    timestamp: datetime


@dataclass(slots=True)
class Tag:
    """A normalized proposal. ``text`` is also the dedup key."""

    id: str
    text: str
    category: Category
    added_by: str
    created_at: datetime
    votes: dict[str, Vote] = field(default_factory=dict)  # participant_id -> vote
    total_score: int = 0

    def recompute_score(self) -> int:
        self.total_score = sum(vote.value for vote in self.votes.values())
        return self.total_score


@dataclass(slots=True)
class Participant:
    id: str
    name: str
    code: str
    joined_at: datetime
    is_creator: bool = False
    is_admin: bool = False
    # Transient; set while a realtime connection is attached
    connection_id: str | None = None

    @property
    def is_online(self) -> bool:
        return self.connection_id is not None


@dataclass(slots=True)
class ConsensusRecord:
    finalized: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Session:
    """Root aggregate. One instance per process at a time."""

    id: str
    description: str
    creator_id: str
    admin_id: str
    created_at: datetime
    expires_at: datetime
    status: SessionStatus = SessionStatus.ACTIVE
    participants: dict[str, Participant] = field(default_factory=dict)  # id -> participant
    tags: dict[str, Tag] = field(default_factory=dict)  # id -> tag
    consensus: ConsensusRecord = field(default_factory=ConsensusRecord)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def find_tag_by_text(self, text: str) -> Tag | None:
        for tag in self.tags.values():
            if tag.text == text:
                return tag
        return None
