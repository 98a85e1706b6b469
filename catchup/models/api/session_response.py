# catchup/models/api/session_response.py
"""
Wire shapes for session snapshots and command responses.

Field names are camelCase on the wire (``participantId``, ``totalScore``,
``adminUserId``) and must stay stable for client interoperability. Python
code uses the snake_case attribute names; ``populate_by_name`` allows both.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for every model serialized to clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# =================================================================
# SNAPSHOT
# =================================================================


class VoteData(WireModel):
    participant_id: str
    value: Literal[1, -1]
    timestamp: str


class KeywordData(WireModel):
    id: str
    text: str
    category: str
    votes: list[VoteData]
    total_score: int
    added_by: str
    created_at: str


class ParticipantData(WireModel):
    id: str
    name: str
    code: str
    joined_at: str
    is_creator: bool
    is_admin: bool


class ConsensusData(WireModel):
    finalized: list[str] = Field(default_factory=list)
    pending: list[str] = Field(default_factory=list)


class SessionSnapshot(WireModel):
    """Complete, self-sufficient session state used for first sync."""

    id: str
    creator: str
    admin_user_id: str
    description: str
    status: Literal["active", "completed", "expired"]
    created_at: str
    expires_at: str
    participants: list[ParticipantData]
    keywords: list[KeywordData]
    consensus: ConsensusData


class SessionStats(WireModel):
    participants: int
    keywords: int
    votes: int
    consensus: int
    categories: dict[str, int]


# =================================================================
# COMMAND RESPONSES
# =================================================================


class CreateSessionResponse(WireModel):
    """Response for POST /api/session/create"""

    session_id: str
    share_link: str
    user_id: str
    user_code: str


class DescriptionAnalysisData(WireModel):
    suggested_categories: list[str]
    context: str
    keywords: list[str]


class SmartCreateSessionResponse(CreateSessionResponse):
    """Response for POST /api/session/create-smart"""

    analysis: DescriptionAnalysisData


class JoinSessionResponse(WireModel):
    """Response for POST /api/session/{sessionId}/join"""

    user_id: str
    user_code: str
    session_data: SessionSnapshot


class RejoinUserData(WireModel):
    name: str
    is_creator: bool
    is_admin: bool


class RejoinSessionResponse(WireModel):
    """Response for POST /api/session/{sessionId}/rejoin"""

    user_id: str
    user_code: str
    user_data: RejoinUserData
    session_data: SessionSnapshot


class TagSummaryResponse(WireModel):
    """Response for POST /api/session/{sessionId}/keywords"""

    id: str
    text: str
    category: str
    added_by: str
    created_at: str
    total_score: int
    was_newly_created: bool
    llm_categorized: bool = False


class VoteResponse(WireModel):
    """Response for POST /api/session/{sessionId}/vote"""

    keyword_id: str
    total_score: int
    votes: list[VoteData]
    consensus_reached: bool = False


class DeleteSessionResponse(WireModel):
    success: bool
    message: str


class ParticipantListResponse(WireModel):
    participants: list[ParticipantData]


class ErrorResponse(WireModel):
    error: str
    message: str
    field: str | None = None
    suggestion: str | None = None
