# catchup/models/api/session_request.py
"""
Session API request models.
Used by HTTP routes and the realtime gateway for input shape validation;
content rules (name charset, tag format, categories) are enforced by the store
so every transport gets identical errors.
"""

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic.alias_generators import to_camel


class CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateSessionRequest(CamelRequest):
    """Request for creating the planning session."""

    description: str = Field(..., description="What the meetup is about")
    creator_name: str = Field(..., description="Display name of the creator")


class JoinSessionRequest(CamelRequest):
    name: str = Field(..., description="Display name, unique within the session")


class RejoinSessionRequest(CamelRequest):
    user_code: str = Field(..., description="3-digit participant code")


class DeleteSessionRequest(CamelRequest):
    user_id: str = Field(..., min_length=1, description="Must be the session admin")


class AddKeywordRequest(CamelRequest):
    user_id: str = Field(..., min_length=1)
    text: str
    category: str


class SmartKeywordRequest(CamelRequest):
    user_id: str = Field(..., min_length=1)
    text: str
    suggested_category: str | None = None


class VoteRequest(CamelRequest):
    user_id: str = Field(..., min_length=1)
    keyword_id: str = Field(..., min_length=1)
    # Strict: JSON true/"1"/1.0 must not coerce to a vote. Range is checked by the store
    value: StrictInt


# =================================================================
# REALTIME (WebSocket) INBOUND MESSAGES
# =================================================================


class SocketMessage(BaseModel):
    """Envelope for every inbound socket message: {"type": ..., "data": {...}}."""

    type: str
    data: dict = Field(default_factory=dict)


class SocketJoinData(CamelRequest):
    session_id: str
    user_id: str


class SocketAddKeywordData(CamelRequest):
    session_id: str
    user_id: str
    text: str
    category: str


class SocketVoteData(CamelRequest):
    session_id: str
    user_id: str
    keyword_id: str
    value: StrictInt


class SocketTypingData(CamelRequest):
    session_id: str
    user_id: str
    is_typing: bool = False
