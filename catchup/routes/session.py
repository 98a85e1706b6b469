"""
session.py
----------
Purpose:
    HTTP gateway for the planning session.

Architecture:
    - API layer: request shape validation (pydantic), response model building
    - Store: content validation, mutation, change events
    - Broadcaster: fans store events out to socket subscribers, so routes
      never broadcast by hand
    - Errors: store raises SessionError subclasses; the app-level handler in
      catchup.main turns them into status codes

Usage:
    1. POST /api/session/create - Start a session (replaces any existing one)
    2. POST /api/session/{sessionId}/join - Join with a display name
    3. POST /api/session/{sessionId}/keywords - Propose a keyword
    4. POST /api/session/{sessionId}/vote - Vote +1 / -1 on a keyword
    5. DELETE /api/session/{sessionId} - Admin ends the session
"""

from fastapi import APIRouter, Depends, status

from catchup.config import settings
from catchup.dependencies import get_classifier, get_store
from catchup.infrastructure.observability.logging import get_logger
from catchup.models.api.session_request import (
    AddKeywordRequest,
    CreateSessionRequest,
    DeleteSessionRequest,
    JoinSessionRequest,
    RejoinSessionRequest,
    SmartKeywordRequest,
    VoteRequest,
)
from catchup.models.api.session_response import (
    CreateSessionResponse,
    DeleteSessionResponse,
    DescriptionAnalysisData,
    JoinSessionResponse,
    ParticipantListResponse,
    RejoinSessionResponse,
    RejoinUserData,
    SessionSnapshot,
    SmartCreateSessionResponse,
    TagSummaryResponse,
    VoteResponse,
)
from catchup.models.domain.errors import ValidationError
from catchup.models.domain.session_domain import Tag
from catchup.services.classifier_service import (
    KeywordClassifier,
    OpenAIClassifier,
    resolve_category,
)
from catchup.services.serialization import format_timestamp, serialize_participant, serialize_vote
from catchup.services.session_store import SessionStore

router = APIRouter(prefix="/api/session", tags=["session"])
logger = get_logger(__name__)


def _share_link(session_id: str) -> str:
    return f"/join/{session_id}"


def _tag_summary(tag: Tag, was_newly_created: bool, llm_categorized: bool = False) -> TagSummaryResponse:
    return TagSummaryResponse(
        id=tag.id,
        text=tag.text,
        category=tag.category.value,
        added_by=tag.added_by,
        created_at=format_timestamp(tag.created_at),
        total_score=tag.total_score,
        was_newly_created=was_newly_created,
        llm_categorized=llm_categorized,
    )


# =================================================================
# SERVICE STATUS (declared before /{session_id} so they match first)
# =================================================================


@router.get("/health")
async def session_health(store: SessionStore = Depends(get_store)):
    """Whether a session is live, with its size."""
    return {"status": "ok", **store.summary()}


@router.get("/llm-info")
async def llm_info(classifier: KeywordClassifier = Depends(get_classifier)):
    """Which classifier backs smart categorization."""
    llm_available = isinstance(classifier, OpenAIClassifier) and classifier.available
    model = classifier.model if isinstance(classifier, OpenAIClassifier) else classifier.name
    return {
        "llm": {
            "available": llm_available,
            "model": model,
            "status": "ready" if llm_available else "unavailable",
        },
        "features": {
            "smartCategorization": llm_available,
            "descriptionAnalysis": llm_available,
            "fallbackCategorization": True,
        },
    }


# =================================================================
# SESSION LIFECYCLE
# =================================================================


@router.post("/create", status_code=status.HTTP_201_CREATED, response_model=CreateSessionResponse)
async def create_session(request: CreateSessionRequest, store: SessionStore = Depends(get_store)):
    """
    Create the planning session; the caller becomes creator and admin.

    Raises:
        400: Description shorter than 3 characters or invalid creator name
    """
    created = store.create_session(request.description, request.creator_name)
    return CreateSessionResponse(
        session_id=created.session_id,
        share_link=_share_link(created.session_id),
        user_id=created.participant_id,
        user_code=created.participant_code,
    )


@router.post(
    "/create-smart", status_code=status.HTTP_201_CREATED, response_model=SmartCreateSessionResponse
)
async def create_session_smart(
    request: CreateSessionRequest,
    store: SessionStore = Depends(get_store),
    classifier: KeywordClassifier = Depends(get_classifier),
):
    """Create a session and return a classifier read of its description."""
    # Classifier runs before the store call; the store never waits on it
    analysis = await classifier.analyze_description(request.description)
    created = store.create_session(request.description, request.creator_name)

    logger.info(
        "Session created with description analysis",
        session_id=created.session_id,
        suggested_categories=[c.value for c in analysis.suggested_categories],
    )
    return SmartCreateSessionResponse(
        session_id=created.session_id,
        share_link=_share_link(created.session_id),
        user_id=created.participant_id,
        user_code=created.participant_code,
        analysis=DescriptionAnalysisData(
            suggested_categories=[c.value for c in analysis.suggested_categories],
            context=analysis.context,
            keywords=analysis.keywords,
        ),
    )


@router.post("/{session_id}/join", response_model=JoinSessionResponse)
async def join_session(
    session_id: str, request: JoinSessionRequest, store: SessionStore = Depends(get_store)
):
    """
    Join with a display name.

    Raises:
        404: No such session
        409: Name already taken (body carries the field) or code space exhausted
        410: Session no longer active
    """
    joined = store.join_session(session_id, request.name)
    return JoinSessionResponse(
        user_id=joined.participant_id,
        user_code=joined.participant_code,
        session_data=store.get_snapshot(session_id),
    )


@router.post("/{session_id}/rejoin", response_model=RejoinSessionResponse)
async def rejoin_session(
    session_id: str, request: RejoinSessionRequest, store: SessionStore = Depends(get_store)
):
    """Recover an identity from its 3-digit code."""
    rejoined = store.rejoin_session(session_id, request.user_code)
    return RejoinSessionResponse(
        user_id=rejoined.participant_id,
        user_code=rejoined.participant_code,
        user_data=RejoinUserData(
            name=rejoined.name, is_creator=rejoined.is_creator, is_admin=rejoined.is_admin
        ),
        session_data=store.get_snapshot(session_id),
    )


@router.get("/{session_id}", response_model=SessionSnapshot)
async def get_session(session_id: str, store: SessionStore = Depends(get_store)):
    return store.get_snapshot(session_id)


@router.get("/{session_id}/participants", response_model=ParticipantListResponse)
async def get_participants(session_id: str, store: SessionStore = Depends(get_store)):
    session = store.get_session(session_id)
    return ParticipantListResponse(
        participants=[serialize_participant(p) for p in session.participants.values()]
    )


@router.delete("/{session_id}", response_model=DeleteSessionResponse)
async def delete_session(
    session_id: str, request: DeleteSessionRequest, store: SessionStore = Depends(get_store)
):
    """
    End the session. Admin only.

    Raises:
        403: Caller is not the admin
        404: No such session
    """
    store.delete_session(session_id, request.user_id)
    return DeleteSessionResponse(success=True, message="Session deleted successfully")


# =================================================================
# KEYWORDS AND VOTES
# =================================================================


@router.post(
    "/{session_id}/keywords", status_code=status.HTTP_201_CREATED, response_model=TagSummaryResponse
)
async def add_keyword(
    session_id: str, request: AddKeywordRequest, store: SessionStore = Depends(get_store)
):
    """
    Propose a keyword. An equivalent existing keyword gets a +1 vote instead,
    reported with wasNewlyCreated=false.
    """
    result = store.add_tag(session_id, request.user_id, request.text, request.category)
    return _tag_summary(result.tag, result.was_newly_created)


@router.post(
    "/{session_id}/keywords-smart",
    status_code=status.HTTP_201_CREATED,
    response_model=TagSummaryResponse,
)
async def add_keyword_smart(
    session_id: str,
    request: SmartKeywordRequest,
    store: SessionStore = Depends(get_store),
    classifier: KeywordClassifier = Depends(get_classifier),
):
    """Propose a keyword and let the classifier pick its category."""
    suggested = request.suggested_category
    if suggested is not None and suggested not in store.categories:
        raise ValidationError(
            f"Suggested category must be one of: {', '.join(sorted(store.categories))}",
            field="suggestedCategory",
        )

    # Fail fast before spending a classifier call on a dead session
    store.get_session(session_id)

    category, categorization = await resolve_category(
        classifier,
        request.text,
        suggested=suggested,
        confidence_threshold=settings.CLASSIFIER_CONFIDENCE_THRESHOLD,
    )
    result = store.add_tag(session_id, request.user_id, request.text, category.value)

    logger.info(
        "Smart keyword categorized",
        session_id=session_id,
        tag_id=result.tag.id,
        category=category.value,
        confidence=categorization.confidence,
        classifier=classifier.name,
    )
    return _tag_summary(
        result.tag,
        result.was_newly_created,
        llm_categorized=category == categorization.category,
    )


@router.post("/{session_id}/vote", response_model=VoteResponse)
async def vote(session_id: str, request: VoteRequest, store: SessionStore = Depends(get_store)):
    """
    Cast or change a vote. A repeated identical vote is a no-op on the score.

    Raises:
        400: value is not 1 or -1
        404: Unknown session, participant or keyword
    """
    result = store.vote(session_id, request.user_id, request.keyword_id, request.value)
    return VoteResponse(
        keyword_id=result.tag_id,
        total_score=result.total_score,
        votes=[serialize_vote(v) for v in result.votes],
        consensus_reached=result.consensus_reached,
    )
