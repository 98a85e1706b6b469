"""
Projection of the session aggregate into wire models.

Internal id-keyed dicts become ordered lists (insertion order), datetimes
become ISO-8601 UTC strings with millisecond precision. All functions here
are pure: they read domain objects and never mutate them.
"""

from datetime import UTC, datetime

from catchup.models.api.session_response import (
    ConsensusData,
    KeywordData,
    ParticipantData,
    SessionSnapshot,
    SessionStats,
    VoteData,
)
from catchup.models.domain.session_domain import Category, Participant, Session, Tag, Vote


def format_timestamp(value: datetime) -> str:
    """2026-01-31T18:04:05.123Z"""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def serialize_vote(vote: Vote) -> VoteData:
    return VoteData(
        participant_id=vote.participant_id,
        value=vote.value,
        timestamp=format_timestamp(vote.timestamp),
    )


def serialize_votes(tag: Tag) -> list[VoteData]:
    return [serialize_vote(vote) for vote in tag.votes.values()]


def serialize_tag(tag: Tag) -> KeywordData:
    return KeywordData(
        id=tag.id,
        text=tag.text,
        category=tag.category.value,
        votes=serialize_votes(tag),
        total_score=tag.total_score,
        added_by=tag.added_by,
        created_at=format_timestamp(tag.created_at),
    )


def serialize_participant(participant: Participant) -> ParticipantData:
    # connection_id is transient and never leaves the server
    return ParticipantData(
        id=participant.id,
        name=participant.name,
        code=participant.code,
        joined_at=format_timestamp(participant.joined_at),
        is_creator=participant.is_creator,
        is_admin=participant.is_admin,
    )


def serialize_session(session: Session) -> SessionSnapshot:
    return SessionSnapshot(
        id=session.id,
        creator=session.creator_id,
        admin_user_id=session.admin_id,
        description=session.description,
        status=session.status.value,
        created_at=format_timestamp(session.created_at),
        expires_at=format_timestamp(session.expires_at),
        participants=[serialize_participant(p) for p in session.participants.values()],
        keywords=[serialize_tag(t) for t in session.tags.values()],
        consensus=ConsensusData(
            finalized=list(session.consensus.finalized),
            pending=list(session.consensus.pending),
        ),
    )


def session_stats(session: Session) -> SessionStats:
    categories = {category.value: 0 for category in Category}
    votes = 0
    for tag in session.tags.values():
        categories[tag.category.value] = categories.get(tag.category.value, 0) + 1
        votes += len(tag.votes)

    return SessionStats(
        participants=len(session.participants),
        keywords=len(session.tags),
        votes=votes,
        consensus=len(session.consensus.finalized),
        categories=categories,
    )
