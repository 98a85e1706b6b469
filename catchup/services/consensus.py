"""
Consensus rule for tags.

A pending tag is finalized once at least 60% of all participants voted +1
and fewer than 25% voted -1. Finalization is one-way: later votes never move
a tag back to pending.
"""

from collections.abc import Iterable
from enum import Enum

from catchup.models.domain.session_domain import Vote

POSITIVE_THRESHOLD = 0.6
NEGATIVE_THRESHOLD = 0.25


class ConsensusOutcome(str, Enum):
    FINALIZED = "finalized"
    PENDING = "pending"
    UNCHANGED = "unchanged"


def vote_ratios(votes: Iterable[Vote], total_participants: int) -> tuple[float, float]:
    """(positive_ratio, negative_ratio) over the whole participant count."""
    if total_participants <= 0:
        return 0.0, 0.0

    positive = 0
    negative = 0
    for vote in votes:
        if vote.value > 0:
            positive += 1
        elif vote.value < 0:
            negative += 1

    return positive / total_participants, negative / total_participants


def evaluate(
    votes: Iterable[Vote], total_participants: int, already_finalized: bool = False
) -> ConsensusOutcome:
    """
    Decide the pending -> finalized transition for one tag.

    Returns:
        FINALIZED when a pending tag crosses the threshold, PENDING when it
        does not, UNCHANGED for tags that were already finalized.
    """
    if already_finalized:
        return ConsensusOutcome.UNCHANGED

    positive_ratio, negative_ratio = vote_ratios(votes, total_participants)
    if positive_ratio >= POSITIVE_THRESHOLD and negative_ratio < NEGATIVE_THRESHOLD:
        return ConsensusOutcome.FINALIZED
    return ConsensusOutcome.PENDING
