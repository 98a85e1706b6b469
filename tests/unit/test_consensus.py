from datetime import UTC, datetime

import pytest

from catchup.models.domain.session_domain import Vote
from catchup.services.consensus import ConsensusOutcome, evaluate, vote_ratios

NOW = datetime(2026, 1, 10, tzinfo=UTC)


def _votes(positive: int, negative: int = 0) -> list[Vote]:
    votes = [Vote(participant_id=f"p{i}", value=1, timestamp=NOW) for i in range(positive)]
    votes += [Vote(participant_id=f"n{i}", value=-1, timestamp=NOW) for i in range(negative)]
    return votes


def test_ratios_use_total_participants_not_voters():
    assert vote_ratios(_votes(2, 1), 5) == (0.4, 0.2)


def test_ratios_with_no_participants():
    assert vote_ratios(_votes(1), 0) == (0.0, 0.0)


@pytest.mark.parametrize(
    "positive,negative,total,expected",
    [
        (3, 0, 5, ConsensusOutcome.FINALIZED),  # exactly 60%
        (2, 1, 5, ConsensusOutcome.PENDING),
        (3, 1, 5, ConsensusOutcome.FINALIZED),  # 20% negative is under the bar
        (3, 2, 5, ConsensusOutcome.PENDING),
        (6, 2, 8, ConsensusOutcome.PENDING),  # 25% negative blocks
        (2, 0, 2, ConsensusOutcome.FINALIZED),
        (0, 0, 0, ConsensusOutcome.PENDING),
    ],
)
def test_threshold_boundaries(positive, negative, total, expected):
    assert evaluate(_votes(positive, negative), total) == expected


def test_finalized_tags_never_move_back():
    outcome = evaluate(_votes(0, 5), 5, already_finalized=True)

    assert outcome == ConsensusOutcome.UNCHANGED
