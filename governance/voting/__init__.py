"""Vote tally and quorum computation.

Provides:
- tally: Area-weighted per-item tally with threshold strategies
- chair_election_tally: Pseudo-tally for the chair/secretary election
- has_quorum / evaluate: Quorum against the frozen eligible area
"""

from governance.voting.quorum import QuorumResult, evaluate, has_quorum
from governance.voting.tally import TallyResult, chair_election_tally, tally
from governance.voting.thresholds import (
    ParticipatingAreaMajority,
    ThresholdStrategy,
    TotalAreaQualified,
    strategy_for,
)

__all__ = [
    "tally",
    "chair_election_tally",
    "TallyResult",
    "has_quorum",
    "evaluate",
    "QuorumResult",
    "ThresholdStrategy",
    "ParticipatingAreaMajority",
    "TotalAreaQualified",
    "strategy_for",
]
