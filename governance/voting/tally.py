"""Area-weighted tally of agenda item votes.

Pure computation: no persistence, no clock. The same inputs always give
the same TallyResult.
"""

from collections.abc import Iterable
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from governance.models.meeting import AgendaItem, Decision
from governance.models.vote import VoteChoice, VoteRecord
from governance.voting.thresholds import strategy_for


class TallyResult(BaseModel):
    """Outcome of tallying one agenda item.

    Percentages use the participating area as denominator. When nobody
    voted they are all 0.
    """

    model_config = ConfigDict(frozen=True)

    agenda_item_id: UUID | None = Field(default=None)
    votes_for: float = Field(default=0.0, ge=0.0, description="Area voting for")
    votes_against: float = Field(default=0.0, ge=0.0)
    votes_abstain: float = Field(default=0.0, ge=0.0)
    vote_count: int = Field(default=0, ge=0, description="Number of vote records")
    percent_for: float = 0.0
    percent_against: float = 0.0
    percent_abstain: float = 0.0
    percent_for_of_total: float = Field(
        default=0.0, description="Area for, as a share of total eligible area"
    )
    required_percent: float = 50.0
    threshold_met: bool = False

    @property
    def participating_area(self) -> float:
        """Area that voted on the item."""
        return self.votes_for + self.votes_against + self.votes_abstain

    @classmethod
    def from_item(cls, agenda_item: AgendaItem, total_area: float) -> "TallyResult":
        """Rebuild the result from the tally columns written at publish time."""
        participating = (
            agenda_item.votes_for_area
            + agenda_item.votes_against_area
            + agenda_item.votes_abstain_area
        )
        return cls(
            agenda_item_id=agenda_item.id,
            votes_for=agenda_item.votes_for_area,
            votes_against=agenda_item.votes_against_area,
            votes_abstain=agenda_item.votes_abstain_area,
            percent_for=_percent(agenda_item.votes_for_area, participating),
            percent_against=_percent(agenda_item.votes_against_area, participating),
            percent_abstain=_percent(agenda_item.votes_abstain_area, participating),
            percent_for_of_total=_percent(agenda_item.votes_for_area, total_area),
            required_percent=agenda_item.threshold.required_percent,
            threshold_met=bool(agenda_item.threshold_met),
        )

    def decision(self, quorum_reached: bool) -> Decision:
        """Outcome to record once the quorum is known."""
        if not quorum_reached:
            return Decision.NO_QUORUM
        return Decision.APPROVED if self.threshold_met else Decision.REJECTED


def _percent(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100.0


def tally(
    agenda_item: AgendaItem,
    vote_records: Iterable[VoteRecord],
    total_area: float,
) -> TallyResult:
    """Sum snapshotted vote weights per choice and apply the item threshold.

    Args:
        agenda_item: Item being tallied (its threshold type selects the rule)
        vote_records: Votes of the meeting; votes for other items are ignored
        total_area: Eligible area frozen when voting opened

    Returns:
        TallyResult for the item
    """
    sums = {choice: 0.0 for choice in VoteChoice}
    count = 0
    for record in vote_records:
        if record.agenda_item_id != agenda_item.id:
            continue
        sums[record.choice] += record.weight
        count += 1

    votes_for = sums[VoteChoice.FOR]
    votes_against = sums[VoteChoice.AGAINST]
    votes_abstain = sums[VoteChoice.ABSTAIN]
    participating = votes_for + votes_against + votes_abstain

    strategy = strategy_for(agenda_item.threshold)
    return TallyResult(
        agenda_item_id=agenda_item.id,
        votes_for=votes_for,
        votes_against=votes_against,
        votes_abstain=votes_abstain,
        vote_count=count,
        percent_for=_percent(votes_for, participating),
        percent_against=_percent(votes_against, participating),
        percent_abstain=_percent(votes_abstain, participating),
        percent_for_of_total=_percent(votes_for, total_area),
        required_percent=strategy.required_percent,
        threshold_met=strategy.is_met(votes_for, participating, total_area),
    )


def chair_election_tally(voted_area: float, total_area: float) -> TallyResult:
    """Tally for the chair/secretary election that opens every protocol.

    It has no vote set of its own: the whole participating area is
    recorded as voting for.
    """
    return TallyResult(
        votes_for=voted_area,
        percent_for=100.0 if voted_area > 0 else 0.0,
        percent_for_of_total=_percent(voted_area, total_area),
        threshold_met=voted_area > 0,
    )
