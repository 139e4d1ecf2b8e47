"""Tests for the area-weighted tally, threshold strategies and quorum."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from governance.models.meeting import AgendaItem, Decision, Meeting, OrganizerType, ThresholdType
from governance.models.vote import VoteChoice, VoteRecord
from governance.voting import (
    ParticipatingAreaMajority,
    TallyResult,
    TotalAreaQualified,
    chair_election_tally,
    evaluate,
    has_quorum,
    strategy_for,
    tally,
)

MEETING_ID = uuid4()
VOTED_AT = datetime(2026, 4, 10, 18, 30, tzinfo=UTC)


def make_item(threshold: ThresholdType = ThresholdType.SIMPLE_MAJORITY) -> AgendaItem:
    return AgendaItem(
        meeting_id=MEETING_ID, position=1, title="Roof repair", threshold=threshold
    )


def make_vote(item: AgendaItem, voter: str, choice: VoteChoice, weight: float) -> VoteRecord:
    return VoteRecord(
        meeting_id=MEETING_ID,
        agenda_item_id=item.id,
        voter_id=voter,
        choice=choice,
        weight=weight,
        voted_at=VOTED_AT,
    )


class TestTally:
    """Tests for tally()."""

    def test_exactly_half_is_not_a_simple_majority(self) -> None:
        """300 for / 250 against / 50 abstain is 50% for, which does not pass."""
        item = make_item()
        votes = [
            make_vote(item, "a", VoteChoice.FOR, 300.0),
            make_vote(item, "b", VoteChoice.AGAINST, 250.0),
            make_vote(item, "c", VoteChoice.ABSTAIN, 50.0),
        ]

        result = tally(item, votes, total_area=1000.0)

        assert result.participating_area == 600.0
        assert result.percent_for == pytest.approx(50.0)
        assert result.threshold_met is False

    def test_above_half_passes_simple_majority(self) -> None:
        item = make_item()
        votes = [
            make_vote(item, "a", VoteChoice.FOR, 301.0),
            make_vote(item, "b", VoteChoice.AGAINST, 250.0),
            make_vote(item, "c", VoteChoice.ABSTAIN, 49.0),
        ]

        result = tally(item, votes, total_area=1000.0)

        assert result.threshold_met is True
        assert result.vote_count == 3

    def test_sums_are_conserved(self) -> None:
        """Per-choice sums add up to the weights of the item's votes."""
        item = make_item()
        weights = [12.5, 40.25, 77.0, 3.3, 150.0, 61.1]
        choices = [VoteChoice.FOR, VoteChoice.AGAINST, VoteChoice.ABSTAIN] * 2
        votes = [
            make_vote(item, f"v{i}", choice, weight)
            for i, (choice, weight) in enumerate(zip(choices, weights, strict=True))
        ]

        result = tally(item, votes, total_area=1000.0)

        assert result.participating_area == pytest.approx(sum(weights))
        assert (
            result.percent_for + result.percent_against + result.percent_abstain
        ) == pytest.approx(100.0)

    def test_ignores_votes_on_other_items(self) -> None:
        item = make_item()
        other = make_item()
        votes = [
            make_vote(item, "a", VoteChoice.FOR, 100.0),
            make_vote(other, "a", VoteChoice.AGAINST, 900.0),
        ]

        result = tally(item, votes, total_area=1000.0)

        assert result.votes_for == 100.0
        assert result.votes_against == 0.0
        assert result.vote_count == 1

    def test_no_votes_gives_zero_percentages(self) -> None:
        result = tally(make_item(), [], total_area=1000.0)

        assert result.participating_area == 0.0
        assert result.percent_for == 0.0
        assert result.percent_against == 0.0
        assert result.percent_abstain == 0.0
        assert result.threshold_met is False

    def test_qualified_majority_is_measured_against_total_area(self) -> None:
        """Everyone who voted said yes, but 590 of 1000 m2 is below 60%."""
        item = make_item(ThresholdType.QUALIFIED_MAJORITY)
        votes = [make_vote(item, "a", VoteChoice.FOR, 590.0)]

        result = tally(item, votes, total_area=1000.0)

        assert result.percent_for == pytest.approx(100.0)
        assert result.percent_for_of_total == pytest.approx(59.0)
        assert result.threshold_met is False

    def test_qualified_majority_passes_at_required_share(self) -> None:
        item = make_item(ThresholdType.QUALIFIED_MAJORITY)
        votes = [
            make_vote(item, "a", VoteChoice.FOR, 600.0),
            make_vote(item, "b", VoteChoice.AGAINST, 300.0),
        ]

        assert tally(item, votes, total_area=1000.0).threshold_met is True

    def test_two_thirds_tolerates_float_error(self) -> None:
        item = make_item(ThresholdType.TWO_THIRDS)
        votes = [
            make_vote(item, "a", VoteChoice.FOR, 333.35),
            make_vote(item, "b", VoteChoice.FOR, 333.35),
        ]

        assert tally(item, votes, total_area=1000.0).threshold_met is True

    def test_unanimous_requires_whole_area(self) -> None:
        item = make_item(ThresholdType.UNANIMOUS)
        votes = [
            make_vote(item, "a", VoteChoice.FOR, 600.0),
            make_vote(item, "b", VoteChoice.FOR, 399.0),
        ]

        assert tally(item, votes, total_area=1000.0).threshold_met is False
        votes.append(make_vote(item, "c", VoteChoice.FOR, 1.0))
        assert tally(item, votes, total_area=1000.0).threshold_met is True

    def test_decision_requires_quorum(self) -> None:
        passed = TallyResult(votes_for=10.0, threshold_met=True)
        failed = TallyResult(votes_against=10.0, threshold_met=False)

        assert passed.decision(quorum_reached=True) == Decision.APPROVED
        assert failed.decision(quorum_reached=True) == Decision.REJECTED
        assert passed.decision(quorum_reached=False) == Decision.NO_QUORUM

    def test_from_item_reads_published_columns(self) -> None:
        item = make_item().model_copy(
            update={
                "votes_for_area": 300.0,
                "votes_against_area": 100.0,
                "votes_abstain_area": 0.0,
                "threshold_met": True,
                "is_approved": True,
                "decision": Decision.APPROVED,
            }
        )

        result = TallyResult.from_item(item, total_area=1000.0)

        assert result.percent_for == pytest.approx(75.0)
        assert result.percent_for_of_total == pytest.approx(30.0)
        assert result.threshold_met is True


class TestChairElection:
    def test_whole_participating_area_votes_for(self) -> None:
        result = chair_election_tally(voted_area=600.0, total_area=1000.0)

        assert result.votes_for == 600.0
        assert result.percent_for == 100.0
        assert result.percent_for_of_total == pytest.approx(60.0)
        assert result.threshold_met is True

    def test_no_participation(self) -> None:
        result = chair_election_tally(voted_area=0.0, total_area=1000.0)

        assert result.percent_for == 0.0
        assert result.threshold_met is False


class TestThresholdStrategies:
    def test_simple_majority_uses_participating_area(self) -> None:
        assert isinstance(
            strategy_for(ThresholdType.SIMPLE_MAJORITY), ParticipatingAreaMajority
        )

    @pytest.mark.parametrize(
        "threshold",
        [
            ThresholdType.QUALIFIED_MAJORITY,
            ThresholdType.TWO_THIRDS,
            ThresholdType.THREE_QUARTERS,
            ThresholdType.UNANIMOUS,
        ],
    )
    def test_other_thresholds_use_total_area(self, threshold: ThresholdType) -> None:
        strategy = strategy_for(threshold)
        assert isinstance(strategy, TotalAreaQualified)
        assert strategy.required_percent == threshold.required_percent

    def test_zero_denominators_never_pass(self) -> None:
        assert ParticipatingAreaMajority(50.0).is_met(0.0, 0.0, 1000.0) is False
        assert TotalAreaQualified(60.0).is_met(0.0, 0.0, 0.0) is False


class TestQuorum:
    def test_sixty_percent_reaches_fifty_percent_quorum(self) -> None:
        assert has_quorum(600.0, 1000.0, 50.0) is True

    def test_boundary_is_inclusive(self) -> None:
        assert has_quorum(500.0, 1000.0, 50.0) is True
        assert has_quorum(499.9, 1000.0, 50.0) is False

    def test_empty_building_never_has_quorum(self) -> None:
        assert has_quorum(0.0, 0.0, 50.0) is False

    def test_more_participation_never_loses_quorum(self) -> None:
        outcomes = [has_quorum(area, 1000.0, 50.0) for area in range(0, 1001, 25)]
        first_reached = outcomes.index(True)
        assert all(outcomes[first_reached:])

    def test_evaluate_uses_frozen_meeting_fields(self) -> None:
        meeting = Meeting(
            building_id="bld-1",
            organizer_type=OrganizerType.MANAGEMENT,
            organizer_id="mgr-1",
            total_area=1000.0,
            voted_area=600.0,
            participant_count=4,
            total_eligible_count=9,
            quorum_percent=50.0,
        )

        result = evaluate(meeting)

        assert result.quorum_reached is True
        assert result.percent == pytest.approx(60.0)
        assert result.participant_count == 4
        assert result.total_eligible_count == 9
