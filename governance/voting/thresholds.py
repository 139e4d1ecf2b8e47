"""Decision threshold strategies.

Two families of thresholds use different denominators:
- ParticipatingAreaMajority: share of the area that took part in the vote
  on the item, strictly above the required percent.
- TotalAreaQualified: share of the building's total eligible area, at
  least the required percent.
"""

from typing import Protocol

from governance.models.meeting import ThresholdType

# Absorbs float error from summing many unit areas
_EPSILON = 1e-9


class ThresholdStrategy(Protocol):
    """Decides whether an item passed, given its area sums."""

    required_percent: float

    def measured_percent(
        self, votes_for: float, participating_area: float, total_area: float
    ) -> float:
        """Percentage compared against required_percent."""
        ...

    def is_met(
        self, votes_for: float, participating_area: float, total_area: float
    ) -> bool:
        """Whether the threshold is reached."""
        ...


def _percent(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100.0


class ParticipatingAreaMajority:
    """More than required_percent of participating area voted for."""

    def __init__(self, required_percent: float):
        self.required_percent = required_percent

    def measured_percent(
        self, votes_for: float, participating_area: float, total_area: float
    ) -> float:
        return _percent(votes_for, participating_area)

    def is_met(
        self, votes_for: float, participating_area: float, total_area: float
    ) -> bool:
        if participating_area <= 0:
            return False
        percent = self.measured_percent(votes_for, participating_area, total_area)
        return percent > self.required_percent + _EPSILON


class TotalAreaQualified:
    """At least required_percent of total eligible area voted for."""

    def __init__(self, required_percent: float):
        self.required_percent = required_percent

    def measured_percent(
        self, votes_for: float, participating_area: float, total_area: float
    ) -> float:
        return _percent(votes_for, total_area)

    def is_met(
        self, votes_for: float, participating_area: float, total_area: float
    ) -> bool:
        if total_area <= 0:
            return False
        percent = self.measured_percent(votes_for, participating_area, total_area)
        return percent >= self.required_percent - _EPSILON


def strategy_for(threshold: ThresholdType) -> ThresholdStrategy:
    """Select the threshold strategy for an agenda item's threshold type."""
    if threshold is ThresholdType.SIMPLE_MAJORITY:
        return ParticipatingAreaMajority(threshold.required_percent)
    return TotalAreaQualified(threshold.required_percent)
