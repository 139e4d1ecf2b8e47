"""Voting unit registry (voter eligibility and area weights)."""

from governance.registry.voting_units import (
    BuildingTotals,
    VoterWeight,
    VotingUnitRegistry,
)

__all__ = ["VotingUnitRegistry", "VoterWeight", "BuildingTotals"]
