"""Tests for VotingUnitRegistry and building settings storage."""

import pytest

from conftest import BUILDING, Harness
from governance.errors import IneligibleVoter, NotFound
from governance.models.voting_unit import BuildingMeetingSettings, VotingUnit


class TestVotingUnitRegistry:
    """Tests for eligibility and weights."""

    async def test_totals_include_unowned_units(self, harness: Harness, building) -> None:
        totals = await harness.registry.totals(BUILDING)

        assert totals.total_area == 1000.0
        assert totals.eligible_owner_count == 3
        assert totals.unit_count == 5

    async def test_eligible_area_and_count(self, harness: Harness, building) -> None:
        assert await harness.registry.eligible_area(BUILDING) == 1000.0
        assert await harness.registry.eligible_count(BUILDING) == 3

    async def test_weight_sums_owned_units(self, harness: Harness, building) -> None:
        weight = await harness.registry.voter_weight("bob", BUILDING)

        assert weight.weight == 300.0
        assert weight.voter_name == "Bob Baker"
        assert [u.unit_number for u in weight.units] == ["2", "3"]
        assert weight.primary_unit.unit_number == "2"

    async def test_non_owner_is_ineligible(self, harness: Harness, building) -> None:
        assert await harness.registry.is_eligible("mallory", BUILDING) is False
        with pytest.raises(IneligibleVoter):
            await harness.registry.voter_weight("mallory", BUILDING)

    async def test_owner_of_other_building_is_ineligible(
        self, harness: Harness, building
    ) -> None:
        with pytest.raises(IneligibleVoter):
            await harness.registry.voter_weight("alice", "bld-2")

    async def test_register_same_number_replaces_unit(
        self, harness: Harness, building
    ) -> None:
        await harness.registry.register_unit(
            VotingUnit(building_id=BUILDING, unit_number="5", area_sqm=150.0,
                       owner_id="dave", owner_name="Dave Dunn")
        )

        units = await harness.registry.units_for_building(BUILDING)
        assert len(units) == 5
        assert await harness.registry.eligible_area(BUILDING) == 1050.0
        assert await harness.registry.is_eligible("dave", BUILDING) is True

    async def test_update_unit_changes_owner(self, harness: Harness, building) -> None:
        updated = await harness.registry.update_unit(
            BUILDING, "4", owner_id="erin", owner_name="Erin East"
        )

        assert updated.owner_id == "erin"
        assert await harness.registry.is_eligible("carol", BUILDING) is False
        assert (await harness.registry.voter_weight("erin", BUILDING)).weight == 200.0

    async def test_clear_owner_keeps_area(self, harness: Harness, building) -> None:
        await harness.registry.update_unit(BUILDING, "4", clear_owner=True)

        totals = await harness.registry.totals(BUILDING)
        assert totals.total_area == 1000.0
        assert totals.eligible_owner_count == 2

    async def test_update_unknown_unit(self, harness: Harness, building) -> None:
        with pytest.raises(NotFound):
            await harness.registry.update_unit(BUILDING, "99", area_sqm=10.0)


class TestBuildingSettings:
    async def test_missing_settings_return_none(self, harness: Harness) -> None:
        assert await harness.buildings.get_settings(BUILDING) is None

    async def test_save_and_replace(self, harness: Harness) -> None:
        await harness.buildings.save_settings(
            BuildingMeetingSettings(building_id=BUILDING, require_otp_for_votes=True)
        )
        await harness.buildings.save_settings(
            BuildingMeetingSettings(
                building_id=BUILDING,
                default_quorum_percent=66.0,
                allow_resident_initiative=False,
            )
        )

        stored = await harness.buildings.get_settings(BUILDING)
        assert stored.default_quorum_percent == 66.0
        assert stored.allow_resident_initiative is False
        assert stored.require_otp_for_votes is False
