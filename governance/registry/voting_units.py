"""Voting unit registry: who may vote in a building and with what weight.

A voter's weight is the total area of the units they own in the
building. Units without an owner of record add to the building's total
area but give nobody a vote, which makes quorum harder to reach.
"""

import structlog
from pydantic import BaseModel, ConfigDict, Field

from governance.errors import IneligibleVoter, NotFound
from governance.models.voting_unit import VotingUnit
from governance.repositories.building_repo import BuildingRepository

logger = structlog.get_logger()


class VoterWeight(BaseModel):
    """A voter's weight in one building."""

    model_config = ConfigDict(frozen=True)

    voter_id: str
    voter_name: str = ""
    weight: float = Field(gt=0.0, description="Total owned area in m2")
    units: tuple[VotingUnit, ...]

    @property
    def primary_unit(self) -> VotingUnit:
        """Unit recorded on the voter's ballots (lowest unit number)."""
        return self.units[0]


class BuildingTotals(BaseModel):
    """Quorum base of a building at a point in time."""

    model_config = ConfigDict(frozen=True)

    total_area: float = Field(ge=0.0)
    eligible_owner_count: int = Field(ge=0)
    unit_count: int = Field(ge=0)


class VotingUnitRegistry:
    """Units of each building, their owners and areas.

    Fed by the building/resident directory through register_unit and
    update_unit. Read once per meeting at open_voting to freeze the
    quorum base, and on every vote to snapshot the voter's weight.
    """

    def __init__(self, repository: BuildingRepository):
        self._repo = repository

    async def register_unit(self, unit: VotingUnit) -> VotingUnit:
        """Add a unit, or replace area/owner of an existing unit number."""
        stored = await self._repo.upsert_unit(unit)
        logger.info(
            "voting unit registered",
            building_id=stored.building_id,
            unit_number=stored.unit_number,
            area_sqm=stored.area_sqm,
            has_owner=stored.has_owner,
        )
        return stored

    async def update_unit(
        self,
        building_id: str,
        unit_number: str,
        *,
        area_sqm: float | None = None,
        owner_id: str | None = None,
        owner_name: str | None = None,
        clear_owner: bool = False,
    ) -> VotingUnit:
        """Change the area or owner of a registered unit.

        Votes already cast keep the weight they were cast with.

        Raises:
            NotFound: If the unit is not registered
        """
        unit = await self._repo.get_unit(building_id, unit_number)
        if unit is None:
            msg = f"Unit {unit_number} not found in building {building_id}"
            raise NotFound(msg)

        changes: dict = {}
        if area_sqm is not None:
            changes["area_sqm"] = area_sqm
        if clear_owner:
            changes["owner_id"] = None
            changes["owner_name"] = None
        else:
            if owner_id is not None:
                changes["owner_id"] = owner_id
            if owner_name is not None:
                changes["owner_name"] = owner_name

        updated = VotingUnit.model_validate(unit.model_dump() | changes)
        return await self.register_unit(updated)

    async def units_for_building(self, building_id: str) -> list[VotingUnit]:
        return await self._repo.list_units(building_id)

    async def eligible_area(self, building_id: str) -> float:
        """Total area of the building, owned or not."""
        units = await self._repo.list_units(building_id)
        return sum(unit.area_sqm for unit in units)

    async def eligible_count(self, building_id: str) -> int:
        """Number of distinct owners of record in the building."""
        units = await self._repo.list_units(building_id)
        return len({unit.owner_id for unit in units if unit.has_owner})

    async def totals(self, building_id: str) -> BuildingTotals:
        """Area and owner count read in one pass (used to freeze quorum base)."""
        units = await self._repo.list_units(building_id)
        return BuildingTotals(
            total_area=sum(unit.area_sqm for unit in units),
            eligible_owner_count=len({u.owner_id for u in units if u.has_owner}),
            unit_count=len(units),
        )

    async def is_eligible(self, voter_id: str, building_id: str) -> bool:
        units = await self._repo.list_units_for_owner(building_id, voter_id)
        return bool(units)

    async def voter_weight(self, voter_id: str, building_id: str) -> VoterWeight:
        """Weight and units of a voter in a building.

        Args:
            voter_id: Identity of the would-be voter
            building_id: Building the meeting belongs to

        Returns:
            VoterWeight with units sorted by unit number

        Raises:
            IneligibleVoter: If the voter owns no unit in the building
        """
        units = await self._repo.list_units_for_owner(building_id, voter_id)
        if not units:
            logger.info("ineligible voter", building_id=building_id, voter_id=voter_id)
            msg = f"{voter_id} owns no unit in building {building_id}"
            raise IneligibleVoter(msg)
        return VoterWeight(
            voter_id=voter_id,
            voter_name=next((u.owner_name for u in units if u.owner_name), ""),
            weight=sum(unit.area_sqm for unit in units),
            units=tuple(units),
        )
