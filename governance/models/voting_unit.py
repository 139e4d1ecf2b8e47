"""Voting unit and per-building meeting settings."""

from pydantic import BaseModel, ConfigDict, Field

from governance.models.base import BaseEntity


class VotingUnit(BaseEntity):
    """An owned space whose area is its voting weight.

    A unit without a recorded owner still counts towards the building's
    total area but cannot cast a vote.
    """

    building_id: str = Field(min_length=1)
    unit_number: str = Field(min_length=1, description="Apartment/unit number")
    area_sqm: float = Field(gt=0.0, description="Area in square meters")
    owner_id: str | None = Field(default=None, description="Current owner of record")
    owner_name: str | None = Field(default=None)

    @property
    def has_owner(self) -> bool:
        """Check if the unit has an owner of record."""
        return bool(self.owner_id)


class BuildingMeetingSettings(BaseModel):
    """Per-building defaults applied to new meetings."""

    model_config = ConfigDict(str_strip_whitespace=True)

    building_id: str = Field(min_length=1)
    default_quorum_percent: float = Field(default=50.0, gt=0.0, le=100.0)
    allow_resident_initiative: bool = True
    require_otp_for_votes: bool = False
