"""Building endpoints: voting units (directory feed) and meeting settings."""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from governance.api.deps import CurrentActor, Service
from governance.models.voting_unit import BuildingMeetingSettings, VotingUnit

router = APIRouter(prefix="/buildings", tags=["buildings"])


class UnitRequest(BaseModel):
    """A unit as published by the building directory."""

    unit_number: str = Field(min_length=1, max_length=50)
    area_sqm: float = Field(gt=0.0)
    owner_id: str | None = None
    owner_name: str | None = None


class UnitUpdateRequest(BaseModel):
    area_sqm: float | None = Field(default=None, gt=0.0)
    owner_id: str | None = None
    owner_name: str | None = None
    clear_owner: bool = False


class SettingsRequest(BaseModel):
    default_quorum_percent: float = Field(default=50.0, gt=0.0, le=100.0)
    allow_resident_initiative: bool = True
    require_otp_for_votes: bool = False


@router.post("/{building_id}/units", response_model=VotingUnit, status_code=201)
async def register_unit(
    building_id: str, request: UnitRequest, actor: CurrentActor, service: Service
) -> VotingUnit:
    """Register a unit, or replace the area/owner of an existing unit number."""
    unit = VotingUnit(building_id=building_id, **request.model_dump())
    return await service.register_unit(actor, unit)


@router.patch("/{building_id}/units/{unit_number}", response_model=VotingUnit)
async def update_unit(
    building_id: str,
    unit_number: str,
    request: UnitUpdateRequest,
    actor: CurrentActor,
    service: Service,
) -> VotingUnit:
    if request.clear_owner and request.owner_id:
        raise HTTPException(
            status_code=400, detail="clear_owner and owner_id are mutually exclusive"
        )
    return await service.update_unit(
        actor,
        building_id,
        unit_number,
        area_sqm=request.area_sqm,
        owner_id=request.owner_id,
        owner_name=request.owner_name,
        clear_owner=request.clear_owner,
    )


@router.get("/{building_id}/units", response_model=list[VotingUnit])
async def list_units(
    building_id: str, actor: CurrentActor, service: Service
) -> list[VotingUnit]:
    return await service.list_units(actor, building_id)


@router.get("/{building_id}/settings", response_model=BuildingMeetingSettings)
async def get_settings(
    building_id: str, actor: CurrentActor, service: Service
) -> BuildingMeetingSettings:
    """Meeting settings of a building (configured defaults if never set)."""
    return await service.get_building_settings(building_id)


@router.put("/{building_id}/settings", response_model=BuildingMeetingSettings)
async def update_settings(
    building_id: str, request: SettingsRequest, actor: CurrentActor, service: Service
) -> BuildingMeetingSettings:
    return await service.update_building_settings(
        actor,
        BuildingMeetingSettings(building_id=building_id, **request.model_dump()),
    )
