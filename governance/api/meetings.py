"""Meetings API endpoints: creation, lifecycle, results and protocol."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, Response
from pydantic import BaseModel, Field

from governance.api.deps import CurrentActor, Service
from governance.models.meeting import AgendaItemDraft, Meeting, MeetingFormat
from governance.models.protocol import MeetingProtocol
from governance.models.schedule import OptionResult
from governance.protocol.packaging import DOCX_MEDIA_TYPE
from governance.voting.quorum import QuorumResult
from governance.voting.tally import TallyResult

router = APIRouter(prefix="/meetings", tags=["meetings"])


class CreateMeetingRequest(BaseModel):
    """Request body for creating a meeting draft."""

    building_id: str = Field(min_length=1)
    building_address: str = Field(default="")
    format: MeetingFormat = Field(default=MeetingFormat.ONLINE)
    description: str | None = Field(default=None, max_length=5000)
    location: str | None = Field(default=None, max_length=500)
    quorum_percent: float | None = Field(default=None, gt=0.0, le=100.0)
    agenda: list[AgendaItemDraft] = Field(min_length=1, description="Agenda in order")
    schedule_options: list[datetime] = Field(
        min_length=1, description="Candidate dates for the schedule poll"
    )


class ApproveRequest(BaseModel):
    comment: str | None = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ConfirmScheduleRequest(BaseModel):
    option_id: UUID | None = Field(
        default=None, description="Required only to break a tie between leaders"
    )


@router.post("", response_model=Meeting, status_code=201)
async def create_meeting(
    request: CreateMeetingRequest, actor: CurrentActor, service: Service
) -> Meeting:
    """Create a draft meeting with agenda and candidate dates."""
    return await service.create_meeting(
        actor,
        building_id=request.building_id,
        agenda=request.agenda,
        schedule_options=request.schedule_options,
        building_address=request.building_address,
        meeting_format=request.format,
        description=request.description,
        location=request.location,
        quorum_percent=request.quorum_percent,
    )


@router.get("", response_model=list[Meeting])
async def list_meetings(
    actor: CurrentActor,
    service: Service,
    building_id: str = Query(min_length=1),
    include_archived: bool = False,
) -> list[Meeting]:
    """List meetings of a building, newest first."""
    return await service.list_meetings(building_id, actor, include_archived)


@router.get("/{meeting_id}", response_model=Meeting)
async def get_meeting(meeting_id: UUID, actor: CurrentActor, service: Service) -> Meeting:
    return await service.get_meeting(meeting_id, actor)


@router.post("/{meeting_id}/submit", response_model=Meeting)
async def submit_for_moderation(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> Meeting:
    return await service.submit_for_moderation(meeting_id, actor)


@router.post("/{meeting_id}/approve", response_model=Meeting)
async def approve_meeting(
    meeting_id: UUID,
    actor: CurrentActor,
    service: Service,
    request: ApproveRequest | None = None,
) -> Meeting:
    comment = request.comment if request else None
    return await service.approve_meeting(meeting_id, actor, comment)


@router.post("/{meeting_id}/reject", response_model=Meeting)
async def reject_meeting(
    meeting_id: UUID, request: RejectRequest, actor: CurrentActor, service: Service
) -> Meeting:
    return await service.reject_meeting(meeting_id, actor, request.reason)


@router.post("/{meeting_id}/cancel", response_model=Meeting)
async def cancel_meeting(
    meeting_id: UUID,
    actor: CurrentActor,
    service: Service,
    request: CancelRequest | None = None,
) -> Meeting:
    reason = request.reason if request else None
    return await service.cancel_meeting(meeting_id, actor, reason)


@router.get("/{meeting_id}/schedule", response_model=list[OptionResult])
async def schedule_results(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> list[OptionResult]:
    """Candidate dates with vote counts."""
    return await service.schedule_options(meeting_id, actor)


@router.post("/{meeting_id}/schedule/confirm", response_model=Meeting)
async def confirm_schedule(
    meeting_id: UUID,
    actor: CurrentActor,
    service: Service,
    request: ConfirmScheduleRequest | None = None,
) -> Meeting:
    """Confirm the winning date (409 on a tie without an explicit option)."""
    option_id = request.option_id if request else None
    return await service.confirm_schedule(meeting_id, actor, option_id)


@router.post("/{meeting_id}/voting/open", response_model=Meeting)
async def open_voting(meeting_id: UUID, actor: CurrentActor, service: Service) -> Meeting:
    return await service.open_voting(meeting_id, actor)


@router.post("/{meeting_id}/voting/close", response_model=Meeting)
async def close_voting(meeting_id: UUID, actor: CurrentActor, service: Service) -> Meeting:
    return await service.close_voting(meeting_id, actor)


@router.post("/{meeting_id}/results/publish", response_model=Meeting)
async def publish_results(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> Meeting:
    """Tally every item, evaluate quorum and freeze the outcome."""
    return await service.publish_results(meeting_id, actor)


@router.get("/{meeting_id}/quorum", response_model=QuorumResult)
async def meeting_quorum(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> QuorumResult:
    return await service.calculate_meeting_quorum(meeting_id, actor)


@router.get("/{meeting_id}/agenda/{agenda_item_id}/result", response_model=TallyResult)
async def agenda_item_result(
    meeting_id: UUID, agenda_item_id: UUID, actor: CurrentActor, service: Service
) -> TallyResult:
    return await service.calculate_agenda_item_result(meeting_id, agenda_item_id, actor)


@router.post("/{meeting_id}/protocol", response_model=MeetingProtocol)
async def generate_protocol(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> MeetingProtocol:
    """Render and store the protocol (idempotent once generated)."""
    return await service.generate_protocol(meeting_id, actor)


@router.get("/{meeting_id}/protocol", response_model=MeetingProtocol)
async def get_protocol(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> MeetingProtocol:
    return await service.get_protocol(meeting_id, actor)


@router.get("/{meeting_id}/protocol/document")
async def download_protocol(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> Response:
    """Download the protocol .docx."""
    document = await service.get_protocol_document(meeting_id, actor)
    filename = f"protocol_{document.protocol.number.replace('/', '_')}.docx"
    return Response(
        content=document.content,
        media_type=DOCX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-Content-SHA256": document.protocol.content_hash,
        },
    )


@router.post("/{meeting_id}/protocol/approve", response_model=Meeting)
async def approve_protocol(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> Meeting:
    return await service.approve_protocol(meeting_id, actor)


@router.get("/{meeting_id}/audit")
async def audit_trail(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> list[dict]:
    """Stored events of the meeting, oldest first."""
    return await service.audit_trail(meeting_id, actor)
