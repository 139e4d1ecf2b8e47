"""Vote endpoints: agenda votes, schedule poll votes and vote evidence."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, Field

from governance.api.deps import CurrentActor, Service
from governance.models.schedule import ScheduleVote
from governance.models.vote import VerificationMethod, VoteChoice, VoteRecord
from governance.services.meeting_service import EvidenceReport

router = APIRouter(prefix="/meetings", tags=["votes"])


class CastVoteRequest(BaseModel):
    """Request body for casting a vote on an agenda item."""

    agenda_item_id: UUID
    choice: VoteChoice
    comment: str | None = Field(default=None, max_length=2000)
    otp_code: str | None = Field(default=None, min_length=4, max_length=10)


class PaperVoteRequest(BaseModel):
    """A vote cast on paper or by proxy, entered by management."""

    voter_id: str = Field(min_length=1)
    agenda_item_id: UUID
    choice: VoteChoice
    method: Literal["in_person", "proxy"] = "in_person"
    comment: str | None = Field(default=None, max_length=2000)


class ScheduleVoteRequest(BaseModel):
    option_id: UUID
    otp_code: str | None = Field(default=None, min_length=4, max_length=10)


@router.post("/{meeting_id}/votes", response_model=VoteRecord)
async def cast_vote(
    meeting_id: UUID, request: CastVoteRequest, actor: CurrentActor, service: Service
) -> VoteRecord:
    """Cast or change a vote; the last submission wins."""
    return await service.cast_vote(
        meeting_id,
        actor,
        agenda_item_id=request.agenda_item_id,
        choice=request.choice,
        comment=request.comment,
        otp_code=request.otp_code,
    )


@router.post("/{meeting_id}/votes/paper", response_model=VoteRecord)
async def record_paper_vote(
    meeting_id: UUID, request: PaperVoteRequest, actor: CurrentActor, service: Service
) -> VoteRecord:
    return await service.record_paper_vote(
        meeting_id,
        actor,
        voter_id=request.voter_id,
        agenda_item_id=request.agenda_item_id,
        choice=request.choice,
        method=VerificationMethod(request.method),
        comment=request.comment,
    )


@router.get("/{meeting_id}/votes/mine", response_model=list[VoteRecord])
async def my_votes(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> list[VoteRecord]:
    return await service.get_my_votes(meeting_id, actor)


@router.get("/{meeting_id}/votes", response_model=list[VoteRecord])
async def vote_records(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> list[VoteRecord]:
    """All votes of the meeting (management only)."""
    return await service.get_vote_records(meeting_id, actor)


@router.get("/{meeting_id}/votes/evidence", response_model=EvidenceReport)
async def vote_evidence(
    meeting_id: UUID, actor: CurrentActor, service: Service
) -> EvidenceReport:
    return await service.evidence_report(meeting_id, actor)


@router.post("/{meeting_id}/schedule/votes", response_model=ScheduleVote)
async def cast_schedule_vote(
    meeting_id: UUID, request: ScheduleVoteRequest, actor: CurrentActor, service: Service
) -> ScheduleVote:
    return await service.cast_schedule_vote(
        meeting_id, actor, request.option_id, otp_code=request.otp_code
    )
