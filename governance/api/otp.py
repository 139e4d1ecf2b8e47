"""One-time code endpoints."""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from governance.api.deps import CurrentActor, Service
from governance.config import settings
from governance.models.otp import OTPPurpose

router = APIRouter(prefix="/otp", tags=["otp"])


class OTPRequest(BaseModel):
    purpose: OTPPurpose


class OTPVerifyRequest(BaseModel):
    purpose: OTPPurpose
    code: str = Field(min_length=4, max_length=10)


class OTPIssuedResponse(BaseModel):
    """Issued code reference.

    The code itself is only echoed outside production, where no SMS
    gateway delivers it.
    """

    otp_id: str
    expires_at: datetime
    code: str | None = None


class OTPVerifiedResponse(BaseModel):
    otp_id: str
    verified: bool
    used_at: datetime | None


@router.post("/request", response_model=OTPIssuedResponse, status_code=201)
async def request_code(
    request: OTPRequest, actor: CurrentActor, service: Service
) -> OTPIssuedResponse:
    """Issue a code bound to the caller's phone for one purpose."""
    issued = await service.request_otp(actor, request.purpose)
    return OTPIssuedResponse(
        otp_id=issued.otp_id,
        expires_at=issued.expires_at,
        code=None if settings.is_production else issued.code,
    )


@router.post("/verify", response_model=OTPVerifiedResponse)
async def verify_code(
    request: OTPVerifyRequest, actor: CurrentActor, service: Service
) -> OTPVerifiedResponse:
    """Verify and consume a code (400 wrong, 410 expired, 409 already used)."""
    record = await service.verify_otp(actor, request.purpose, request.code)
    return OTPVerifiedResponse(
        otp_id=str(record.id), verified=True, used_at=record.used_at
    )
