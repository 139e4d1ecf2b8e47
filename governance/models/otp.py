"""One-time code records."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from governance.models.base import BaseEntity


class OTPPurpose(str, Enum):
    """Action a one-time code authorizes."""

    SCHEDULE_VOTE = "schedule_vote"
    AGENDA_VOTE = "agenda_vote"


class OTPRecord(BaseEntity):
    """A short-lived, single-use code bound to a target and purpose.

    Only a hash of the code is stored.
    """

    target: str = Field(min_length=1, description="Phone number or unit reference")
    purpose: OTPPurpose
    code_hash: str
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=5, ge=1)
    expires_at: datetime
    used_at: datetime | None = None

    @property
    def is_used(self) -> bool:
        return self.used_at is not None

    @property
    def is_locked(self) -> bool:
        return self.attempts >= self.max_attempts

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class IssuedCode(BaseModel):
    """Result of issuing a code. The plain code exists only here."""

    model_config = ConfigDict(frozen=True)

    otp_id: str
    code: str
    expires_at: datetime
