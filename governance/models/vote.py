"""Cast votes on agenda items."""

import hashlib
from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import Field

from governance.models.base import BaseEntity, format_timestamp


class VoteChoice(str, Enum):
    """Choice on an agenda item."""

    FOR = "for"
    AGAINST = "against"
    ABSTAIN = "abstain"


class VerificationMethod(str, Enum):
    """How the voter's identity was established."""

    LOGIN = "login"
    OTP = "otp"
    IN_PERSON = "in_person"
    PROXY = "proxy"


class VoteRecord(BaseEntity):
    """One cast vote.

    At most one record exists per (voter, agenda item). The weight is the
    voter's area when the vote was first cast and never changes afterwards.
    """

    meeting_id: UUID
    agenda_item_id: UUID
    voter_id: str = Field(min_length=1)
    voter_name: str = Field(default="")
    unit_id: UUID | None = Field(default=None, description="Primary voting unit")
    unit_number: str | None = None
    choice: VoteChoice
    weight: float = Field(ge=0.0, description="Snapshotted area in m2")
    verification_method: VerificationMethod = VerificationMethod.LOGIN
    otp_verified: bool = False
    comment: str | None = Field(default=None, max_length=2000)
    voted_at: datetime
    revision: int = Field(default=1, ge=1, description="Times the vote was cast")
    vote_hash: str = Field(default="")

    def compute_hash(self) -> str:
        """Hash of the fields that make up the vote."""
        return vote_hash(
            self.meeting_id,
            self.agenda_item_id,
            self.voter_id,
            self.choice,
            self.voted_at,
        )


def vote_hash(
    meeting_id: UUID,
    agenda_item_id: UUID,
    voter_id: str,
    choice: VoteChoice,
    voted_at: datetime,
) -> str:
    """Compute the audit hash stored with each vote.

    Weight is not part of the payload.
    """
    payload = "|".join(
        [
            str(meeting_id),
            str(agenda_item_id),
            voter_id,
            choice.value,
            format_timestamp(voted_at) or "",
        ]
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
