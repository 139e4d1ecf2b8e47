"""Frozen meeting snapshot the protocol is rendered from.

The snapshot holds everything the document shows and nothing else. Its
canonical JSON form is hashed into snapshot_digest, which is printed in
the document for audit.
"""

import hashlib
import json
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from governance.models.meeting import Decision, MeetingFormat


class OrganizationDetails(BaseModel):
    """Issuing management company, encoded into its QR token."""

    model_config = ConfigDict(frozen=True)

    name: str
    address: str = ""
    bank: str = ""
    account: str = ""
    tax_id: str = ""
    activity_code: str = ""
    bank_code: str = ""


class ItemSnapshot(BaseModel):
    """Published outcome of one agenda item."""

    model_config = ConfigDict(frozen=True)

    agenda_item_id: UUID
    position: int = Field(ge=1)
    title: str
    description: str | None = None
    threshold: str
    required_percent: float
    votes_for: float = Field(ge=0.0)
    votes_against: float = Field(ge=0.0)
    votes_abstain: float = Field(ge=0.0)
    percent_for: float
    percent_against: float
    percent_abstain: float
    threshold_met: bool
    decision: Decision


class VoteSnapshot(BaseModel):
    """One counted vote as it appears in the protocol."""

    model_config = ConfigDict(frozen=True)

    agenda_item_id: UUID
    item_position: int = Field(ge=1)
    voter_id: str
    voter_name: str
    unit_number: str | None = None
    weight: float = Field(ge=0.0)
    choice: str
    comment: str | None = None
    voted_at: datetime
    vote_hash: str


class ProtocolSnapshot(BaseModel):
    """Everything a protocol document is a function of."""

    model_config = ConfigDict(frozen=True)

    meeting_id: UUID
    protocol_number: str = Field(description="Meeting number and year, e.g. '12/2026'")
    building_address: str
    format: MeetingFormat
    location: str | None = None
    organizer_name: str | None = None
    held_at: datetime | None = Field(
        default=None, description="Confirmed date/time, else voting start"
    )
    results_published_at: datetime | None = None
    total_area: float = Field(ge=0.0)
    voted_area: float = Field(ge=0.0)
    participation_percent: float = Field(ge=0.0)
    participant_count: int = Field(ge=0)
    total_eligible_count: int = Field(ge=0)
    quorum_percent: float
    quorum_reached: bool
    items: tuple[ItemSnapshot, ...]
    votes: tuple[VoteSnapshot, ...]
    organization: OrganizationDetails

    def canonical_json(self) -> str:
        """Stable serialization: sorted keys, no whitespace, UTF-8 text."""
        return json.dumps(
            self.model_dump(mode="json"),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )

    def digest(self) -> str:
        """sha256 of the canonical JSON form."""
        return hashlib.sha256(self.canonical_json().encode("utf-8")).hexdigest()

    def votes_for_item(self, agenda_item_id: UUID) -> list[VoteSnapshot]:
        return [vote for vote in self.votes if vote.agenda_item_id == agenda_item_id]


class AssembledProtocol(BaseModel):
    """Rendered protocol document and its hashes."""

    model_config = ConfigDict(frozen=True)

    document_bytes: bytes = Field(repr=False)
    content_hash: str = Field(description="sha256 of document_bytes")
    snapshot_digest: str
    protocol_number: str

    @property
    def size_bytes(self) -> int:
        return len(self.document_bytes)
