"""Typed event definitions for meeting governance.

These events represent things that happen to a meeting:
- MeetingCreated: A meeting draft was created
- MeetingStatusChanged: A lifecycle transition was applied
- ScheduleVoteCast: An owner voted in the date/time poll
- VoteCast: An owner cast or changed a vote on an agenda item
- ResultsPublished: Tallies and decisions were frozen
- ProtocolGenerated: The protocol document was rendered and stored
- OTPIssued: A one-time code was issued (the code itself is never included)
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from governance.events.base import Event


class MeetingCreated(Event):
    """Emitted when a new meeting draft is created."""

    aggregate_type: str = "Meeting"
    number: int = Field(description="Sequential meeting number")
    building_id: str = Field(description="Building the meeting belongs to")
    organizer_id: str = Field(description="Who created the meeting")
    agenda_item_count: int = Field(default=0)


class MeetingStatusChanged(Event):
    """Emitted after a lifecycle transition wins its compare-and-set."""

    aggregate_type: str = "Meeting"
    operation: str = Field(description="Lifecycle operation applied")
    from_status: str
    to_status: str
    actor_id: str = Field(description="Who performed the operation")


class ScheduleVoteCast(Event):
    """Emitted when an owner votes for a schedule option."""

    aggregate_type: str = "Meeting"
    option_id: UUID
    voter_id: str


class VoteCast(Event):
    """Emitted when a vote on an agenda item is recorded."""

    aggregate_type: str = "Meeting"
    agenda_item_id: UUID
    voter_id: str
    choice: str
    weight: float = Field(ge=0.0, description="Snapshotted area")
    revision: int = Field(default=1, description="1 for a first vote, >1 for a revote")
    vote_hash: str


class ResultsPublished(Event):
    """Emitted when decisions are written to the agenda items."""

    aggregate_type: str = "Meeting"
    quorum_reached: bool
    participation_percent: float
    approved_count: int = Field(default=0)
    rejected_count: int = Field(default=0)


class ProtocolGenerated(Event):
    """Emitted when a protocol document is stored for a meeting."""

    aggregate_type: str = "Meeting"
    protocol_number: str
    content_hash: str
    storage_key: str
    generated_at: datetime


class OTPIssued(Event):
    """Emitted when a one-time code is issued."""

    aggregate_type: str = "OTP"
    target: str
    purpose: str
    expires_at: datetime
