"""Meeting and agenda item models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from governance.lifecycle.states import MeetingStatus
from governance.models.base import BaseEntity


class OrganizerType(str, Enum):
    """Who called the meeting."""

    MANAGEMENT = "management"
    RESIDENT = "resident"


class MeetingFormat(str, Enum):
    """How the meeting is held."""

    ONLINE = "online"
    OFFLINE = "offline"
    HYBRID = "hybrid"


class ThresholdType(str, Enum):
    """Decision threshold of an agenda item.

    Simple majority is measured against the area that took part in the
    vote. Every other type is measured against the building's total
    eligible area.
    """

    SIMPLE_MAJORITY = "simple_majority"
    QUALIFIED_MAJORITY = "qualified_majority"
    TWO_THIRDS = "two_thirds"
    THREE_QUARTERS = "three_quarters"
    UNANIMOUS = "unanimous"

    @property
    def required_percent(self) -> float:
        """Percentage of area that must vote in favour."""
        return _REQUIRED_PERCENT[self]


_REQUIRED_PERCENT: dict[ThresholdType, float] = {
    ThresholdType.SIMPLE_MAJORITY: 50.0,
    ThresholdType.QUALIFIED_MAJORITY: 60.0,
    ThresholdType.TWO_THIRDS: 66.67,
    ThresholdType.THREE_QUARTERS: 75.0,
    ThresholdType.UNANIMOUS: 100.0,
}


class Decision(str, Enum):
    """Outcome recorded on an agenda item once results are published."""

    APPROVED = "approved"
    REJECTED = "rejected"
    NO_QUORUM = "no_quorum"


class AgendaItemDraft(BaseModel):
    """Agenda item as supplied when a meeting is created."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=500, description="Resolution title")
    description: str | None = Field(default=None, max_length=5000)
    threshold: ThresholdType = Field(default=ThresholdType.SIMPLE_MAJORITY)


class AgendaItem(BaseEntity):
    """One resolution put to a vote within a meeting.

    The threshold type is fixed at creation. Tally columns and the
    outcome are written once, when results are published.
    """

    meeting_id: UUID = Field(description="Meeting this item belongs to")
    position: int = Field(ge=1, description="Ordinal position on the agenda")
    title: str = Field(min_length=1, max_length=500)
    description: str | None = Field(default=None)
    threshold: ThresholdType = Field(default=ThresholdType.SIMPLE_MAJORITY)
    votes_for_area: float = Field(default=0.0, ge=0.0)
    votes_against_area: float = Field(default=0.0, ge=0.0)
    votes_abstain_area: float = Field(default=0.0, ge=0.0)
    threshold_met: bool | None = Field(default=None)
    is_approved: bool | None = Field(default=None)
    decision: Decision | None = Field(default=None)

    @property
    def has_outcome(self) -> bool:
        """Check if results were already written for this item."""
        return self.is_approved is not None


class Meeting(BaseEntity):
    """One governance event for one building.

    Area and participant fields are recomputed on vote ingestion and
    never decrease. The quorum base (total_area, total_eligible_count)
    is frozen when voting opens.
    """

    number: int = Field(
        default=0, ge=0, description="Sequential meeting number (assigned on insert)"
    )
    building_id: str = Field(min_length=1)
    building_address: str = Field(default="")
    organizer_type: OrganizerType
    organizer_id: str
    organizer_name: str | None = None
    format: MeetingFormat = MeetingFormat.ONLINE
    status: MeetingStatus = MeetingStatus.DRAFT
    description: str | None = None
    location: str | None = None

    total_area: float = Field(default=0.0, ge=0.0, description="Frozen eligible area")
    voted_area: float = Field(default=0.0, ge=0.0, description="Participating area")
    participant_count: int = Field(default=0, ge=0)
    total_eligible_count: int = Field(default=0, ge=0)
    quorum_percent: float = Field(default=50.0, gt=0.0, le=100.0)
    quorum_reached: bool = False
    participation_percent: float = Field(default=0.0, ge=0.0)

    confirmed_date_time: datetime | None = None
    confirmed_option_id: UUID | None = None
    moderation_comment: str | None = None
    cancellation_reason: str | None = None
    archived: bool = False

    submitted_at: datetime | None = None
    moderated_at: datetime | None = None
    schedule_poll_opened_at: datetime | None = None
    schedule_confirmed_at: datetime | None = None
    voting_opened_at: datetime | None = None
    voting_closed_at: datetime | None = None
    results_published_at: datetime | None = None
    protocol_generated_at: datetime | None = None
    protocol_approved_at: datetime | None = None
    cancelled_at: datetime | None = None

    agenda_items: list[AgendaItem] = Field(default_factory=list)

    def agenda_item(self, agenda_item_id: UUID) -> AgendaItem | None:
        """Find an agenda item of this meeting by id."""
        for item in self.agenda_items:
            if item.id == agenda_item_id:
                return item
        return None
