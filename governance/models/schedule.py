"""Pre-meeting date/time poll models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from governance.models.base import BaseEntity


class ScheduleOption(BaseEntity):
    """A candidate date/time for the meeting."""

    meeting_id: UUID
    date_time: datetime
    confirmed: bool = False


class ScheduleVote(BaseEntity):
    """An owner's (unweighted) vote for a schedule option."""

    meeting_id: UUID
    option_id: UUID
    voter_id: str = Field(min_length=1)
    voted_at: datetime


class OptionResult(BaseModel):
    """Vote count for one option.

    percent_of_cast is relative to votes cast in the poll, not to the
    number of eligible owners. It is display data, not a quorum.
    """

    model_config = ConfigDict(frozen=True)

    option: ScheduleOption
    vote_count: int = Field(ge=0)
    percent_of_cast: float = Field(ge=0.0, le=100.0)
