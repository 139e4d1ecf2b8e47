"""Quorum evaluation against the area frozen when voting opened."""

from pydantic import BaseModel, ConfigDict, Field

from governance.models.meeting import Meeting


class QuorumResult(BaseModel):
    """Participation summary of a meeting."""

    model_config = ConfigDict(frozen=True)

    participated_area: float = Field(ge=0.0)
    total_area: float = Field(ge=0.0)
    percent: float = Field(ge=0.0)
    quorum_percent: float
    quorum_reached: bool
    participant_count: int = Field(default=0, ge=0)
    total_eligible_count: int = Field(default=0, ge=0)


def participation_percent(voted_area: float, total_area: float) -> float:
    """Share of total area that took part, 0 when total_area is 0."""
    if total_area <= 0:
        return 0.0
    return voted_area / total_area * 100.0


def has_quorum(voted_area: float, total_area: float, quorum_percent: float) -> bool:
    """Whether participating area reaches quorum_percent of total area.

    A building with no eligible area never reaches quorum.
    """
    if total_area <= 0:
        return False
    return participation_percent(voted_area, total_area) >= quorum_percent


def evaluate(meeting: Meeting) -> QuorumResult:
    """Evaluate the quorum of a meeting from its frozen snapshot fields."""
    percent = participation_percent(meeting.voted_area, meeting.total_area)
    return QuorumResult(
        participated_area=meeting.voted_area,
        total_area=meeting.total_area,
        percent=percent,
        quorum_percent=meeting.quorum_percent,
        quorum_reached=has_quorum(
            meeting.voted_area, meeting.total_area, meeting.quorum_percent
        ),
        participant_count=meeting.participant_count,
        total_eligible_count=meeting.total_eligible_count,
    )
