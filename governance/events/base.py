"""Base Event class for meeting governance events."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from governance.models.base import format_timestamp, utc_now


class Event(BaseModel):
    """Base class for all domain events.

    Events are immutable records of things that happened to a meeting.
    Persisted, they form the meeting's audit trail.

    Attributes:
        event_id: Unique identifier for this event instance
        timestamp: When the event occurred
        aggregate_id: ID of the entity this event relates to (usually a meeting)
        aggregate_type: Type of the entity (e.g., "Meeting", "OTP")
        metadata: Additional context about the event
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    event_id: UUID = Field(default_factory=uuid4, description="Unique event identifier")
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred",
    )
    aggregate_id: UUID | None = Field(default=None, description="ID of the related entity")
    aggregate_type: str | None = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def event_type(self) -> str:
        """Return the event type name (class name)."""
        return self.__class__.__name__

    def to_store_dict(self) -> dict[str, Any]:
        """Convert event to a JSON-ready dict for the event store."""
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "timestamp": format_timestamp(self.timestamp),
            "aggregate_id": str(self.aggregate_id) if self.aggregate_id else None,
            "aggregate_type": self.aggregate_type,
            "data": self.model_dump(
                mode="json",
                exclude={"event_id", "timestamp", "aggregate_id", "aggregate_type"},
            ),
        }
