"""Event infrastructure for meeting governance.

Provides:
- Event: Base class for all domain events
- EventBus: In-process pub/sub for event routing
- EventStore: Append-only event persistence (the audit trail)
"""

from governance.events.base import Event
from governance.events.bus import EventBus
from governance.events.store import EventStore
from governance.events.types import (
    MeetingCreated,
    MeetingStatusChanged,
    OTPIssued,
    ProtocolGenerated,
    ResultsPublished,
    ScheduleVoteCast,
    VoteCast,
)

__all__ = [
    # Base
    "Event",
    # Infrastructure
    "EventBus",
    "EventStore",
    # Event types
    "MeetingCreated",
    "MeetingStatusChanged",
    "ScheduleVoteCast",
    "VoteCast",
    "ResultsPublished",
    "ProtocolGenerated",
    "OTPIssued",
]
