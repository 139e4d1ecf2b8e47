"""Canonical data models for the meeting governance engine.

This module exports all domain models used throughout the application:
- BaseEntity: Base class with id, timestamp
- Actor: Caller supplied by the identity collaborator
- Meeting / AgendaItem: The governance event and its resolutions
- VotingUnit: Weight-bearing owned space
- VoteRecord: One cast vote
- ScheduleOption / ScheduleVote: Pre-meeting date poll
- OTPRecord: One-time code
- MeetingProtocol: Generated protocol
"""

from governance.models.actor import MANAGEMENT_ROLES, Actor, Role
from governance.models.base import BaseEntity
from governance.models.meeting import (
    AgendaItem,
    AgendaItemDraft,
    Decision,
    Meeting,
    MeetingFormat,
    OrganizerType,
    ThresholdType,
)
from governance.models.otp import IssuedCode, OTPPurpose, OTPRecord
from governance.models.protocol import MeetingProtocol
from governance.models.schedule import OptionResult, ScheduleOption, ScheduleVote
from governance.models.vote import VerificationMethod, VoteChoice, VoteRecord
from governance.models.voting_unit import BuildingMeetingSettings, VotingUnit

__all__ = [
    # Base
    "BaseEntity",
    # Identity
    "Actor",
    "Role",
    "MANAGEMENT_ROLES",
    # Meeting
    "Meeting",
    "MeetingFormat",
    "OrganizerType",
    "AgendaItem",
    "AgendaItemDraft",
    "ThresholdType",
    "Decision",
    # Units
    "VotingUnit",
    "BuildingMeetingSettings",
    # Votes
    "VoteRecord",
    "VoteChoice",
    "VerificationMethod",
    # Schedule poll
    "ScheduleOption",
    "ScheduleVote",
    "OptionResult",
    # OTP
    "OTPRecord",
    "OTPPurpose",
    "IssuedCode",
    # Protocol
    "MeetingProtocol",
]
