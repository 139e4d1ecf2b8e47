"""Repository layer for data persistence.

Provides repository classes for persisting domain data to the database.
Repositories encapsulate data access logic and provide a clean interface
for the service layer.
"""

from governance.repositories.building_repo import BuildingRepository
from governance.repositories.meeting_repo import MeetingRepository
from governance.repositories.otp_repo import OTPRepository
from governance.repositories.protocol_repo import ProtocolRepository
from governance.repositories.schedule_repo import ScheduleRepository
from governance.repositories.vote_repo import VoteRepository

__all__ = [
    "BuildingRepository",
    "MeetingRepository",
    "OTPRepository",
    "ProtocolRepository",
    "ScheduleRepository",
    "VoteRepository",
]
