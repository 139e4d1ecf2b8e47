"""Pre-meeting date/time poll.

Owners vote, unweighted, for one of the proposed options. The option
with the most votes wins. A tie at the top is never broken
automatically: the caller must name one of the tied options.
"""

from collections import Counter
from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from governance.db.turso import SqlStatement
from governance.errors import AmbiguousWinner, NotFound, VotingClosed
from governance.lifecycle.states import MeetingStatus
from governance.models.base import utc_now
from governance.models.meeting import Meeting
from governance.models.schedule import OptionResult, ScheduleOption, ScheduleVote
from governance.registry.voting_units import VotingUnitRegistry
from governance.repositories.schedule_repo import ScheduleRepository

logger = structlog.get_logger()

Guard = tuple[str, list[Any]]


class SchedulePoll:
    """Schedule options, poll votes and winner resolution for meetings."""

    def __init__(self, repository: ScheduleRepository, registry: VotingUnitRegistry):
        self._repo = repository
        self._registry = registry

    async def options(self, meeting_id: UUID) -> list[ScheduleOption]:
        return await self._repo.list_options(meeting_id)

    async def _validate_vote(
        self, meeting: Meeting, voter_id: str, option_id: UUID
    ) -> None:
        if meeting.status != MeetingStatus.SCHEDULE_POLL_OPEN:
            msg = f"Schedule poll of meeting {meeting.id} is not open"
            raise VotingClosed(msg)

        # Raises IneligibleVoter for non-owners
        await self._registry.voter_weight(voter_id, meeting.building_id)

        options = await self._repo.list_options(meeting.id)
        if not any(option.id == option_id for option in options):
            msg = f"Schedule option {option_id} not found in meeting {meeting.id}"
            raise NotFound(msg)

    async def cast(
        self,
        meeting: Meeting,
        voter_id: str,
        option_id: UUID,
        now: datetime | None = None,
        guard: Guard | None = None,
        follow_ups: Callable[[Guard], list[SqlStatement]] | None = None,
    ) -> ScheduleVote:
        """Record an owner's vote, moving any earlier vote of theirs.

        Args:
            meeting: Meeting whose poll is voted on
            voter_id: Voting owner
            option_id: Chosen option
            now: Vote time (defaults to current UTC time)
            guard: Extra condition the write depends on
            follow_ups: Builds statements run with the vote, given a
                condition true only if this vote was written

        Returns:
            The stored vote

        Raises:
            VotingClosed: If the poll is not open, or the write did not happen
            IneligibleVoter: If the voter owns no unit in the building
            NotFound: If the option does not belong to the meeting
        """
        await self._validate_vote(meeting, voter_id, option_id)

        vote = ScheduleVote(
            meeting_id=meeting.id,
            option_id=option_id,
            voter_id=voter_id,
            voted_at=now or utc_now(),
        )
        extra = follow_ups(self._repo.written_guard(vote)) if follow_ups else []
        if not await self._repo.upsert_vote(vote, guard, extra):
            msg = f"Schedule poll of meeting {meeting.id} closed before the vote"
            raise VotingClosed(msg)

        logger.info(
            "schedule vote cast",
            meeting_id=str(meeting.id),
            option_id=str(option_id),
            voter_id=voter_id,
        )
        return vote

    async def results(self, meeting_id: UUID) -> list[OptionResult]:
        """Vote count per option, in option order.

        percent_of_cast is relative to votes cast, not to eligible owners.
        """
        options = await self._repo.list_options(meeting_id)
        votes = await self._repo.list_votes(meeting_id)
        counts = Counter(vote.option_id for vote in votes)
        cast = sum(counts.values())
        return [
            OptionResult(
                option=option,
                vote_count=counts.get(option.id, 0),
                percent_of_cast=counts.get(option.id, 0) / cast * 100.0 if cast else 0.0,
            )
            for option in options
        ]

    async def leading_options(self, meeting_id: UUID) -> list[ScheduleOption]:
        """Options sharing the highest vote count. Empty if nobody voted."""
        results = await self.results(meeting_id)
        top = max((result.vote_count for result in results), default=0)
        if top == 0:
            return []
        return [result.option for result in results if result.vote_count == top]

    async def resolve_winner(
        self, meeting_id: UUID, option_id: UUID | None = None
    ) -> ScheduleOption:
        """Pick the option to confirm.

        Args:
            meeting_id: Meeting UUID
            option_id: Explicit choice among tied leaders (optional)

        Returns:
            The winning option

        Raises:
            AmbiguousWinner: No votes, a tie without an explicit choice, or
                an explicit choice that is not among the leaders
            NotFound: If option_id does not belong to the meeting
        """
        leaders = await self.leading_options(meeting_id)

        if option_id is not None:
            options = await self._repo.list_options(meeting_id)
            if not any(option.id == option_id for option in options):
                msg = f"Schedule option {option_id} not found in meeting {meeting_id}"
                raise NotFound(msg)
            for option in leaders:
                if option.id == option_id:
                    return option
            msg = f"Option {option_id} is not among the leading options"
            raise AmbiguousWinner(msg)

        if not leaders:
            msg = f"No schedule votes cast for meeting {meeting_id}"
            raise AmbiguousWinner(msg)
        if len(leaders) > 1:
            msg = (
                f"{len(leaders)} options tied with the most votes; "
                "choose one explicitly"
            )
            raise AmbiguousWinner(msg)
        return leaders[0]
