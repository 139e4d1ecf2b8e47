"""Meeting lifecycle controller.

The only component that changes a meeting's status. Every operation:
1. loads the meeting and checks the actor's role,
2. validates the move against the transition table,
3. applies it as a compare-and-set on status (plus any guarded
   follow-up writes in the same transaction),
4. publishes a MeetingStatusChanged event.

A lost compare-and-set surfaces as InvalidTransition. Nothing is retried.
"""

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from governance.db.turso import SqlStatement
from governance.errors import AmbiguousWinner, Forbidden, InvalidTransition, NotFound
from governance.events.bus import EventBus
from governance.events.types import (
    MeetingStatusChanged,
    ProtocolGenerated,
    ResultsPublished,
)
from governance.lifecycle.states import MeetingStatus, Operation, target_state
from governance.models.actor import Actor
from governance.models.base import utc_now
from governance.models.meeting import Decision, Meeting
from governance.models.protocol import MeetingProtocol
from governance.models.vote import VoteRecord
from governance.protocol.assembler import ProtocolAssembler
from governance.protocol.schemas import AssembledProtocol, OrganizationDetails
from governance.protocol.snapshot import build_snapshot
from governance.registry.voting_units import VotingUnitRegistry
from governance.repositories.meeting_repo import MeetingRepository
from governance.repositories.protocol_repo import ProtocolRepository
from governance.repositories.schedule_repo import ScheduleRepository
from governance.repositories.vote_repo import VoteRepository
from governance.schedule.poll import SchedulePoll
from governance.storage.base import DocumentStore
from governance.voting.quorum import has_quorum, participation_percent
from governance.voting.tally import tally

logger = structlog.get_logger()

# Operations a resident may perform on a draft they organized
_RESIDENT_OPERATIONS = frozenset({Operation.SUBMIT_FOR_MODERATION, Operation.CANCEL})

Guard = tuple[str, list[Any]]


def counted_votes(meeting: Meeting, votes: Iterable[VoteRecord]) -> list[VoteRecord]:
    """Votes that belong in the published tally.

    Anything timestamped after voting closed is left out.
    """
    if meeting.voting_closed_at is None:
        return list(votes)
    return [vote for vote in votes if vote.voted_at <= meeting.voting_closed_at]


def participation(votes: Iterable[VoteRecord]) -> tuple[float, int]:
    """Participating area and distinct voter count of a vote set.

    A voter counts once, with the largest weight they voted with.
    """
    weights: dict[str, float] = {}
    for vote in votes:
        weights[vote.voter_id] = max(weights.get(vote.voter_id, 0.0), vote.weight)
    return sum(weights.values()), len(weights)


class MeetingLifecycleController:
    """State machine owning a meeting's status."""

    def __init__(
        self,
        meetings: MeetingRepository,
        votes: VoteRepository,
        schedule: ScheduleRepository,
        protocols: ProtocolRepository,
        poll: SchedulePoll,
        registry: VotingUnitRegistry,
        assembler: ProtocolAssembler,
        document_store: DocumentStore,
        event_bus: EventBus,
        organization: OrganizationDetails,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._meetings = meetings
        self._votes = votes
        self._schedule = schedule
        self._protocols = protocols
        self._poll = poll
        self._registry = registry
        self._assembler = assembler
        self._store = document_store
        self._bus = event_bus
        self._organization = organization
        self._clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def load(self, meeting_id: UUID) -> Meeting:
        meeting = await self._meetings.get(meeting_id)
        if meeting is None:
            msg = f"Meeting {meeting_id} not found"
            raise NotFound(msg)
        return meeting

    @staticmethod
    def authorize(actor: Actor, meeting: Meeting, operation: Operation) -> None:
        """Check the actor may perform operation on meeting.

        Management may perform every transition. A resident may only
        submit or cancel a draft they organized.

        Raises:
            Forbidden: If the actor's role is insufficient
        """
        if actor.is_management:
            return
        if (
            operation in _RESIDENT_OPERATIONS
            and meeting.organizer_id == actor.user_id
            and meeting.status == MeetingStatus.DRAFT
        ):
            return
        msg = f"{actor.role.value} may not {operation.value} meeting {meeting.id}"
        raise Forbidden(msg)

    @staticmethod
    def require(meeting: Meeting, operation: Operation) -> MeetingStatus:
        """Target state of operation from the meeting's current state.

        Raises:
            InvalidTransition: If the move is not in the transition table
        """
        target = target_state(meeting.status, operation)
        if target is None:
            msg = f"Cannot {operation.value} a meeting in status {meeting.status.value}"
            raise InvalidTransition(msg)
        return target

    async def _transition(
        self,
        meeting: Meeting,
        operation: Operation,
        actor: Actor,
        fields: dict[str, Any] | None = None,
        follow_ups: Callable[[Guard], list[SqlStatement]] | None = None,
        condition: Guard | None = None,
    ) -> Meeting:
        target = self.require(meeting, operation)
        now = self._clock()
        statement = self._meetings.transition_statement(
            meeting.id, meeting.status, target, now, fields, condition
        )
        guard = self._meetings.status_guard(meeting.id, target, now)
        extra = follow_ups(guard) if follow_ups else []

        if not await self._meetings.run_transition(statement, extra):
            logger.info(
                "transition lost",
                meeting_id=str(meeting.id),
                operation=operation.value,
                expected=meeting.status.value,
            )
            msg = (
                f"Meeting {meeting.id} left status {meeting.status.value} "
                f"before {operation.value} completed"
            )
            raise InvalidTransition(msg)

        logger.info(
            "meeting transitioned",
            meeting_id=str(meeting.id),
            operation=operation.value,
            from_status=meeting.status.value,
            to_status=target.value,
            actor_id=actor.user_id,
        )
        await self._bus.publish(
            MeetingStatusChanged(
                aggregate_id=meeting.id,
                operation=operation.value,
                from_status=meeting.status.value,
                to_status=target.value,
                actor_id=actor.user_id,
                timestamp=now,
            )
        )
        return await self.load(meeting.id)

    async def _prepare(
        self, meeting_id: UUID, actor: Actor, operation: Operation
    ) -> Meeting:
        meeting = await self.load(meeting_id)
        self.authorize(actor, meeting, operation)
        self.require(meeting, operation)
        return meeting

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    async def submit_for_moderation(self, meeting_id: UUID, actor: Actor) -> Meeting:
        """draft → pending_moderation."""
        meeting = await self._prepare(meeting_id, actor, Operation.SUBMIT_FOR_MODERATION)
        return await self._transition(meeting, Operation.SUBMIT_FOR_MODERATION, actor)

    async def approve(
        self, meeting_id: UUID, actor: Actor, comment: str | None = None
    ) -> Meeting:
        """pending_moderation → schedule_poll_open."""
        meeting = await self._prepare(meeting_id, actor, Operation.APPROVE)
        return await self._transition(
            meeting,
            Operation.APPROVE,
            actor,
            fields={"moderation_comment": comment, "moderated_at": self._clock()},
        )

    async def reject(self, meeting_id: UUID, actor: Actor, reason: str) -> Meeting:
        """pending_moderation → rejected (archived)."""
        meeting = await self._prepare(meeting_id, actor, Operation.REJECT)
        return await self._transition(
            meeting,
            Operation.REJECT,
            actor,
            fields={"moderation_comment": reason, "archived": True},
        )

    async def cancel(
        self, meeting_id: UUID, actor: Actor, reason: str | None = None
    ) -> Meeting:
        """Any state before voting_closed → cancelled (archived)."""
        meeting = await self._prepare(meeting_id, actor, Operation.CANCEL)
        return await self._transition(
            meeting,
            Operation.CANCEL,
            actor,
            fields={"cancellation_reason": reason, "archived": True},
        )

    # ------------------------------------------------------------------
    # Scheduling and voting window
    # ------------------------------------------------------------------

    async def confirm_schedule(
        self, meeting_id: UUID, actor: Actor, option_id: UUID | None = None
    ) -> Meeting:
        """schedule_poll_open → schedule_confirmed.

        Args:
            meeting_id: Meeting UUID
            actor: Acting user
            option_id: Explicit choice among tied leading options

        Raises:
            AmbiguousWinner: No unique leader and no valid explicit choice,
                or a poll vote arrived after the winner was picked
        """
        meeting = await self._prepare(meeting_id, actor, Operation.CONFIRM_SCHEDULE)
        unchanged = await self._schedule.unchanged_guard(meeting.id)
        winner = await self._poll.resolve_winner(meeting.id, option_id)
        try:
            return await self._transition(
                meeting,
                Operation.CONFIRM_SCHEDULE,
                actor,
                fields={
                    "confirmed_date_time": winner.date_time,
                    "confirmed_option_id": winner.id,
                },
                follow_ups=lambda guard: [
                    self._schedule.confirm_statement(winner.id, guard)
                ],
                condition=unchanged,
            )
        except InvalidTransition:
            current = await self.load(meeting.id)
            if current.status != MeetingStatus.SCHEDULE_POLL_OPEN:
                raise
            msg = f"Schedule poll of meeting {meeting.id} changed while confirming"
            raise AmbiguousWinner(msg) from None

    async def open_voting(self, meeting_id: UUID, actor: Actor) -> Meeting:
        """schedule_confirmed → voting_open; freezes the quorum base."""
        meeting = await self._prepare(meeting_id, actor, Operation.OPEN_VOTING)
        totals = await self._registry.totals(meeting.building_id)
        logger.info(
            "quorum base frozen",
            meeting_id=str(meeting.id),
            total_area=totals.total_area,
            total_eligible_count=totals.eligible_owner_count,
        )
        return await self._transition(
            meeting,
            Operation.OPEN_VOTING,
            actor,
            fields={
                "total_area": totals.total_area,
                "total_eligible_count": totals.eligible_owner_count,
            },
        )

    async def close_voting(self, meeting_id: UUID, actor: Actor) -> Meeting:
        """voting_open → voting_closed; later votes fail with VotingClosed."""
        meeting = await self._prepare(meeting_id, actor, Operation.CLOSE_VOTING)
        return await self._transition(meeting, Operation.CLOSE_VOTING, actor)

    # ------------------------------------------------------------------
    # Results and protocol
    # ------------------------------------------------------------------

    async def publish_results(self, meeting_id: UUID, actor: Actor) -> Meeting:
        """voting_closed → results_published.

        Tallies every agenda item, evaluates quorum and writes both
        atomically with the transition. Outcomes are written once.
        """
        meeting = await self._prepare(meeting_id, actor, Operation.PUBLISH_RESULTS)
        votes = counted_votes(meeting, await self._votes.list_for_meeting(meeting.id))

        voted_area, participant_count = participation(votes)
        voted_area = min(voted_area, meeting.total_area)
        quorum_reached = has_quorum(voted_area, meeting.total_area, meeting.quorum_percent)

        outcomes = []
        for item in meeting.agenda_items:
            result = tally(item, votes, meeting.total_area)
            decision = result.decision(quorum_reached)
            outcomes.append((item, result, decision))

        def follow_ups(guard: Guard) -> list[SqlStatement]:
            return [
                self._meetings.outcome_statement(
                    item, result, decision == Decision.APPROVED, decision.value, guard
                )
                for item, result, decision in outcomes
            ]

        published = await self._transition(
            meeting,
            Operation.PUBLISH_RESULTS,
            actor,
            fields={
                "voted_area": voted_area,
                "participant_count": participant_count,
                "quorum_reached": quorum_reached,
                "participation_percent": participation_percent(
                    voted_area, meeting.total_area
                ),
            },
            follow_ups=follow_ups,
        )
        await self._bus.publish(
            ResultsPublished(
                aggregate_id=meeting.id,
                quorum_reached=quorum_reached,
                participation_percent=published.participation_percent,
                approved_count=sum(1 for *_, d in outcomes if d == Decision.APPROVED),
                rejected_count=sum(1 for *_, d in outcomes if d != Decision.APPROVED),
            )
        )
        return published

    async def assemble(self, meeting: Meeting) -> AssembledProtocol:
        """Render the protocol of a meeting from its stored state."""
        votes = counted_votes(meeting, await self._votes.list_for_meeting(meeting.id))
        snapshot = build_snapshot(meeting, votes, self._organization)
        return self._assembler.assemble(snapshot)

    async def generate_protocol(
        self, meeting_id: UUID, actor: Actor
    ) -> MeetingProtocol:
        """results_published → protocol_generated.

        At protocol_generated the protocol is re-assembled and the stored
        record returned unchanged when the hash matches.

        Raises:
            InvalidTransition: Wrong state, lost race, or a re-assembly
                whose hash differs from the stored protocol
        """
        meeting = await self.load(meeting_id)
        self.authorize(actor, meeting, Operation.GENERATE_PROTOCOL)

        if meeting.status == MeetingStatus.PROTOCOL_GENERATED:
            return await self._verify_existing(meeting)

        self.require(meeting, Operation.GENERATE_PROTOCOL)
        assembled = await self.assemble(meeting)
        key = f"{meeting.id}/{assembled.content_hash}.docx"
        stored = await self._store.put(key, assembled.document_bytes)

        now = self._clock()
        protocol = MeetingProtocol(
            meeting_id=meeting.id,
            number=assembled.protocol_number,
            snapshot_digest=assembled.snapshot_digest,
            content_hash=assembled.content_hash,
            storage_key=stored.key,
            size_bytes=stored.size_bytes,
            generated_at=now,
        )
        try:
            await self._transition(
                meeting,
                Operation.GENERATE_PROTOCOL,
                actor,
                follow_ups=lambda guard: [self._protocols.insert_statement(protocol, guard)],
            )
        except Exception:
            await self._discard(meeting.id, key)
            raise

        stored_protocol = await self._protocols.get_for_meeting(meeting.id)
        if stored_protocol is None:
            msg = f"Protocol of meeting {meeting.id} missing after generation"
            raise RuntimeError(msg)

        await self._bus.publish(
            ProtocolGenerated(
                aggregate_id=meeting.id,
                protocol_number=stored_protocol.number,
                content_hash=stored_protocol.content_hash,
                storage_key=stored_protocol.storage_key,
                generated_at=stored_protocol.generated_at,
            )
        )
        return stored_protocol

    async def _verify_existing(self, meeting: Meeting) -> MeetingProtocol:
        existing = await self._protocols.get_for_meeting(meeting.id)
        if existing is None:
            msg = f"Meeting {meeting.id} has no stored protocol"
            raise NotFound(msg)
        assembled = await self.assemble(meeting)
        if assembled.content_hash != existing.content_hash:
            logger.warning(
                "protocol hash mismatch",
                meeting_id=str(meeting.id),
                stored=existing.content_hash,
                reassembled=assembled.content_hash,
            )
            msg = f"Protocol of meeting {meeting.id} no longer matches its snapshot"
            raise InvalidTransition(msg)
        return existing

    async def _discard(self, meeting_id: UUID, key: str) -> None:
        """Remove a stored document no protocol record refers to."""
        existing = await self._protocols.get_for_meeting(meeting_id)
        if existing is not None and existing.storage_key == key:
            return
        await self._store.delete(key)

    async def approve_protocol(self, meeting_id: UUID, actor: Actor) -> Meeting:
        """protocol_generated → protocol_approved (archived)."""
        meeting = await self._prepare(meeting_id, actor, Operation.APPROVE_PROTOCOL)
        now = self._clock()
        return await self._transition(
            meeting,
            Operation.APPROVE_PROTOCOL,
            actor,
            fields={"archived": True},
            follow_ups=lambda guard: [
                self._protocols.approval_statement(meeting.id, actor.user_id, now, guard)
            ],
        )
