"""Meeting service: the facade the REST layer talks to.

Lifecycle transitions are delegated to MeetingLifecycleController. This
module owns meeting creation, vote ingestion, read models and the
supporting operations (one-time codes, voting units, building settings,
protocol download).
"""

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

import structlog

from governance.config import Settings, get_settings
from governance.db.turso import SqlStatement
from governance.errors import Forbidden, InvalidCode, NotFound, VotingClosed
from governance.events.bus import EventBus
from governance.events.store import EventStore
from governance.events.types import MeetingCreated, OTPIssued, ScheduleVoteCast, VoteCast
from governance.lifecycle.controller import Guard, MeetingLifecycleController, counted_votes
from governance.lifecycle.states import MeetingStatus
from governance.models.actor import Actor, Role
from governance.models.base import utc_now
from governance.models.meeting import (
    AgendaItem,
    AgendaItemDraft,
    Meeting,
    MeetingFormat,
    OrganizerType,
)
from governance.models.otp import IssuedCode, OTPPurpose, OTPRecord
from governance.models.protocol import MeetingProtocol
from governance.models.schedule import OptionResult, ScheduleOption, ScheduleVote
from governance.models.vote import VerificationMethod, VoteChoice, VoteRecord
from governance.models.voting_unit import BuildingMeetingSettings, VotingUnit
from governance.otp.authenticator import OTPAuthenticator
from governance.registry.voting_units import VoterWeight, VotingUnitRegistry
from governance.repositories.building_repo import BuildingRepository
from governance.repositories.meeting_repo import MeetingRepository
from governance.repositories.protocol_repo import ProtocolRepository
from governance.repositories.schedule_repo import ScheduleRepository
from governance.repositories.vote_repo import VoteRepository
from governance.schedule.poll import SchedulePoll
from governance.storage.base import DocumentStore
from governance.voting.quorum import QuorumResult, evaluate, has_quorum
from governance.voting.tally import TallyResult, tally

logger = structlog.get_logger()

PAPER_METHODS = frozenset({VerificationMethod.IN_PERSON, VerificationMethod.PROXY})


@dataclass
class EvidenceReport:
    """How the votes of a meeting were authenticated."""

    meeting_id: UUID
    total_votes: int
    unique_voters: int
    otp_verified: int
    revised_votes: int
    by_method: dict[str, int] = field(default_factory=dict)


@dataclass
class ProtocolDocument:
    """A stored protocol record together with its document bytes."""

    protocol: MeetingProtocol
    content: bytes


class MeetingService:
    """Entry point for every meeting operation exposed over HTTP."""

    def __init__(
        self,
        meetings: MeetingRepository,
        votes: VoteRepository,
        schedule: ScheduleRepository,
        buildings: BuildingRepository,
        protocols: ProtocolRepository,
        registry: VotingUnitRegistry,
        poll: SchedulePoll,
        otp: OTPAuthenticator,
        controller: MeetingLifecycleController,
        document_store: DocumentStore,
        event_bus: EventBus,
        event_store: EventStore | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the meeting service.

        Args:
            meetings: Meeting and agenda persistence
            votes: Vote record persistence
            schedule: Schedule poll persistence
            buildings: Voting units and building settings
            protocols: Generated protocol records
            registry: Voter eligibility and weights
            poll: Schedule poll logic
            otp: One-time code issue/verify
            controller: Lifecycle state machine
            document_store: Where protocol documents live
            event_bus: Bus for domain events
            event_store: Event store backing the audit trail
            settings: Application settings
            clock: Source of the current time
        """
        self._meetings = meetings
        self._votes = votes
        self._schedule = schedule
        self._buildings = buildings
        self._protocols = protocols
        self._registry = registry
        self._poll = poll
        self._otp = otp
        self._controller = controller
        self._store = document_store
        self._bus = event_bus
        self._event_store = event_store
        self._settings = settings or get_settings()
        self._clock = clock

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_management(actor: Actor, action: str) -> None:
        if not actor.is_management:
            msg = f"{actor.role.value} may not {action}"
            raise Forbidden(msg)

    @staticmethod
    def _require_building_access(actor: Actor, building_id: str) -> None:
        if actor.is_management or actor.building_id == building_id:
            return
        msg = f"{actor.user_id} has no access to building {building_id}"
        raise Forbidden(msg)

    async def _load_visible(self, meeting_id: UUID, actor: Actor) -> Meeting:
        meeting = await self._controller.load(meeting_id)
        self._require_building_access(actor, meeting.building_id)
        return meeting

    # ------------------------------------------------------------------
    # Creation and read models
    # ------------------------------------------------------------------

    async def create_meeting(
        self,
        actor: Actor,
        building_id: str,
        agenda: list[AgendaItemDraft],
        schedule_options: list[datetime],
        building_address: str = "",
        meeting_format: MeetingFormat = MeetingFormat.ONLINE,
        description: str | None = None,
        location: str | None = None,
        quorum_percent: float | None = None,
    ) -> Meeting:
        """Create a draft meeting with its agenda and candidate dates.

        Args:
            actor: Organizer
            building_id: Building the meeting is held for
            agenda: Agenda items in order
            schedule_options: Candidate dates for the schedule poll (at least one)
            building_address: Address printed on the protocol
            meeting_format: online, offline or hybrid
            description: Free text shown to owners
            location: Where an in-person meeting takes place
            quorum_percent: Override of the building's default quorum

        Returns:
            The stored draft, numbered

        Raises:
            Forbidden: Resident outside the building, or resident
                initiative disabled for the building
            ValueError: No candidate date, so the poll could never be confirmed
        """
        building_settings = await self.get_building_settings(building_id)
        if not actor.is_management:
            if actor.role != Role.RESIDENT or actor.building_id != building_id:
                msg = f"{actor.user_id} may not create meetings for building {building_id}"
                raise Forbidden(msg)
            if not building_settings.allow_resident_initiative:
                msg = f"Building {building_id} does not allow resident initiative"
                raise Forbidden(msg)
        if not schedule_options:
            msg = "A meeting needs at least one schedule option"
            raise ValueError(msg)

        meeting = Meeting(
            building_id=building_id,
            building_address=building_address,
            organizer_type=(
                OrganizerType.MANAGEMENT if actor.is_management else OrganizerType.RESIDENT
            ),
            organizer_id=actor.user_id,
            organizer_name=actor.name,
            format=meeting_format,
            description=description,
            location=location,
            quorum_percent=quorum_percent or building_settings.default_quorum_percent,
        )
        meeting.agenda_items = [
            AgendaItem(
                meeting_id=meeting.id,
                position=position,
                title=draft.title,
                description=draft.description,
                threshold=draft.threshold,
            )
            for position, draft in enumerate(agenda, start=1)
        ]
        options = [
            ScheduleOption(meeting_id=meeting.id, date_time=date_time)
            for date_time in sorted(set(schedule_options))
        ]

        stored = await self._meetings.create(
            meeting,
            extra_statements=[
                self._schedule.option_insert_statement(option) for option in options
            ],
        )
        logger.info(
            "meeting created",
            meeting_id=str(stored.id),
            number=stored.number,
            building_id=building_id,
            agenda_items=len(stored.agenda_items),
            schedule_options=len(options),
        )
        await self._bus.publish(
            MeetingCreated(
                aggregate_id=stored.id,
                number=stored.number,
                building_id=building_id,
                organizer_id=actor.user_id,
                agenda_item_count=len(stored.agenda_items),
            )
        )
        return stored

    async def get_meeting(self, meeting_id: UUID, actor: Actor) -> Meeting:
        return await self._load_visible(meeting_id, actor)

    async def list_meetings(
        self, building_id: str, actor: Actor, include_archived: bool = False
    ) -> list[Meeting]:
        """Meetings of a building, newest first."""
        self._require_building_access(actor, building_id)
        return await self._meetings.list_by_building(building_id, include_archived)

    async def schedule_options(self, meeting_id: UUID, actor: Actor) -> list[OptionResult]:
        """Candidate dates with their poll counts."""
        meeting = await self._load_visible(meeting_id, actor)
        return await self._poll.results(meeting.id)

    # ------------------------------------------------------------------
    # Lifecycle (delegated)
    # ------------------------------------------------------------------

    async def submit_for_moderation(self, meeting_id: UUID, actor: Actor) -> Meeting:
        return await self._controller.submit_for_moderation(meeting_id, actor)

    async def approve_meeting(
        self, meeting_id: UUID, actor: Actor, comment: str | None = None
    ) -> Meeting:
        return await self._controller.approve(meeting_id, actor, comment)

    async def reject_meeting(self, meeting_id: UUID, actor: Actor, reason: str) -> Meeting:
        return await self._controller.reject(meeting_id, actor, reason)

    async def confirm_schedule(
        self, meeting_id: UUID, actor: Actor, option_id: UUID | None = None
    ) -> Meeting:
        return await self._controller.confirm_schedule(meeting_id, actor, option_id)

    async def open_voting(self, meeting_id: UUID, actor: Actor) -> Meeting:
        return await self._controller.open_voting(meeting_id, actor)

    async def close_voting(self, meeting_id: UUID, actor: Actor) -> Meeting:
        return await self._controller.close_voting(meeting_id, actor)

    async def publish_results(self, meeting_id: UUID, actor: Actor) -> Meeting:
        return await self._controller.publish_results(meeting_id, actor)

    async def generate_protocol(self, meeting_id: UUID, actor: Actor) -> MeetingProtocol:
        return await self._controller.generate_protocol(meeting_id, actor)

    async def approve_protocol(self, meeting_id: UUID, actor: Actor) -> Meeting:
        return await self._controller.approve_protocol(meeting_id, actor)

    async def cancel_meeting(
        self, meeting_id: UUID, actor: Actor, reason: str | None = None
    ) -> Meeting:
        return await self._controller.cancel(meeting_id, actor, reason)

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    async def _check_code(
        self,
        actor: Actor,
        building_id: str,
        purpose: OTPPurpose,
        otp_code: str | None,
    ) -> OTPRecord | None:
        """Check the actor's code when given or required by the building.

        The code is not consumed here. It is redeemed in the same
        transaction as the write it authorizes.

        Returns:
            The checked code record, or None if no code was given
        """
        building_settings = await self.get_building_settings(building_id)
        if otp_code is None:
            if building_settings.require_otp_for_votes:
                msg = "A one-time code is required to vote in this building"
                raise InvalidCode(msg)
            return None
        return await self._otp.check(actor.otp_target, purpose, otp_code)

    def _redeem(
        self, code: OTPRecord | None, now: datetime
    ) -> tuple[Guard | None, Callable[[Guard], list[SqlStatement]]]:
        """Write guard and follow-ups that consume a checked code with a vote."""
        if code is None:
            return None, lambda written: []
        return (
            self._otp.usable_guard(code, now),
            lambda written: [self._otp.consume_statement(code, now, written)],
        )

    async def cast_vote(
        self,
        meeting_id: UUID,
        actor: Actor,
        agenda_item_id: UUID,
        choice: VoteChoice,
        comment: str | None = None,
        otp_code: str | None = None,
    ) -> VoteRecord:
        """Cast or change the actor's vote on an agenda item.

        A given code is consumed only if the vote is recorded.

        Args:
            meeting_id: Meeting UUID
            actor: Voting owner
            agenda_item_id: Item voted on
            choice: for, against or abstain
            comment: Optional remark printed in the protocol
            otp_code: One-time code authenticating a remote vote

        Returns:
            The stored vote (revision > 1 if it replaced an earlier one)

        Raises:
            VotingClosed: Meeting not in voting_open
            NotFound: Unknown meeting or agenda item
            IneligibleVoter: Actor owns no unit in the building
            InvalidCode / ExpiredCode / AlreadyUsed: Code rejected
        """
        meeting = await self._controller.load(meeting_id)
        self._check_votable(meeting, agenda_item_id)
        voter = await self._registry.voter_weight(actor.user_id, meeting.building_id)
        code = await self._check_code(
            actor, meeting.building_id, OTPPurpose.AGENDA_VOTE, otp_code
        )
        return await self._record_vote(
            meeting,
            voter=voter,
            agenda_item_id=agenda_item_id,
            choice=choice,
            comment=comment,
            method=VerificationMethod.OTP if code is not None else VerificationMethod.LOGIN,
            code=code,
        )

    async def record_paper_vote(
        self,
        meeting_id: UUID,
        actor: Actor,
        voter_id: str,
        agenda_item_id: UUID,
        choice: VoteChoice,
        method: VerificationMethod = VerificationMethod.IN_PERSON,
        comment: str | None = None,
    ) -> VoteRecord:
        """Record a vote cast on paper or by proxy, entered by management."""
        self._require_management(actor, "record paper votes")
        if method not in PAPER_METHODS:
            msg = f"{method.value} is not a paper verification method"
            raise ValueError(msg)
        meeting = await self._controller.load(meeting_id)
        self._check_votable(meeting, agenda_item_id)
        voter = await self._registry.voter_weight(voter_id, meeting.building_id)
        return await self._record_vote(
            meeting,
            voter=voter,
            agenda_item_id=agenda_item_id,
            choice=choice,
            comment=comment,
            method=method,
        )

    @staticmethod
    def _check_votable(meeting: Meeting, agenda_item_id: UUID) -> None:
        if meeting.status != MeetingStatus.VOTING_OPEN:
            msg = f"Meeting {meeting.id} is not open for voting ({meeting.status.value})"
            raise VotingClosed(msg)
        if meeting.agenda_item(agenda_item_id) is None:
            msg = f"Agenda item {agenda_item_id} not found in meeting {meeting.id}"
            raise NotFound(msg)

    async def _record_vote(
        self,
        meeting: Meeting,
        voter: VoterWeight,
        agenda_item_id: UUID,
        choice: VoteChoice,
        comment: str | None,
        method: VerificationMethod,
        code: OTPRecord | None = None,
    ) -> VoteRecord:
        unit = voter.primary_unit
        now = self._clock()
        vote = VoteRecord(
            meeting_id=meeting.id,
            agenda_item_id=agenda_item_id,
            voter_id=voter.voter_id,
            voter_name=voter.voter_name,
            unit_id=unit.id,
            unit_number=unit.unit_number,
            choice=choice,
            weight=voter.weight,
            verification_method=method,
            otp_verified=code is not None,
            comment=comment,
            voted_at=now,
        )
        vote.vote_hash = vote.compute_hash()

        guard, redeem = self._redeem(code, now)
        written = await self._votes.record(
            vote,
            [
                self._meetings.participation_statement(meeting.id),
                *redeem(self._votes.written_guard(vote)),
            ],
            guard,
        )
        if not written:
            if code is not None:
                await self._otp.ensure_usable(code, now)
            msg = f"Meeting {meeting.id} closed before the vote was recorded"
            raise VotingClosed(msg)

        stored = await self._votes.get(voter.voter_id, agenda_item_id)
        if stored is None:
            msg = f"Vote of {voter.voter_id} on {agenda_item_id} missing after write"
            raise RuntimeError(msg)

        logger.info(
            "vote recorded",
            meeting_id=str(meeting.id),
            agenda_item_id=str(agenda_item_id),
            voter_id=voter.voter_id,
            method=method.value,
            revision=stored.revision,
        )
        await self._bus.publish(
            VoteCast(
                aggregate_id=meeting.id,
                agenda_item_id=agenda_item_id,
                voter_id=voter.voter_id,
                choice=stored.choice.value,
                weight=stored.weight,
                revision=stored.revision,
                vote_hash=stored.vote_hash,
            )
        )
        return stored

    async def cast_schedule_vote(
        self,
        meeting_id: UUID,
        actor: Actor,
        option_id: UUID,
        otp_code: str | None = None,
    ) -> ScheduleVote:
        """Vote for a candidate date, moving any earlier poll vote.

        A given code is consumed only if the poll vote is recorded.
        """
        meeting = await self._controller.load(meeting_id)
        if meeting.status != MeetingStatus.SCHEDULE_POLL_OPEN:
            msg = f"Schedule poll of meeting {meeting.id} is not open"
            raise VotingClosed(msg)
        code = await self._check_code(
            actor, meeting.building_id, OTPPurpose.SCHEDULE_VOTE, otp_code
        )
        now = self._clock()
        guard, redeem = self._redeem(code, now)
        try:
            vote = await self._poll.cast(
                meeting, actor.user_id, option_id, now, guard=guard, follow_ups=redeem
            )
        except VotingClosed:
            if code is not None:
                await self._otp.ensure_usable(code, now)
            raise
        await self._bus.publish(
            ScheduleVoteCast(
                aggregate_id=meeting.id,
                option_id=option_id,
                voter_id=actor.user_id,
            )
        )
        return vote

    async def get_my_votes(self, meeting_id: UUID, actor: Actor) -> list[VoteRecord]:
        meeting = await self._load_visible(meeting_id, actor)
        return await self._votes.list_for_voter(meeting.id, actor.user_id)

    async def get_vote_records(self, meeting_id: UUID, actor: Actor) -> list[VoteRecord]:
        """Every vote of a meeting (management only)."""
        self._require_management(actor, "view all vote records")
        meeting = await self._controller.load(meeting_id)
        return await self._votes.list_for_meeting(meeting.id)

    async def evidence_report(self, meeting_id: UUID, actor: Actor) -> EvidenceReport:
        """Summarize how the counted votes of a meeting were authenticated."""
        self._require_management(actor, "view vote evidence")
        meeting = await self._controller.load(meeting_id)
        votes = counted_votes(meeting, await self._votes.list_for_meeting(meeting.id))
        methods = Counter(vote.verification_method.value for vote in votes)
        return EvidenceReport(
            meeting_id=meeting.id,
            total_votes=len(votes),
            unique_voters=len({vote.voter_id for vote in votes}),
            otp_verified=sum(1 for vote in votes if vote.otp_verified),
            revised_votes=sum(1 for vote in votes if vote.revision > 1),
            by_method=dict(sorted(methods.items())),
        )

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def calculate_agenda_item_result(
        self, meeting_id: UUID, agenda_item_id: UUID, actor: Actor
    ) -> TallyResult:
        """Tally of one agenda item.

        Published items return the stored outcome. Otherwise the item is
        tallied live from the current votes.
        """
        meeting = await self._load_visible(meeting_id, actor)
        item = meeting.agenda_item(agenda_item_id)
        if item is None:
            msg = f"Agenda item {agenda_item_id} not found in meeting {meeting.id}"
            raise NotFound(msg)
        if item.has_outcome:
            return TallyResult.from_item(item, meeting.total_area)

        total_area = meeting.total_area
        if meeting.voting_opened_at is None:
            total_area = await self._registry.eligible_area(meeting.building_id)
        votes = counted_votes(meeting, await self._votes.list_for_meeting(meeting.id))
        return tally(item, votes, total_area)

    async def calculate_meeting_quorum(self, meeting_id: UUID, actor: Actor) -> QuorumResult:
        """Quorum of a meeting.

        Before voting opens the building's current totals stand in for the
        frozen quorum base.
        """
        meeting = await self._load_visible(meeting_id, actor)
        if meeting.voting_opened_at is not None:
            return evaluate(meeting)

        totals = await self._registry.totals(meeting.building_id)
        return QuorumResult(
            participated_area=0.0,
            total_area=totals.total_area,
            percent=0.0,
            quorum_percent=meeting.quorum_percent,
            quorum_reached=has_quorum(0.0, totals.total_area, meeting.quorum_percent),
            participant_count=0,
            total_eligible_count=totals.eligible_owner_count,
        )

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    async def get_protocol(self, meeting_id: UUID, actor: Actor) -> MeetingProtocol:
        meeting = await self._load_visible(meeting_id, actor)
        protocol = await self._protocols.get_for_meeting(meeting.id)
        if protocol is None:
            msg = f"Meeting {meeting.id} has no protocol"
            raise NotFound(msg)
        return protocol

    async def get_protocol_document(
        self, meeting_id: UUID, actor: Actor
    ) -> ProtocolDocument:
        """The stored protocol and its .docx bytes."""
        protocol = await self.get_protocol(meeting_id, actor)
        try:
            content = await self._store.get(protocol.storage_key)
        except FileNotFoundError as e:
            msg = f"Protocol document {protocol.storage_key} not found in storage"
            raise NotFound(msg) from e
        return ProtocolDocument(protocol=protocol, content=content)

    async def audit_trail(self, meeting_id: UUID, actor: Actor) -> list[dict]:
        """Stored events of a meeting in the order they happened."""
        self._require_management(actor, "view the audit trail")
        meeting = await self._controller.load(meeting_id)
        if self._event_store is None:
            return []
        return [
            event
            async for event in self._event_store.get_events_for_aggregate(meeting.id)
        ]

    # ------------------------------------------------------------------
    # One-time codes
    # ------------------------------------------------------------------

    async def request_otp(self, actor: Actor, purpose: OTPPurpose) -> IssuedCode:
        """Issue a code bound to the actor's phone (or user reference)."""
        issued = await self._otp.issue(actor.otp_target, purpose)
        await self._bus.publish(
            OTPIssued(
                target=actor.otp_target,
                purpose=purpose.value,
                expires_at=issued.expires_at,
            )
        )
        return issued

    async def verify_otp(self, actor: Actor, purpose: OTPPurpose, code: str) -> OTPRecord:
        return await self._otp.verify(actor.otp_target, purpose, code)

    # ------------------------------------------------------------------
    # Buildings
    # ------------------------------------------------------------------

    async def register_unit(self, actor: Actor, unit: VotingUnit) -> VotingUnit:
        self._require_management(actor, "register voting units")
        return await self._registry.register_unit(unit)

    async def update_unit(
        self,
        actor: Actor,
        building_id: str,
        unit_number: str,
        *,
        area_sqm: float | None = None,
        owner_id: str | None = None,
        owner_name: str | None = None,
        clear_owner: bool = False,
    ) -> VotingUnit:
        self._require_management(actor, "update voting units")
        return await self._registry.update_unit(
            building_id,
            unit_number,
            area_sqm=area_sqm,
            owner_id=owner_id,
            owner_name=owner_name,
            clear_owner=clear_owner,
        )

    async def list_units(self, actor: Actor, building_id: str) -> list[VotingUnit]:
        self._require_building_access(actor, building_id)
        return await self._registry.units_for_building(building_id)

    async def get_building_settings(self, building_id: str) -> BuildingMeetingSettings:
        """Stored settings of a building, or the configured defaults."""
        stored = await self._buildings.get_settings(building_id)
        if stored is not None:
            return stored
        return BuildingMeetingSettings(
            building_id=building_id,
            default_quorum_percent=self._settings.default_quorum_percent,
        )

    async def update_building_settings(
        self, actor: Actor, building_settings: BuildingMeetingSettings
    ) -> BuildingMeetingSettings:
        self._require_management(actor, "change building settings")
        await self._buildings.save_settings(building_settings)
        logger.info(
            "building settings updated",
            building_id=building_settings.building_id,
            quorum_percent=building_settings.default_quorum_percent,
            require_otp=building_settings.require_otp_for_votes,
        )
        return building_settings
