"""Pytest configuration and fixtures."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from governance.config import Settings
from governance.db.turso import TursoClient
from governance.events.bus import EventBus
from governance.events.store import EventStore
from governance.lifecycle.controller import MeetingLifecycleController
from governance.models.actor import Actor, Role
from governance.models.meeting import AgendaItemDraft, Meeting, ThresholdType
from governance.models.voting_unit import VotingUnit
from governance.otp.authenticator import OTPAuthenticator
from governance.protocol.assembler import ProtocolAssembler
from governance.protocol.schemas import OrganizationDetails
from governance.registry.voting_units import VotingUnitRegistry
from governance.repositories import (
    BuildingRepository,
    MeetingRepository,
    OTPRepository,
    ProtocolRepository,
    ScheduleRepository,
    VoteRepository,
)
from governance.schedule.poll import SchedulePoll
from governance.services.meeting_service import MeetingService
from governance.storage.local import LocalDocumentStore

BUILDING = "bld-1"


class FakeClock:
    """Deterministic clock: each reading is one second after the last."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class Harness:
    """Fully wired governance components over one temp database."""

    db: TursoClient
    clock: FakeClock
    settings: Settings
    meetings: MeetingRepository
    votes: VoteRepository
    schedule: ScheduleRepository
    buildings: BuildingRepository
    protocols: ProtocolRepository
    otp_codes: OTPRepository
    registry: VotingUnitRegistry
    poll: SchedulePoll
    otp: OTPAuthenticator
    store: LocalDocumentStore
    event_store: EventStore
    bus: EventBus
    controller: MeetingLifecycleController
    service: MeetingService


def manager(user_id: str = "mgr-1") -> Actor:
    return Actor(user_id=user_id, role=Role.MANAGER, name="Property Manager")


def resident(user_id: str, building_id: str = BUILDING, phone: str | None = None) -> Actor:
    return Actor(
        user_id=user_id,
        role=Role.RESIDENT,
        building_id=building_id,
        name=user_id.title(),
        phone=phone,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        app_env="development",
        org_name="Riverside Management",
        org_address="1 River Street",
        org_tax_id="12345678",
    )


@pytest.fixture
async def db_client(tmp_path: Path) -> AsyncIterator[TursoClient]:
    """Create a temp file database client for testing."""
    client = TursoClient(url=f"file:{tmp_path / 'test_governance.db'}")
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
async def harness(
    db_client: TursoClient, tmp_path: Path, clock: FakeClock, test_settings: Settings
) -> Harness:
    """Wire every component the way main.initialize_services does."""
    meetings = MeetingRepository(db_client)
    votes = VoteRepository(db_client)
    schedule = ScheduleRepository(db_client)
    buildings = BuildingRepository(db_client)
    protocols = ProtocolRepository(db_client)
    otp_codes = OTPRepository(db_client)
    for repo in (meetings, votes, schedule, buildings, protocols, otp_codes):
        await repo.initialize()

    event_store = EventStore(db_client)
    await event_store.init_schema()
    bus = EventBus(store=event_store)

    registry = VotingUnitRegistry(buildings)
    poll = SchedulePoll(schedule, registry)
    otp = OTPAuthenticator(otp_codes, test_settings, clock=clock)
    store = LocalDocumentStore(tmp_path / "protocols")
    controller = MeetingLifecycleController(
        meetings=meetings,
        votes=votes,
        schedule=schedule,
        protocols=protocols,
        poll=poll,
        registry=registry,
        assembler=ProtocolAssembler(),
        document_store=store,
        event_bus=bus,
        organization=OrganizationDetails(
            name=test_settings.org_name, address=test_settings.org_address
        ),
        clock=clock,
    )
    service = MeetingService(
        meetings=meetings,
        votes=votes,
        schedule=schedule,
        buildings=buildings,
        protocols=protocols,
        registry=registry,
        poll=poll,
        otp=otp,
        controller=controller,
        document_store=store,
        event_bus=bus,
        event_store=event_store,
        settings=test_settings,
        clock=clock,
    )
    return Harness(
        db=db_client,
        clock=clock,
        settings=test_settings,
        meetings=meetings,
        votes=votes,
        schedule=schedule,
        buildings=buildings,
        protocols=protocols,
        otp_codes=otp_codes,
        registry=registry,
        poll=poll,
        otp=otp,
        store=store,
        event_store=event_store,
        bus=bus,
        controller=controller,
        service=service,
    )


@pytest.fixture
async def building(harness: Harness) -> list[VotingUnit]:
    """Building with 1000 m2: three owned units and one without an owner.

    alice 400, bob 300 (two units: 200 + 100), carol 200, unowned 100.
    """
    units = [
        VotingUnit(building_id=BUILDING, unit_number="1", area_sqm=400.0,
                   owner_id="alice", owner_name="Alice Able"),
        VotingUnit(building_id=BUILDING, unit_number="2", area_sqm=200.0,
                   owner_id="bob", owner_name="Bob Baker"),
        VotingUnit(building_id=BUILDING, unit_number="3", area_sqm=100.0,
                   owner_id="bob", owner_name="Bob Baker"),
        VotingUnit(building_id=BUILDING, unit_number="4", area_sqm=200.0,
                   owner_id="carol", owner_name="Carol Cole"),
        VotingUnit(building_id=BUILDING, unit_number="5", area_sqm=100.0),
    ]
    return [await harness.registry.register_unit(unit) for unit in units]


@pytest.fixture
async def client(
    db_client: TursoClient, tmp_path: Path
) -> AsyncIterator[AsyncClient]:
    """Create async test client for FastAPI app with database."""
    from governance.main import app, initialize_services

    app.state.db = db_client
    await initialize_services(app, db_client, storage_root=tmp_path / "api_protocols")

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up app state
    for name in ("db", "event_store", "event_bus", "document_store", "meeting_service"):
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.fixture
def open_meeting(harness: Harness, building: list[VotingUnit]):
    """Factory: create a meeting and drive it to voting_open."""

    async def _open(
        *thresholds: ThresholdType, quorum_percent: float | None = None
    ) -> Meeting:
        service = harness.service
        actor = manager()
        agenda = [
            AgendaItemDraft(title=f"Resolution {i}", threshold=threshold)
            for i, threshold in enumerate(thresholds or (ThresholdType.SIMPLE_MAJORITY,), 1)
        ]
        meeting = await service.create_meeting(
            actor,
            building_id=BUILDING,
            agenda=agenda,
            schedule_options=[datetime(2026, 4, 10, 18, 0, tzinfo=UTC)],
            building_address="12 Elm Street",
            quorum_percent=quorum_percent,
        )
        await service.submit_for_moderation(meeting.id, actor)
        await service.approve_meeting(meeting.id, actor)
        options = await service.schedule_options(meeting.id, actor)
        await service.cast_schedule_vote(meeting.id, resident("alice"), options[0].option.id)
        await service.confirm_schedule(meeting.id, actor)
        return await service.open_voting(meeting.id, actor)

    return _open
