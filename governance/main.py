"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from governance.api.deps import governance_error_handler
from governance.api.router import api_router
from governance.config import settings
from governance.db.turso import TursoClient
from governance.errors import GovernanceError
from governance.events.bus import EventBus
from governance.events.store import EventStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def initialize_services(
    app: FastAPI,
    db: TursoClient,
    storage_root: str | Path | None = None,
) -> None:
    """Create repositories, domain components and the MeetingService.

    Everything is stored on app.state. Repository tables are created if
    missing.

    Args:
        app: Application to wire
        db: Connected database client
        storage_root: Directory for protocol documents (defaults to settings)
    """
    from governance.lifecycle.controller import MeetingLifecycleController
    from governance.otp.authenticator import OTPAuthenticator
    from governance.protocol.assembler import ProtocolAssembler
    from governance.protocol.snapshot import organization_from_settings
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

    # Event store and bus
    event_store = EventStore(db)
    await event_store.init_schema()
    event_bus = EventBus(store=event_store)
    app.state.event_store = event_store
    app.state.event_bus = event_bus
    logger.info("Event store and bus initialized")

    # Repositories
    meetings = MeetingRepository(db)
    votes = VoteRepository(db)
    schedule = ScheduleRepository(db)
    buildings = BuildingRepository(db)
    protocols = ProtocolRepository(db)
    otp_codes = OTPRepository(db)
    for repo in (meetings, votes, schedule, buildings, protocols, otp_codes):
        await repo.initialize()
    logger.info("Repositories initialized")

    # Domain components
    registry = VotingUnitRegistry(buildings)
    poll = SchedulePoll(schedule, registry)
    document_store = LocalDocumentStore(storage_root or settings.protocol_storage_dir)
    app.state.document_store = document_store

    controller = MeetingLifecycleController(
        meetings=meetings,
        votes=votes,
        schedule=schedule,
        protocols=protocols,
        poll=poll,
        registry=registry,
        assembler=ProtocolAssembler(),
        document_store=document_store,
        event_bus=event_bus,
        organization=organization_from_settings(settings),
    )
    app.state.meeting_service = MeetingService(
        meetings=meetings,
        votes=votes,
        schedule=schedule,
        buildings=buildings,
        protocols=protocols,
        registry=registry,
        poll=poll,
        otp=OTPAuthenticator(otp_codes, settings),
        controller=controller,
        document_store=document_store,
        event_bus=event_bus,
        event_store=event_store,
        settings=settings,
    )
    logger.info("MeetingService initialized")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management.

    Startup:
    - Initialize database connection
    - Initialize event store, repositories and services

    Shutdown:
    - Close database connection
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")

    db = TursoClient()
    await db.connect()
    app.state.db = db
    logger.info(f"Database connected: {db.url}")

    await initialize_services(app, db)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await db.close()
    logger.info("Database connection closed")


app = FastAPI(
    title=settings.app_name,
    description="Homeowners' meeting governance and vote tally engine",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_exception_handler(GovernanceError, governance_error_handler)
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "governance.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
