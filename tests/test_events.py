"""Tests for event infrastructure."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest
from pydantic import ValidationError

from governance.db.turso import TursoClient
from governance.events import (
    Event,
    EventBus,
    EventStore,
    MeetingCreated,
    MeetingStatusChanged,
    OTPIssued,
    VoteCast,
)


def created(aggregate_id=None) -> MeetingCreated:
    return MeetingCreated(
        aggregate_id=aggregate_id or uuid4(),
        number=1,
        building_id="bld-1",
        organizer_id="mgr-1",
        agenda_item_count=2,
    )


class TestEvent:
    """Tests for base Event class."""

    def test_creates_with_defaults(self) -> None:
        class Ping(Event):
            message: str

        e = Ping(message="test")
        assert e.event_id is not None
        assert e.timestamp is not None
        assert e.event_type == "Ping"

    def test_is_immutable(self) -> None:
        e = created()
        with pytest.raises(ValidationError):
            e.number = 2  # type: ignore[misc]

    def test_to_store_dict(self) -> None:
        aggregate_id = uuid4()
        e = MeetingStatusChanged(
            aggregate_id=aggregate_id,
            timestamp=datetime(2026, 3, 2, 9, 0, tzinfo=UTC),
            operation="approve",
            from_status="pending_moderation",
            to_status="schedule_poll_open",
            actor_id="mgr-1",
        )

        d = e.to_store_dict()

        assert d["event_type"] == "MeetingStatusChanged"
        assert d["aggregate_id"] == str(aggregate_id)
        assert d["aggregate_type"] == "Meeting"
        assert d["timestamp"] == "2026-03-02T09:00:00.000000+00:00"
        assert d["data"]["to_status"] == "schedule_poll_open"
        assert "event_id" not in d["data"]

    def test_otp_event_carries_no_code(self) -> None:
        e = OTPIssued(
            target="+15550100",
            purpose="agenda_vote",
            expires_at=datetime(2026, 3, 2, 9, 5, tzinfo=UTC),
        )
        assert e.aggregate_type == "OTP"
        assert "code" not in e.to_store_dict()["data"]

    def test_vote_weight_cannot_be_negative(self) -> None:
        with pytest.raises(ValidationError):
            VoteCast(
                agenda_item_id=uuid4(),
                voter_id="alice",
                choice="for",
                weight=-1.0,
                vote_hash="x",
            )


class TestEventBus:
    """Tests for EventBus."""

    async def test_subscribe_and_publish(self) -> None:
        bus = EventBus()
        received: list[MeetingCreated] = []

        async def handler(event: MeetingCreated) -> None:
            received.append(event)

        bus.subscribe(MeetingCreated, handler)
        await bus.publish(created())

        assert len(received) == 1
        assert received[0].building_id == "bld-1"

    async def test_sync_handler(self) -> None:
        """Sync handlers run in a worker thread."""
        bus = EventBus()
        received: list[MeetingCreated] = []

        bus.subscribe(MeetingCreated, received.append)
        await bus.publish(created())

        assert len(received) == 1

    async def test_type_isolation(self) -> None:
        bus = EventBus()
        status_events: list[MeetingStatusChanged] = []

        async def handler(event: MeetingStatusChanged) -> None:
            status_events.append(event)

        bus.subscribe(MeetingStatusChanged, handler)
        await bus.publish(created())

        assert status_events == []

    async def test_handler_error_does_not_propagate(self) -> None:
        bus = EventBus()
        received: list[MeetingCreated] = []

        async def broken(event: MeetingCreated) -> None:
            raise RuntimeError("notification service down")

        async def healthy(event: MeetingCreated) -> None:
            received.append(event)

        bus.subscribe(MeetingCreated, broken)
        bus.subscribe(MeetingCreated, healthy)
        await bus.publish(created())

        assert len(received) == 1

    def test_subscriber_count(self) -> None:
        bus = EventBus()

        async def h1(e: MeetingCreated) -> None:
            pass

        assert bus.subscriber_count(MeetingCreated) == 0
        bus.subscribe(MeetingCreated, h1)
        assert bus.subscriber_count(MeetingCreated) == 1


class TestEventStore:
    """Tests for EventStore with SQLite."""

    @pytest.fixture
    async def store(self, db_client: TursoClient) -> EventStore:
        store = EventStore(db_client)
        await store.init_schema()
        return store

    async def test_append_and_count(self, store: EventStore) -> None:
        await store.append(created())
        await store.append(
            OTPIssued(
                target="+15550100",
                purpose="agenda_vote",
                expires_at=datetime(2026, 3, 2, 9, 5, tzinfo=UTC),
            )
        )

        assert await store.count_events() == 2
        assert await store.count_events("MeetingCreated") == 1

    async def test_events_for_aggregate_in_order(self, store: EventStore) -> None:
        aggregate_id = uuid4()
        await store.append(created(aggregate_id))
        await store.append(created())
        await store.append(
            MeetingStatusChanged(
                aggregate_id=aggregate_id,
                operation="submit_for_moderation",
                from_status="draft",
                to_status="pending_moderation",
                actor_id="mgr-1",
            )
        )

        events = [e async for e in store.get_events_for_aggregate(aggregate_id)]

        assert [e["event_type"] for e in events] == ["MeetingCreated", "MeetingStatusChanged"]
        assert events[1]["data"]["operation"] == "submit_for_moderation"

    async def test_bus_persists_before_notifying(self, store: EventStore) -> None:
        bus = EventBus(store=store)
        counts: list[int] = []

        async def handler(event: MeetingCreated) -> None:
            counts.append(await store.count_events())

        bus.subscribe(MeetingCreated, handler)
        await bus.publish(created())

        assert counts == [1]
