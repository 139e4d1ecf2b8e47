"""Append-only event store using Turso/libSQL.

Stores every governance event of a meeting. Read back, the events are
the meeting's audit trail.
"""

import json
import logging
from collections.abc import AsyncIterator
from uuid import UUID

from governance.db.turso import TursoClient
from governance.events.base import Event

logger = logging.getLogger(__name__)


class EventStore:
    """Append-only event store (never update/delete)."""

    def __init__(self, client: TursoClient):
        """Initialize event store.

        Args:
            client: Database client for persistence
        """
        self.client = client

    async def init_schema(self) -> None:
        """Create the events table if it doesn't exist."""
        await self.client.execute("""
            CREATE TABLE IF NOT EXISTS events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id TEXT UNIQUE NOT NULL,
                event_type TEXT NOT NULL,
                aggregate_id TEXT,
                aggregate_type TEXT,
                event_data TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await self.client.execute("""
            CREATE INDEX IF NOT EXISTS idx_events_aggregate
            ON events(aggregate_type, aggregate_id)
        """)
        await self.client.execute("""
            CREATE INDEX IF NOT EXISTS idx_events_type
            ON events(event_type)
        """)
        logger.info("Event store schema initialized")

    async def append(self, event: Event) -> None:
        """Append an event to the store.

        Args:
            event: The event to store
        """
        store_dict = event.to_store_dict()
        await self.client.execute(
            """INSERT INTO events
               (event_id, event_type, aggregate_id, aggregate_type,
                event_data, timestamp)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [
                store_dict["event_id"],
                store_dict["event_type"],
                store_dict["aggregate_id"],
                store_dict["aggregate_type"],
                json.dumps(store_dict["data"], sort_keys=True),
                store_dict["timestamp"],
            ],
        )
        logger.debug(f"Stored event {event.event_type} ({event.event_id})")

    async def get_events_for_aggregate(
        self,
        aggregate_id: UUID,
    ) -> AsyncIterator[dict]:
        """Retrieve events for an aggregate in the order they were stored.

        Args:
            aggregate_id: The aggregate's ID

        Yields:
            Event dictionaries
        """
        result = await self.client.execute(
            """SELECT event_id, event_type, event_data, timestamp
               FROM events
               WHERE aggregate_id = ?
               ORDER BY id ASC""",
            [str(aggregate_id)],
        )
        for row in result.rows:
            yield {
                "event_id": row[0],
                "event_type": row[1],
                "data": json.loads(row[2]),
                "timestamp": row[3],
            }

    async def count_events(self, event_type: str | None = None) -> int:
        """Count events, optionally by type.

        Args:
            event_type: Optional event type to filter by

        Returns:
            Number of events
        """
        if event_type:
            result = await self.client.execute(
                "SELECT COUNT(*) FROM events WHERE event_type = ?",
                [event_type],
            )
        else:
            result = await self.client.execute("SELECT COUNT(*) FROM events")
        return result.rows[0][0]
