"""Repository for generated meeting protocols."""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from governance.db.turso import SqlStatement, TursoClient, rows_to_dicts
from governance.models.base import format_timestamp
from governance.models.protocol import MeetingProtocol

logger = logging.getLogger(__name__)

_PROTOCOL_COLUMNS = (
    "id, meeting_id, number, snapshot_digest, content_hash, storage_key, "
    "size_bytes, generated_at, approved_by, approved_at, created_at"
)


class ProtocolRepository:
    """One protocol record per meeting."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create protocol table if it doesn't exist."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS meeting_protocols (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL UNIQUE,
                number TEXT NOT NULL,
                snapshot_digest TEXT NOT NULL,
                content_hash TEXT NOT NULL,
                storage_key TEXT NOT NULL,
                size_bytes INTEGER NOT NULL,
                generated_at TEXT NOT NULL,
                approved_by TEXT,
                approved_at TEXT,
                created_at TEXT NOT NULL
            )
        """)
        logger.info("Protocol tables initialized")

    def insert_statement(
        self, protocol: MeetingProtocol, guard: tuple[str, list[Any]]
    ) -> SqlStatement:
        """INSERT that only applies if the guarding transition succeeded."""
        guard_sql, guard_params = guard
        return (
            f"""
            INSERT INTO meeting_protocols ({_PROTOCOL_COLUMNS})
            SELECT ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?
            WHERE {guard_sql}
            """,
            [
                str(protocol.id),
                str(protocol.meeting_id),
                protocol.number,
                protocol.snapshot_digest,
                protocol.content_hash,
                protocol.storage_key,
                protocol.size_bytes,
                format_timestamp(protocol.generated_at),
                protocol.approved_by,
                format_timestamp(protocol.approved_at),
                format_timestamp(protocol.created_at),
                *guard_params,
            ],
        )

    def approval_statement(
        self,
        meeting_id: UUID,
        approved_by: str,
        at: datetime,
        guard: tuple[str, list[Any]],
    ) -> SqlStatement:
        guard_sql, guard_params = guard
        return (
            f"""
            UPDATE meeting_protocols SET approved_by = ?, approved_at = ?
            WHERE meeting_id = ? AND approved_at IS NULL AND {guard_sql}
            """,
            [approved_by, format_timestamp(at), str(meeting_id), *guard_params],
        )

    async def get_for_meeting(self, meeting_id: UUID) -> MeetingProtocol | None:
        """Protocol of a meeting, None if not generated yet."""
        result = await self._db.execute(
            f"SELECT {_PROTOCOL_COLUMNS} FROM meeting_protocols WHERE meeting_id = ?",
            [str(meeting_id)],
        )
        rows = rows_to_dicts(result)
        return MeetingProtocol.model_validate(rows[0]) if rows else None
