"""Repository for cast votes.

The (voter_id, agenda_item_id) unique key is the single-vote guarantee.
Every write is conditional on the meeting being open for voting, checked
inside the same statement.
"""

import logging
from typing import Any
from uuid import UUID

from governance.db.turso import SqlStatement, TursoClient, rows_to_dicts
from governance.lifecycle.states import MeetingStatus
from governance.models.base import format_timestamp
from governance.models.vote import VoteRecord

logger = logging.getLogger(__name__)

_VOTE_COLUMNS = (
    "id, meeting_id, agenda_item_id, voter_id, voter_name, unit_id, unit_number, "
    "choice, weight, verification_method, otp_verified, comment, voted_at, "
    "revision, vote_hash, created_at"
)


class VoteRepository:
    """Storage of VoteRecords, one per voter and agenda item."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create vote table if it doesn't exist."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS vote_records (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL,
                agenda_item_id TEXT NOT NULL,
                voter_id TEXT NOT NULL,
                voter_name TEXT NOT NULL DEFAULT '',
                unit_id TEXT,
                unit_number TEXT,
                choice TEXT NOT NULL,
                weight REAL NOT NULL,
                verification_method TEXT NOT NULL,
                otp_verified INTEGER NOT NULL DEFAULT 0,
                comment TEXT,
                voted_at TEXT NOT NULL,
                revision INTEGER NOT NULL DEFAULT 1,
                vote_hash TEXT NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE(voter_id, agenda_item_id)
            )
        """)
        await self._db.execute("""
            CREATE INDEX IF NOT EXISTS idx_vote_records_meeting
            ON vote_records(meeting_id)
        """)
        logger.info("Vote tables initialized")

    def upsert_statement(
        self, vote: VoteRecord, guard: tuple[str, list[Any]] | None = None
    ) -> SqlStatement:
        """Insert or overwrite a vote while the meeting is open for voting.

        On overwrite the weight and unit stay as first recorded; choice,
        verification and timestamp are replaced and revision increments.

        Args:
            vote: The vote to store
            guard: Extra condition the write depends on (e.g. a live code)
        """
        guard_sql, guard_params = guard or ("1 = 1", [])
        return (
            f"""
            INSERT INTO vote_records ({_VOTE_COLUMNS})
            SELECT ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?
            WHERE EXISTS (
                SELECT 1 FROM meetings WHERE id = ? AND status = ?
            ) AND {guard_sql}
            ON CONFLICT(voter_id, agenda_item_id) DO UPDATE SET
                choice = excluded.choice,
                verification_method = excluded.verification_method,
                otp_verified = excluded.otp_verified,
                comment = excluded.comment,
                voted_at = excluded.voted_at,
                revision = vote_records.revision + 1,
                vote_hash = excluded.vote_hash
            """,
            [
                str(vote.id),
                str(vote.meeting_id),
                str(vote.agenda_item_id),
                vote.voter_id,
                vote.voter_name,
                str(vote.unit_id) if vote.unit_id else None,
                vote.unit_number,
                vote.choice.value,
                vote.weight,
                vote.verification_method.value,
                int(vote.otp_verified),
                vote.comment,
                format_timestamp(vote.voted_at),
                vote.vote_hash,
                format_timestamp(vote.created_at),
                str(vote.meeting_id),
                MeetingStatus.VOTING_OPEN.value,
                *guard_params,
            ],
        )

    def written_guard(self, vote: VoteRecord) -> tuple[str, list[Any]]:
        """SQL condition true once this exact vote is the stored one."""
        return (
            "EXISTS (SELECT 1 FROM vote_records WHERE voter_id = ? "
            "AND agenda_item_id = ? AND vote_hash = ? AND voted_at = ?)",
            [
                vote.voter_id,
                str(vote.agenda_item_id),
                vote.vote_hash,
                format_timestamp(vote.voted_at),
            ],
        )

    async def get(self, voter_id: str, agenda_item_id: UUID) -> VoteRecord | None:
        """Get a voter's vote on one agenda item."""
        result = await self._db.execute(
            f"""
            SELECT {_VOTE_COLUMNS} FROM vote_records
            WHERE voter_id = ? AND agenda_item_id = ?
            """,
            [voter_id, str(agenda_item_id)],
        )
        rows = rows_to_dicts(result)
        return VoteRecord.model_validate(rows[0]) if rows else None

    async def list_for_meeting(self, meeting_id: UUID) -> list[VoteRecord]:
        """All votes of a meeting, oldest first.

        Args:
            meeting_id: Meeting UUID

        Returns:
            VoteRecords ordered by voted_at, then voter id
        """
        result = await self._db.execute(
            f"""
            SELECT {_VOTE_COLUMNS} FROM vote_records
            WHERE meeting_id = ?
            ORDER BY voted_at ASC, voter_id ASC
            """,
            [str(meeting_id)],
        )
        return [VoteRecord.model_validate(row) for row in rows_to_dicts(result)]

    async def list_for_voter(self, meeting_id: UUID, voter_id: str) -> list[VoteRecord]:
        """A single voter's votes in a meeting."""
        result = await self._db.execute(
            f"""
            SELECT {_VOTE_COLUMNS} FROM vote_records
            WHERE meeting_id = ? AND voter_id = ?
            ORDER BY voted_at ASC
            """,
            [str(meeting_id), voter_id],
        )
        return [VoteRecord.model_validate(row) for row in rows_to_dicts(result)]

    async def record(
        self,
        vote: VoteRecord,
        follow_ups: list[SqlStatement] | None = None,
        guard: tuple[str, list[Any]] | None = None,
    ) -> bool:
        """Upsert a vote and run follow-ups in the same transaction.

        Returns:
            True if the vote was written, False if voting is not open or
            the guard did not hold
        """
        results = await self._db.execute_batch(
            [self.upsert_statement(vote, guard), *(follow_ups or [])]
        )
        written = results[0].rows_affected > 0
        if written:
            logger.debug(f"Recorded vote of {vote.voter_id} on {vote.agenda_item_id}")
        return written
