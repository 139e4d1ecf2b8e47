"""Repository for schedule poll options and votes."""

import logging
from typing import Any
from uuid import UUID

from governance.db.turso import SqlStatement, TursoClient, rows_to_dicts
from governance.lifecycle.states import MeetingStatus
from governance.models.base import format_timestamp
from governance.models.schedule import ScheduleOption, ScheduleVote

logger = logging.getLogger(__name__)


class ScheduleRepository:
    """Schedule options per meeting and one poll vote per voter."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create schedule tables if they don't exist."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS schedule_options (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL,
                date_time TEXT NOT NULL,
                confirmed INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
        """)
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS schedule_votes (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL,
                option_id TEXT NOT NULL,
                voter_id TEXT NOT NULL,
                voted_at TEXT NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE(meeting_id, voter_id)
            )
        """)
        logger.info("Schedule tables initialized")

    def option_insert_statement(self, option: ScheduleOption) -> SqlStatement:
        return (
            """
            INSERT INTO schedule_options (id, meeting_id, date_time, confirmed, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                str(option.id),
                str(option.meeting_id),
                format_timestamp(option.date_time),
                int(option.confirmed),
                format_timestamp(option.created_at),
            ],
        )

    async def list_options(self, meeting_id: UUID) -> list[ScheduleOption]:
        """Options of a meeting in chronological order."""
        result = await self._db.execute(
            """
            SELECT id, meeting_id, date_time, confirmed, created_at
            FROM schedule_options
            WHERE meeting_id = ?
            ORDER BY date_time ASC, id ASC
            """,
            [str(meeting_id)],
        )
        return [ScheduleOption.model_validate(row) for row in rows_to_dicts(result)]

    async def upsert_vote(
        self,
        vote: ScheduleVote,
        guard: tuple[str, list[Any]] | None = None,
        follow_ups: list[SqlStatement] | None = None,
    ) -> bool:
        """Record or move a voter's poll vote while the poll is open.

        Args:
            vote: The vote to store
            guard: Extra condition the write depends on (e.g. a live code)
            follow_ups: Statements run in the same transaction

        Returns:
            True if the vote was stored, False if the poll is not open or
            the guard did not hold
        """
        guard_sql, guard_params = guard or ("1 = 1", [])
        upsert = (
            f"""
            INSERT INTO schedule_votes (id, meeting_id, option_id, voter_id, voted_at, created_at)
            SELECT ?, ?, ?, ?, ?, ?
            WHERE EXISTS (
                SELECT 1 FROM meetings WHERE id = ? AND status = ?
            ) AND {guard_sql}
            ON CONFLICT(meeting_id, voter_id) DO UPDATE SET
                option_id = excluded.option_id,
                voted_at = excluded.voted_at
            """,
            [
                str(vote.id),
                str(vote.meeting_id),
                str(vote.option_id),
                vote.voter_id,
                format_timestamp(vote.voted_at),
                format_timestamp(vote.created_at),
                str(vote.meeting_id),
                MeetingStatus.SCHEDULE_POLL_OPEN.value,
                *guard_params,
            ],
        )
        results = await self._db.execute_batch([upsert, *(follow_ups or [])])
        return results[0].rows_affected > 0

    def written_guard(self, vote: ScheduleVote) -> tuple[str, list[Any]]:
        """SQL condition true once this exact poll vote is the stored one."""
        return (
            "EXISTS (SELECT 1 FROM schedule_votes WHERE meeting_id = ? "
            "AND voter_id = ? AND option_id = ? AND voted_at = ?)",
            [
                str(vote.meeting_id),
                vote.voter_id,
                str(vote.option_id),
                format_timestamp(vote.voted_at),
            ],
        )

    async def unchanged_guard(self, meeting_id: UUID) -> tuple[str, list[Any]]:
        """SQL condition true while no poll vote was added or moved.

        Every write sets voted_at, so the vote count together with the
        latest voted_at changes whenever the poll does.
        """
        result = await self._db.execute(
            """
            SELECT COUNT(*), COALESCE(MAX(voted_at), '')
            FROM schedule_votes WHERE meeting_id = ?
            """,
            [str(meeting_id)],
        )
        count, latest = result.rows[0][0], result.rows[0][1]
        return (
            "(SELECT COUNT(*) FROM schedule_votes WHERE meeting_id = ?) = ? "
            "AND (SELECT COALESCE(MAX(voted_at), '') FROM schedule_votes "
            "WHERE meeting_id = ?) = ?",
            [str(meeting_id), count, str(meeting_id), latest],
        )

    async def list_votes(self, meeting_id: UUID) -> list[ScheduleVote]:
        result = await self._db.execute(
            """
            SELECT id, meeting_id, option_id, voter_id, voted_at, created_at
            FROM schedule_votes
            WHERE meeting_id = ?
            ORDER BY voted_at ASC
            """,
            [str(meeting_id)],
        )
        return [ScheduleVote.model_validate(row) for row in rows_to_dicts(result)]

    def confirm_statement(
        self, option_id: UUID, guard: tuple[str, list]
    ) -> SqlStatement:
        """Mark an option confirmed, guarded on the meeting's confirmation."""
        guard_sql, guard_params = guard
        return (
            f"UPDATE schedule_options SET confirmed = 1 WHERE id = ? AND {guard_sql}",
            [str(option_id), *guard_params],
        )
