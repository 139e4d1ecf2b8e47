"""Repository for meetings and their agenda items.

Status changes go through compare_and_set / transition_statement: an
UPDATE guarded on the expected current status. A lost race shows up as
zero affected rows and is surfaced by the caller as InvalidTransition.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from governance.db.turso import SqlStatement, TursoClient, rows_to_dicts
from governance.lifecycle.states import STATUS_TIMESTAMP_COLUMNS, MeetingStatus
from governance.models.base import format_timestamp
from governance.models.meeting import AgendaItem, Meeting
from governance.voting.tally import TallyResult

logger = logging.getLogger(__name__)

# Columns a transition may set alongside status
_TRANSITION_FIELDS = frozenset(
    {
        "total_area",
        "total_eligible_count",
        "voted_area",
        "participant_count",
        "quorum_reached",
        "participation_percent",
        "confirmed_date_time",
        "confirmed_option_id",
        "moderation_comment",
        "moderated_at",
        "cancellation_reason",
        "archived",
    }
)

_MEETING_COLUMNS = (
    "id, number, building_id, building_address, organizer_type, organizer_id, "
    "organizer_name, format, status, description, location, total_area, "
    "voted_area, participant_count, total_eligible_count, quorum_percent, "
    "quorum_reached, participation_percent, confirmed_date_time, "
    "confirmed_option_id, moderation_comment, cancellation_reason, archived, "
    "submitted_at, moderated_at, schedule_poll_opened_at, schedule_confirmed_at, "
    "voting_opened_at, voting_closed_at, results_published_at, "
    "protocol_generated_at, protocol_approved_at, cancelled_at, created_at"
)


def _db_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, bool):
        return int(value)
    if hasattr(value, "value"):
        return value.value
    return value


class MeetingRepository:
    """Persistence for Meeting aggregates (meeting row + agenda items)."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create meeting tables if they don't exist."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS meetings (
                id TEXT PRIMARY KEY,
                number INTEGER NOT NULL UNIQUE,
                building_id TEXT NOT NULL,
                building_address TEXT NOT NULL DEFAULT '',
                organizer_type TEXT NOT NULL,
                organizer_id TEXT NOT NULL,
                organizer_name TEXT,
                format TEXT NOT NULL,
                status TEXT NOT NULL,
                description TEXT,
                location TEXT,
                total_area REAL NOT NULL DEFAULT 0,
                voted_area REAL NOT NULL DEFAULT 0,
                participant_count INTEGER NOT NULL DEFAULT 0,
                total_eligible_count INTEGER NOT NULL DEFAULT 0,
                quorum_percent REAL NOT NULL,
                quorum_reached INTEGER NOT NULL DEFAULT 0,
                participation_percent REAL NOT NULL DEFAULT 0,
                confirmed_date_time TEXT,
                confirmed_option_id TEXT,
                moderation_comment TEXT,
                cancellation_reason TEXT,
                archived INTEGER NOT NULL DEFAULT 0,
                submitted_at TEXT,
                moderated_at TEXT,
                schedule_poll_opened_at TEXT,
                schedule_confirmed_at TEXT,
                voting_opened_at TEXT,
                voting_closed_at TEXT,
                results_published_at TEXT,
                protocol_generated_at TEXT,
                protocol_approved_at TEXT,
                cancelled_at TEXT,
                created_at TEXT NOT NULL
            )
        """)
        await self._db.execute("""
            CREATE INDEX IF NOT EXISTS idx_meetings_building
            ON meetings(building_id, status)
        """)
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS agenda_items (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                threshold TEXT NOT NULL,
                votes_for_area REAL NOT NULL DEFAULT 0,
                votes_against_area REAL NOT NULL DEFAULT 0,
                votes_abstain_area REAL NOT NULL DEFAULT 0,
                threshold_met INTEGER,
                is_approved INTEGER,
                decision TEXT,
                created_at TEXT NOT NULL,
                UNIQUE(meeting_id, position)
            )
        """)
        logger.info("Meeting tables initialized")

    async def create(
        self,
        meeting: Meeting,
        extra_statements: list[SqlStatement] | None = None,
    ) -> Meeting:
        """Insert a meeting and its agenda items atomically.

        The meeting number is allocated inside the INSERT.

        Args:
            meeting: Meeting to persist (number is ignored)
            extra_statements: Further inserts to commit with the meeting

        Returns:
            The stored meeting, as read back
        """
        statements: list[SqlStatement] = [
            (
                """
                INSERT INTO meetings
                    (id, number, building_id, building_address, organizer_type,
                     organizer_id, organizer_name, format, status, description,
                     location, quorum_percent, created_at)
                VALUES (?, (SELECT COALESCE(MAX(number), 0) + 1 FROM meetings),
                        ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    str(meeting.id),
                    meeting.building_id,
                    meeting.building_address,
                    meeting.organizer_type.value,
                    meeting.organizer_id,
                    meeting.organizer_name,
                    meeting.format.value,
                    meeting.status.value,
                    meeting.description,
                    meeting.location,
                    meeting.quorum_percent,
                    format_timestamp(meeting.created_at),
                ],
            )
        ]
        for item in meeting.agenda_items:
            statements.append(
                (
                    """
                    INSERT INTO agenda_items
                        (id, meeting_id, position, title, description,
                         threshold, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        str(item.id),
                        str(meeting.id),
                        item.position,
                        item.title,
                        item.description,
                        item.threshold.value,
                        format_timestamp(item.created_at),
                    ],
                )
            )
        statements.extend(extra_statements or [])
        await self._db.execute_batch(statements)
        logger.debug(f"Created meeting {meeting.id}")

        stored = await self.get(meeting.id)
        if stored is None:
            msg = f"Meeting {meeting.id} missing after insert"
            raise RuntimeError(msg)
        return stored

    async def get(self, meeting_id: UUID) -> Meeting | None:
        """Load a meeting with its agenda items.

        Args:
            meeting_id: Meeting UUID

        Returns:
            Meeting if found, None otherwise
        """
        result = await self._db.execute(
            f"SELECT {_MEETING_COLUMNS} FROM meetings WHERE id = ?",
            [str(meeting_id)],
        )
        rows = rows_to_dicts(result)
        if not rows:
            return None
        data = rows[0]
        data["agenda_items"] = await self.list_agenda_items(meeting_id)
        return Meeting.model_validate(data)

    async def list_agenda_items(self, meeting_id: UUID) -> list[AgendaItem]:
        """Agenda items of a meeting in agenda order."""
        result = await self._db.execute(
            """
            SELECT id, meeting_id, position, title, description, threshold,
                   votes_for_area, votes_against_area, votes_abstain_area,
                   threshold_met, is_approved, decision, created_at
            FROM agenda_items
            WHERE meeting_id = ?
            ORDER BY position ASC
            """,
            [str(meeting_id)],
        )
        return [AgendaItem.model_validate(row) for row in rows_to_dicts(result)]

    async def list_by_building(
        self,
        building_id: str,
        include_archived: bool = False,
    ) -> list[Meeting]:
        """List meetings of a building, newest first."""
        sql = f"SELECT {_MEETING_COLUMNS} FROM meetings WHERE building_id = ?"
        if not include_archived:
            sql += " AND archived = 0"
        sql += " ORDER BY number DESC"
        result = await self._db.execute(sql, [building_id])
        meetings = []
        for row in rows_to_dicts(result):
            row["agenda_items"] = await self.list_agenda_items(UUID(row["id"]))
            meetings.append(Meeting.model_validate(row))
        return meetings

    def transition_statement(
        self,
        meeting_id: UUID,
        expected: MeetingStatus,
        new: MeetingStatus,
        at: datetime,
        fields: dict[str, Any] | None = None,
        condition: tuple[str, list[Any]] | None = None,
    ) -> SqlStatement:
        """Build the compare-and-set UPDATE for a status transition.

        Args:
            meeting_id: Meeting UUID
            expected: Status the meeting must currently have
            new: Status to move to
            at: Transition timestamp (stored in the state's timestamp column)
            fields: Extra columns to set in the same statement
            condition: Extra SQL condition the move depends on

        Returns:
            (sql, params) pair; zero affected rows means the CAS lost
        """
        fields = dict(fields or {})
        unknown = set(fields) - _TRANSITION_FIELDS
        if unknown:
            msg = f"Columns not settable by a transition: {sorted(unknown)}"
            raise ValueError(msg)
        fields[STATUS_TIMESTAMP_COLUMNS[new]] = at

        assignments = ["status = ?"] + [f"{column} = ?" for column in fields]
        params = [new.value] + [_db_value(v) for v in fields.values()]
        params.extend([str(meeting_id), expected.value])
        sql = (
            f"UPDATE meetings SET {', '.join(assignments)} "
            "WHERE id = ? AND status = ?"
        )
        if condition is not None:
            sql = f"{sql} AND {condition[0]}"
            params.extend(condition[1])
        return sql, params

    def status_guard(
        self, meeting_id: UUID, status: MeetingStatus, at: datetime
    ) -> tuple[str, list[Any]]:
        """SQL condition true only if the meeting just entered status at `at`.

        Used to make follow-up statements in a batch depend on the CAS
        that precedes them.
        """
        column = STATUS_TIMESTAMP_COLUMNS[status]
        return (
            f"EXISTS (SELECT 1 FROM meetings WHERE id = ? AND status = ? "
            f"AND {column} = ?)",
            [str(meeting_id), status.value, format_timestamp(at)],
        )

    async def compare_and_set(
        self,
        meeting_id: UUID,
        expected: MeetingStatus,
        new: MeetingStatus,
        at: datetime,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """Atomically move a meeting from expected to new status.

        Returns:
            True if this call won the transition, False otherwise
        """
        sql, params = self.transition_statement(meeting_id, expected, new, at, fields)
        result = await self._db.execute(sql, params)
        won = result.rows_affected > 0
        if won:
            logger.debug(f"Meeting {meeting_id}: {expected.value} -> {new.value}")
        return won

    async def run_transition(
        self,
        transition: SqlStatement,
        follow_ups: list[SqlStatement] | None = None,
    ) -> bool:
        """Run a transition CAS and its guarded follow-ups in one transaction.

        Args:
            transition: Statement from transition_statement()
            follow_ups: Statements guarded with status_guard()

        Returns:
            True if the CAS won (follow-ups applied), False otherwise
        """
        results = await self._db.execute_batch([transition, *(follow_ups or [])])
        return results[0].rows_affected > 0

    def outcome_statement(
        self,
        item: AgendaItem,
        result: TallyResult,
        is_approved: bool,
        decision: str,
        guard: tuple[str, list[Any]],
    ) -> SqlStatement:
        """Write-once UPDATE persisting an agenda item's tally and outcome."""
        guard_sql, guard_params = guard
        return (
            f"""
            UPDATE agenda_items
            SET votes_for_area = ?, votes_against_area = ?,
                votes_abstain_area = ?, threshold_met = ?, is_approved = ?,
                decision = ?
            WHERE id = ? AND is_approved IS NULL AND {guard_sql}
            """,
            [
                result.votes_for,
                result.votes_against,
                result.votes_abstain,
                int(result.threshold_met),
                int(is_approved),
                decision,
                str(item.id),
                *guard_params,
            ],
        )

    def participation_statement(self, meeting_id: UUID) -> SqlStatement:
        """Recompute voted area and participant count from vote records.

        Each voter counts once with their largest snapshotted weight. The
        values never decrease and voted area never exceeds total area.
        """
        return (
            """
            UPDATE meetings
            SET voted_area = MIN(total_area, MAX(voted_area, (
                    SELECT COALESCE(SUM(w), 0) FROM (
                        SELECT MAX(weight) AS w FROM vote_records
                        WHERE meeting_id = ? GROUP BY voter_id
                    )
                ))),
                participant_count = MAX(participant_count, (
                    SELECT COUNT(DISTINCT voter_id) FROM vote_records
                    WHERE meeting_id = ?
                ))
            WHERE id = ? AND status = ?
            """,
            [
                str(meeting_id),
                str(meeting_id),
                str(meeting_id),
                MeetingStatus.VOTING_OPEN.value,
            ],
        )
