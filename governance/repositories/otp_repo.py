"""Repository for one-time code records."""

import logging
from datetime import datetime
from typing import Any

from governance.db.turso import SqlStatement, TursoClient, rows_to_dicts
from governance.models.base import format_timestamp
from governance.models.otp import OTPPurpose, OTPRecord

logger = logging.getLogger(__name__)

_OTP_COLUMNS = (
    "id, target, purpose, code_hash, attempts, max_attempts, expires_at, "
    "used_at, created_at"
)


class OTPRepository:
    """Stored (hashed) one-time codes."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create OTP table if it doesn't exist."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS otp_codes (
                id TEXT PRIMARY KEY,
                target TEXT NOT NULL,
                purpose TEXT NOT NULL,
                code_hash TEXT NOT NULL,
                attempts INTEGER NOT NULL DEFAULT 0,
                max_attempts INTEGER NOT NULL,
                expires_at TEXT NOT NULL,
                used_at TEXT,
                created_at TEXT NOT NULL
            )
        """)
        await self._db.execute("""
            CREATE INDEX IF NOT EXISTS idx_otp_codes_target
            ON otp_codes(target, purpose, code_hash)
        """)
        logger.info("OTP tables initialized")

    async def save(self, record: OTPRecord) -> None:
        await self._db.execute(
            f"""
            INSERT INTO otp_codes ({_OTP_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                str(record.id),
                record.target,
                record.purpose.value,
                record.code_hash,
                record.attempts,
                record.max_attempts,
                format_timestamp(record.expires_at),
                format_timestamp(record.used_at),
                format_timestamp(record.created_at),
            ],
        )

    async def find_by_hash(
        self, target: str, purpose: OTPPurpose, code_hash: str
    ) -> OTPRecord | None:
        """Most recent record matching target, purpose and code hash."""
        result = await self._db.execute(
            f"""
            SELECT {_OTP_COLUMNS} FROM otp_codes
            WHERE target = ? AND purpose = ? AND code_hash = ?
            ORDER BY created_at DESC
            LIMIT 1
            """,
            [target, purpose.value, code_hash],
        )
        rows = rows_to_dicts(result)
        return OTPRecord.model_validate(rows[0]) if rows else None

    async def get(self, otp_id: str) -> OTPRecord | None:
        result = await self._db.execute(
            f"SELECT {_OTP_COLUMNS} FROM otp_codes WHERE id = ?",
            [otp_id],
        )
        rows = rows_to_dicts(result)
        return OTPRecord.model_validate(rows[0]) if rows else None

    async def register_failed_attempt(
        self, target: str, purpose: OTPPurpose, now: datetime
    ) -> None:
        """Count a wrong guess against the newest live code of the target."""
        await self._db.execute(
            """
            UPDATE otp_codes SET attempts = attempts + 1
            WHERE id = (
                SELECT id FROM otp_codes
                WHERE target = ? AND purpose = ? AND used_at IS NULL
                  AND expires_at > ?
                ORDER BY created_at DESC
                LIMIT 1
            )
            """,
            [target, purpose.value, format_timestamp(now)],
        )

    def usable_guard(self, otp_id: str, now: datetime) -> tuple[str, list[Any]]:
        """SQL condition true while the code is unused, unexpired and unlocked."""
        return (
            "EXISTS (SELECT 1 FROM otp_codes WHERE id = ? AND used_at IS NULL "
            "AND expires_at > ? AND attempts < max_attempts)",
            [otp_id, format_timestamp(now)],
        )

    def consume_statement(
        self,
        otp_id: str,
        now: datetime,
        guard: tuple[str, list[Any]] | None = None,
    ) -> SqlStatement:
        """Build the UPDATE marking a usable code used.

        Args:
            otp_id: Code record id
            now: Consumption time
            guard: Extra condition, e.g. that the vote it authorizes was written
        """
        guard_sql, guard_params = self.usable_guard(otp_id, now)
        sql = f"UPDATE otp_codes SET used_at = ? WHERE {guard_sql}"
        params = [format_timestamp(now), *guard_params]
        if guard is not None:
            sql = f"{sql} AND {guard[0]}"
            params.extend(guard[1])
        return sql, params

    async def consume(self, otp_id: str, now: datetime) -> bool:
        """Mark a code used if it is still unused, unexpired and unlocked.

        Returns:
            True if this call consumed the code
        """
        sql, params = self.consume_statement(otp_id, now)
        result = await self._db.execute(sql, params)
        return result.rows_affected > 0
