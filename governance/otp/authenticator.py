"""One-time codes binding a remote voter action to a phone or unit.

Codes are numeric, short-lived and single-use. Only a hash of each code
is stored, and plain codes are never logged.
"""

import hashlib
import secrets
import string
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from governance.config import Settings, get_settings
from governance.db.turso import SqlStatement
from governance.errors import AlreadyUsed, ExpiredCode, InvalidCode
from governance.models.base import utc_now
from governance.models.otp import IssuedCode, OTPPurpose, OTPRecord
from governance.repositories.otp_repo import OTPRepository

logger = structlog.get_logger()


def hash_code(target: str, purpose: OTPPurpose, code: str) -> str:
    """Hash a code together with what it is bound to."""
    payload = f"{target}:{purpose.value}:{code}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class OTPAuthenticator:
    """Issue and verify one-time codes."""

    def __init__(
        self,
        repository: OTPRepository,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize authenticator.

        Args:
            repository: Storage for code records
            settings: Code length, validity window and attempt limit
            clock: Source of the current time
        """
        self._repo = repository
        self._settings = settings or get_settings()
        self._clock = clock

    def _generate(self) -> str:
        return "".join(
            secrets.choice(string.digits) for _ in range(self._settings.otp_code_length)
        )

    async def issue(self, target: str, purpose: OTPPurpose) -> IssuedCode:
        """Create a new code for target and purpose.

        Args:
            target: Phone number or unit reference the code is bound to
            purpose: Action the code authorizes

        Returns:
            IssuedCode carrying the plain code (for delivery) and its expiry
        """
        code = self._generate()
        now = self._clock()
        record = OTPRecord(
            target=target,
            purpose=purpose,
            code_hash=hash_code(target, purpose, code),
            max_attempts=self._settings.otp_max_attempts,
            expires_at=now + timedelta(seconds=self._settings.otp_ttl_seconds),
            created_at=now,
        )
        await self._repo.save(record)
        logger.info(
            "otp issued",
            otp_id=str(record.id),
            purpose=purpose.value,
            expires_at=record.expires_at.isoformat(),
        )
        return IssuedCode(otp_id=str(record.id), code=code, expires_at=record.expires_at)

    async def check(self, target: str, purpose: OTPPurpose, code: str) -> OTPRecord:
        """Validate a code without consuming it.

        A wrong code counts against the newest live code of the target.

        Raises:
            InvalidCode: Wrong code, or the code is locked after too many attempts
            ExpiredCode: The validity window has passed
            AlreadyUsed: The code was consumed before
        """
        now = self._clock()
        record = await self._repo.find_by_hash(
            target, purpose, hash_code(target, purpose, code)
        )
        if record is None:
            await self._repo.register_failed_attempt(target, purpose, now)
            logger.info("otp rejected", purpose=purpose.value, reason="mismatch")
            msg = "Invalid code"
            raise InvalidCode(msg)

        self._check(record, now)
        return record

    async def verify(self, target: str, purpose: OTPPurpose, code: str) -> OTPRecord:
        """Check a code and consume it.

        Args:
            target: Phone number or unit reference the code was issued to
            purpose: Action being authorized
            code: Code entered by the user

        Returns:
            The consumed OTPRecord

        Raises:
            InvalidCode: Wrong code, or the code is locked after too many attempts
            ExpiredCode: The validity window has passed
            AlreadyUsed: The code was consumed before
        """
        record = await self.check(target, purpose, code)
        now = self._clock()
        if not await self._repo.consume(str(record.id), now):
            # Lost a race with another verify
            await self.ensure_usable(record, now)
            msg = "Invalid code"
            raise InvalidCode(msg)

        logger.info("otp verified", otp_id=str(record.id), purpose=purpose.value)
        return record.model_copy(update={"used_at": now})

    def usable_guard(self, record: OTPRecord, now: datetime) -> tuple[str, list]:
        """Condition for writes that must only happen with a live code."""
        return self._repo.usable_guard(str(record.id), now)

    def consume_statement(
        self, record: OTPRecord, now: datetime, guard: tuple[str, list]
    ) -> SqlStatement:
        """Consumption of a checked code, run in the batch it authorizes."""
        return self._repo.consume_statement(str(record.id), now, guard)

    async def ensure_usable(self, record: OTPRecord, now: datetime) -> None:
        """Re-read a checked code and raise if it can no longer be used.

        Raises:
            AlreadyUsed / InvalidCode / ExpiredCode: Current state of the code
        """
        current = await self._repo.get(str(record.id))
        self._check(current or record, now)

    def _check(self, record: OTPRecord, now: datetime) -> None:
        if record.is_used:
            msg = "Code already used"
            raise AlreadyUsed(msg)
        if record.is_locked:
            msg = "Too many attempts; request a new code"
            raise InvalidCode(msg)
        if record.is_expired(now):
            msg = "Code expired"
            raise ExpiredCode(msg)
