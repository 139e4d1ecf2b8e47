"""Tests for OTPAuthenticator."""

import pytest

from conftest import FakeClock, Harness
from governance.errors import AlreadyUsed, ExpiredCode, InvalidCode
from governance.models.otp import OTPPurpose

PHONE = "+15550100"


async def test_code_has_configured_length(harness: Harness) -> None:
    issued = await harness.otp.issue(PHONE, OTPPurpose.AGENDA_VOTE)

    assert len(issued.code) == harness.settings.otp_code_length
    assert issued.code.isdigit()


async def test_code_is_single_use(harness: Harness) -> None:
    issued = await harness.otp.issue(PHONE, OTPPurpose.AGENDA_VOTE)

    record = await harness.otp.verify(PHONE, OTPPurpose.AGENDA_VOTE, issued.code)
    assert record.used_at is not None

    with pytest.raises(AlreadyUsed):
        await harness.otp.verify(PHONE, OTPPurpose.AGENDA_VOTE, issued.code)


async def test_code_expires(harness: Harness, clock: FakeClock) -> None:
    issued = await harness.otp.issue(PHONE, OTPPurpose.SCHEDULE_VOTE)
    clock.advance(seconds=harness.settings.otp_ttl_seconds + 1)

    with pytest.raises(ExpiredCode):
        await harness.otp.verify(PHONE, OTPPurpose.SCHEDULE_VOTE, issued.code)


async def test_wrong_code_is_invalid(harness: Harness) -> None:
    issued = await harness.otp.issue(PHONE, OTPPurpose.AGENDA_VOTE)
    wrong = "0" * len(issued.code) if issued.code != "0" * len(issued.code) else "1" * len(issued.code)

    with pytest.raises(InvalidCode):
        await harness.otp.verify(PHONE, OTPPurpose.AGENDA_VOTE, wrong)


async def test_code_is_bound_to_purpose_and_target(harness: Harness) -> None:
    issued = await harness.otp.issue(PHONE, OTPPurpose.AGENDA_VOTE)

    with pytest.raises(InvalidCode):
        await harness.otp.verify(PHONE, OTPPurpose.SCHEDULE_VOTE, issued.code)
    with pytest.raises(InvalidCode):
        await harness.otp.verify("+15550199", OTPPurpose.AGENDA_VOTE, issued.code)


async def test_code_locks_after_too_many_attempts(harness: Harness) -> None:
    issued = await harness.otp.issue(PHONE, OTPPurpose.AGENDA_VOTE)
    wrong = "1" * len(issued.code) if issued.code != "1" * len(issued.code) else "2" * len(issued.code)

    for _ in range(harness.settings.otp_max_attempts):
        with pytest.raises(InvalidCode):
            await harness.otp.verify(PHONE, OTPPurpose.AGENDA_VOTE, wrong)

    # The right code no longer works
    with pytest.raises(InvalidCode, match="Too many attempts"):
        await harness.otp.verify(PHONE, OTPPurpose.AGENDA_VOTE, issued.code)


async def test_only_hash_is_stored(harness: Harness) -> None:
    issued = await harness.otp.issue(PHONE, OTPPurpose.AGENDA_VOTE)

    result = await harness.db.execute("SELECT code_hash FROM otp_codes")

    stored = [row[0] for row in result.rows]
    assert len(stored) == 1
    assert issued.code not in stored[0]
    assert len(stored[0]) == 64
