"""Domain error taxonomy for meeting governance.

All errors are local validation failures surfaced synchronously to the
caller. Nothing here is retried by the core.
"""


class GovernanceError(Exception):
    """Base class for all governance errors."""

    code = "governance_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(GovernanceError):
    """Referenced meeting, agenda item, option or unit does not exist."""

    code = "not_found"


class InvalidTransition(GovernanceError):
    """Lifecycle operation attempted from the wrong source state."""

    code = "invalid_transition"


class Forbidden(GovernanceError):
    """Actor's role is insufficient for the attempted operation."""

    code = "forbidden"


class AmbiguousWinner(GovernanceError):
    """Schedule confirmation attempted without a unique leading option."""

    code = "ambiguous_winner"


class VotingClosed(GovernanceError):
    """Vote submitted while the meeting is not accepting votes."""

    code = "voting_closed"


class IneligibleVoter(GovernanceError):
    """Voter owns no unit in the meeting's building."""

    code = "ineligible_voter"


class OTPError(GovernanceError):
    """Base class for one-time code failures."""

    code = "otp_error"


class ExpiredCode(OTPError):
    """Code's validity window has passed."""

    code = "expired_code"


class InvalidCode(OTPError):
    """Code does not match, or the record is locked after too many attempts."""

    code = "invalid_code"


class AlreadyUsed(OTPError):
    """Code was already consumed by a previous successful verification."""

    code = "already_used"


__all__ = [
    "AlreadyUsed",
    "AmbiguousWinner",
    "ExpiredCode",
    "Forbidden",
    "GovernanceError",
    "IneligibleVoter",
    "InvalidCode",
    "InvalidTransition",
    "NotFound",
    "OTPError",
    "VotingClosed",
]
