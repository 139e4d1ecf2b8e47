"""Meeting lifecycle states and the transition graph.

Lifecycle:
    DRAFT → PENDING_MODERATION → SCHEDULE_POLL_OPEN → SCHEDULE_CONFIRMED
    → VOTING_OPEN → VOTING_CLOSED → RESULTS_PUBLISHED → PROTOCOL_GENERATED
    → PROTOCOL_APPROVED
    PENDING_MODERATION → REJECTED
    Any state before VOTING_CLOSED → CANCELLED

The table below is the only source of legal moves. Anything not listed
is an invalid transition.
"""

from enum import Enum


class MeetingStatus(str, Enum):
    """Status of a meeting."""

    DRAFT = "draft"
    PENDING_MODERATION = "pending_moderation"
    SCHEDULE_POLL_OPEN = "schedule_poll_open"
    SCHEDULE_CONFIRMED = "schedule_confirmed"
    VOTING_OPEN = "voting_open"
    VOTING_CLOSED = "voting_closed"
    RESULTS_PUBLISHED = "results_published"
    PROTOCOL_GENERATED = "protocol_generated"
    PROTOCOL_APPROVED = "protocol_approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Operation(str, Enum):
    """Lifecycle operations that move a meeting between states."""

    SUBMIT_FOR_MODERATION = "submit_for_moderation"
    APPROVE = "approve"
    REJECT = "reject"
    CONFIRM_SCHEDULE = "confirm_schedule"
    OPEN_VOTING = "open_voting"
    CLOSE_VOTING = "close_voting"
    PUBLISH_RESULTS = "publish_results"
    GENERATE_PROTOCOL = "generate_protocol"
    APPROVE_PROTOCOL = "approve_protocol"
    CANCEL = "cancel"


_CANCELLABLE = (
    MeetingStatus.DRAFT,
    MeetingStatus.PENDING_MODERATION,
    MeetingStatus.SCHEDULE_POLL_OPEN,
    MeetingStatus.SCHEDULE_CONFIRMED,
    MeetingStatus.VOTING_OPEN,
)

# {operation: (source state, target state)}
_MOVES: dict[Operation, tuple[MeetingStatus, MeetingStatus]] = {
    Operation.SUBMIT_FOR_MODERATION: (
        MeetingStatus.DRAFT,
        MeetingStatus.PENDING_MODERATION,
    ),
    Operation.APPROVE: (
        MeetingStatus.PENDING_MODERATION,
        MeetingStatus.SCHEDULE_POLL_OPEN,
    ),
    Operation.REJECT: (MeetingStatus.PENDING_MODERATION, MeetingStatus.REJECTED),
    Operation.CONFIRM_SCHEDULE: (
        MeetingStatus.SCHEDULE_POLL_OPEN,
        MeetingStatus.SCHEDULE_CONFIRMED,
    ),
    Operation.OPEN_VOTING: (
        MeetingStatus.SCHEDULE_CONFIRMED,
        MeetingStatus.VOTING_OPEN,
    ),
    Operation.CLOSE_VOTING: (MeetingStatus.VOTING_OPEN, MeetingStatus.VOTING_CLOSED),
    Operation.PUBLISH_RESULTS: (
        MeetingStatus.VOTING_CLOSED,
        MeetingStatus.RESULTS_PUBLISHED,
    ),
    Operation.GENERATE_PROTOCOL: (
        MeetingStatus.RESULTS_PUBLISHED,
        MeetingStatus.PROTOCOL_GENERATED,
    ),
    Operation.APPROVE_PROTOCOL: (
        MeetingStatus.PROTOCOL_GENERATED,
        MeetingStatus.PROTOCOL_APPROVED,
    ),
}

TRANSITIONS: dict[MeetingStatus, dict[Operation, MeetingStatus]] = {
    status: {} for status in MeetingStatus
}
for _op, (_source, _target) in _MOVES.items():
    TRANSITIONS[_source][_op] = _target
for _source in _CANCELLABLE:
    TRANSITIONS[_source][Operation.CANCEL] = MeetingStatus.CANCELLED

TERMINAL_STATES = frozenset(
    {
        MeetingStatus.PROTOCOL_APPROVED,
        MeetingStatus.REJECTED,
        MeetingStatus.CANCELLED,
    }
)

# States in which the vote set can no longer change
FROZEN_STATES = frozenset(
    {
        MeetingStatus.VOTING_CLOSED,
        MeetingStatus.RESULTS_PUBLISHED,
        MeetingStatus.PROTOCOL_GENERATED,
        MeetingStatus.PROTOCOL_APPROVED,
    }
)

# Column holding the timestamp of entering each state
STATUS_TIMESTAMP_COLUMNS: dict[MeetingStatus, str] = {
    MeetingStatus.PENDING_MODERATION: "submitted_at",
    MeetingStatus.SCHEDULE_POLL_OPEN: "schedule_poll_opened_at",
    MeetingStatus.SCHEDULE_CONFIRMED: "schedule_confirmed_at",
    MeetingStatus.VOTING_OPEN: "voting_opened_at",
    MeetingStatus.VOTING_CLOSED: "voting_closed_at",
    MeetingStatus.RESULTS_PUBLISHED: "results_published_at",
    MeetingStatus.PROTOCOL_GENERATED: "protocol_generated_at",
    MeetingStatus.PROTOCOL_APPROVED: "protocol_approved_at",
    MeetingStatus.REJECTED: "moderated_at",
    MeetingStatus.CANCELLED: "cancelled_at",
}


def source_state(operation: Operation) -> tuple[MeetingStatus, ...]:
    """Return every state the operation may be applied from."""
    return tuple(
        status for status, moves in TRANSITIONS.items() if operation in moves
    )


def target_state(current: MeetingStatus, operation: Operation) -> MeetingStatus | None:
    """Return the state reached by applying operation, or None if illegal."""
    return TRANSITIONS[current].get(operation)


def is_terminal(status: MeetingStatus) -> bool:
    """Check if a state has no outgoing transitions."""
    return status in TERMINAL_STATES
