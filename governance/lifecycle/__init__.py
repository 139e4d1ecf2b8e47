"""Meeting lifecycle: states, transition graph and the controller.

Only the state definitions are exported here; import the controller from
governance.lifecycle.controller.
"""

from governance.lifecycle.states import (
    TERMINAL_STATES,
    TRANSITIONS,
    MeetingStatus,
    Operation,
)

__all__ = [
    "MeetingStatus",
    "Operation",
    "TRANSITIONS",
    "TERMINAL_STATES",
]
