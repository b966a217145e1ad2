"""Customer PO status state machine.

State Flow:
    PENDING → MATCHED

MATCHED → MATCHED is allowed so auto-match can be re-run.
"""

from enum import Enum
from typing import List


class CustomerPoStatus(str, Enum):
    """Customer PO status enumeration."""
    PENDING = "PENDING"
    MATCHED = "MATCHED"


class CustomerPoItemStatus(str, Enum):
    """Customer PO item match status."""
    UNMATCHED = "UNMATCHED"
    MATCHED = "MATCHED"


ALLOWED_TRANSITIONS = {
    CustomerPoStatus.PENDING: [CustomerPoStatus.MATCHED],
    CustomerPoStatus.MATCHED: [CustomerPoStatus.MATCHED],
}


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


def validate_transition(
    current_status: CustomerPoStatus,
    new_status: CustomerPoStatus
) -> None:
    """Validate that a state transition is allowed.

    Args:
        current_status: Current customer PO status
        new_status: Target status to transition to

    Raises:
        StateTransitionError: If transition is not allowed
    """
    allowed = get_allowed_transitions(current_status)
    if new_status not in allowed:
        raise StateTransitionError(
            f"Invalid transition: {current_status.value} -> {new_status.value}. "
            f"Allowed transitions from {current_status.value}: "
            f"{[s.value for s in allowed]}"
        )


def can_transition(
    current_status: CustomerPoStatus,
    new_status: CustomerPoStatus
) -> bool:
    """Check if a state transition is allowed without raising exception."""
    return new_status in get_allowed_transitions(current_status)


def get_allowed_transitions(status: CustomerPoStatus) -> List[CustomerPoStatus]:
    """Statuses reachable from status; empty for unknown statuses."""
    return ALLOWED_TRANSITIONS.get(status, [])
