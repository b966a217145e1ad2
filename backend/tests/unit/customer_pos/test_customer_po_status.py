"""Unit tests for the customer PO state machine

State Flow:
    PENDING → MATCHED
    MATCHED → MATCHED (auto-match re-run)
"""

import pytest

import sys
from pathlib import Path
backend_src = Path(__file__).parent.parent.parent.parent / "src"
sys.path.insert(0, str(backend_src))

from customer_pos.status import (
    CustomerPoStatus,
    StateTransitionError,
    can_transition,
    get_allowed_transitions,
    validate_transition,
)


class TestCustomerPoStatus:
    """Test cases for customer PO status transitions"""

    def test_pending_to_matched(self):
        validate_transition(CustomerPoStatus.PENDING, CustomerPoStatus.MATCHED)
        assert can_transition(CustomerPoStatus.PENDING, CustomerPoStatus.MATCHED)

    def test_rerun_keeps_matched(self):
        validate_transition(CustomerPoStatus.MATCHED, CustomerPoStatus.MATCHED)
        assert can_transition(CustomerPoStatus.MATCHED, CustomerPoStatus.MATCHED)

    def test_matched_never_returns_to_pending(self):
        with pytest.raises(StateTransitionError) as exc_info:
            validate_transition(CustomerPoStatus.MATCHED, CustomerPoStatus.PENDING)

        assert "MATCHED -> PENDING" in str(exc_info.value)
        assert not can_transition(CustomerPoStatus.MATCHED, CustomerPoStatus.PENDING)

    def test_pending_to_pending_is_not_a_transition(self):
        assert not can_transition(CustomerPoStatus.PENDING, CustomerPoStatus.PENDING)

    def test_allowed_transitions(self):
        assert get_allowed_transitions(CustomerPoStatus.PENDING) == [CustomerPoStatus.MATCHED]
        assert get_allowed_transitions(CustomerPoStatus.MATCHED) == [CustomerPoStatus.MATCHED]

    def test_error_lists_allowed_targets(self):
        with pytest.raises(StateTransitionError, match=r"Allowed transitions from MATCHED: \['MATCHED'\]"):
            validate_transition(CustomerPoStatus.MATCHED, CustomerPoStatus.PENDING)

    def test_status_values_match_database_enum(self):
        assert CustomerPoStatus("PENDING") is CustomerPoStatus.PENDING
        assert CustomerPoStatus.MATCHED.value == "MATCHED"
