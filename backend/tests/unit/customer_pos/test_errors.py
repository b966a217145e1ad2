"""Unit tests for the auto-match error taxonomy"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

import sys
from pathlib import Path
backend_src = Path(__file__).parent.parent.parent.parent / "src"
sys.path.insert(0, str(backend_src))

from customer_pos.errors import (
    BatchTooLargeError,
    ConcurrentReconciliationError,
    InvalidStateError,
    ReconciliationError,
    TransientError,
    db_errors_as_transient,
)


class TestDbErrorsAsTransient:
    """Test cases for db_errors_as_transient"""

    def test_operational_error_becomes_transient(self):
        with pytest.raises(TransientError) as exc_info:
            with db_errors_as_transient("Loading customer PO"):
                raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

        assert str(exc_info.value).startswith("Loading customer PO failed")
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_integrity_error_is_not_retried(self):
        with pytest.raises(IntegrityError):
            with db_errors_as_transient("Updating customer PO item"):
                raise IntegrityError("UPDATE", {}, Exception("violates foreign key"))

    def test_passes_through_on_success(self):
        with db_errors_as_transient("Loading RFQ items"):
            value = 42

        assert value == 42


class TestErrorHierarchy:
    """Callers rely on the subclass relationships for HTTP mapping and retries"""

    def test_batch_too_large_is_invalid_state(self):
        assert issubclass(BatchTooLargeError, InvalidStateError)

    def test_concurrent_run_is_retryable(self):
        assert issubclass(ConcurrentReconciliationError, TransientError)

    def test_all_errors_share_a_base(self):
        for error in (BatchTooLargeError, ConcurrentReconciliationError, TransientError):
            assert issubclass(error, ReconciliationError)
