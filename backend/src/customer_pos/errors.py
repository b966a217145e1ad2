"""Error taxonomy for customer PO auto-matching.

NotFoundError and InvalidStateError are raised before anything is written.
TransientError marks I/O failures the caller may retry; FatalError wraps
anything unexpected. A failed run is rolled back, and because every run
overwrites all match fields the caller can always re-invoke it.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import OperationalError, InterfaceError, TimeoutError as PoolTimeoutError


class ReconciliationError(Exception):
    """Base class for auto-match errors."""
    pass


class NotFoundError(ReconciliationError):
    """Customer PO (or item) does not exist."""
    pass


class InvalidStateError(ReconciliationError):
    """Customer PO cannot be matched in its current state."""
    pass


class BatchTooLargeError(InvalidStateError):
    """Items x RFQ items exceeds the configured scan budget."""
    pass


class TransientError(ReconciliationError):
    """Repository or quote source I/O failure; safe to retry."""
    pass


class ConcurrentReconciliationError(TransientError):
    """Customer PO was modified by another run while this one was in flight."""
    pass


class FatalError(ReconciliationError):
    """Unexpected internal error; the run was aborted and rolled back."""
    pass


@contextmanager
def db_errors_as_transient(operation: str) -> Iterator[None]:
    """Translate connection-level database failures into TransientError.

    Args:
        operation: Short description used in the error message

    Raises:
        TransientError: On operational/interface/pool-timeout errors
    """
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError) as e:
        raise TransientError(f"{operation} failed: {str(e)}") from e
