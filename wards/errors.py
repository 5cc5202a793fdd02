"""
Typed errors raised by the allocation engine and the consistency gateway.

Each error carries a stable ``code`` which the API exception handler
copies into the response envelope, so clients can branch on it without
parsing messages.
"""
from __future__ import annotations

from typing import Iterable, Optional


class AllocationError(Exception):
    """Base class for every rejection produced by the wards core."""
    code = 'allocation_error'

    def __init__(self, message: str = '') -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class NotFoundError(AllocationError):
    """A referenced patient, room or allocation does not exist."""
    code = 'not_found'


class ConflictError(AllocationError):
    """Exclusive occupancy or allocation precondition violated."""
    code = 'conflict'


class InvalidStateError(AllocationError):
    """Action attempted against a terminal or wrong-state allocation."""
    code = 'invalid_state'


class ValidationError(AllocationError):
    """Malformed input, detected before any repository interaction."""
    code = 'validation_error'


class PartialFailureError(AllocationError):
    """A multi-record write sequence stopped part way.

    ``committed`` lists the records (``"allocation:12"``, ``"room:3"``)
    that were written before the failure; ``failed`` names the record
    whose write raised and ``pending`` the ones never attempted.  Nothing
    is rolled back: the caller must re-read and repair.
    """
    code = 'partial_failure'

    def __init__(
        self,
        message: str,
        *,
        committed: Iterable[str] = (),
        failed: Optional[str] = None,
        pending: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.committed = list(committed)
        self.failed = failed
        self.pending = list(pending)
