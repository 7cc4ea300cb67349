# retrace/errors.py
"""
Error taxonomy for the operation log.

Strategies raise these internally and convert them to failed results;
nothing raised here crosses the strategy/tracker boundary except
UnknownOperationKind, which the tracker converts itself.
"""
from enum import Enum


class ErrorKind(str, Enum):
    """Categories of undo/redo failure."""
    VALIDATION_ERROR = "validation_error"
    CONTENT_UNAVAILABLE = "content_unavailable"
    TARGET_NOT_FOUND = "target_not_found"
    IO_FAILURE = "io_failure"
    UNSUPPORTED_REVERSAL = "unsupported_reversal"
    UNKNOWN_OPERATION_KIND = "unknown_operation_kind"
    # Tracker-level failures
    OPERATION_NOT_FOUND = "operation_not_found"
    DEPENDENCY_BLOCKED = "dependency_blocked"
    INVALID_STATE = "invalid_state"
    IN_PROGRESS = "in_progress"


# Failures that no retry can fix; the tracker marks the operation as failed
NON_RECOVERABLE_ERRORS = frozenset({
    ErrorKind.CONTENT_UNAVAILABLE,
    ErrorKind.UNKNOWN_OPERATION_KIND,
})


class RetraceError(Exception):
    """Base class for operation log errors."""
    kind: ErrorKind = ErrorKind.IO_FAILURE


class ValidationError(RetraceError):
    """A required payload field is missing."""
    kind = ErrorKind.VALIDATION_ERROR


class ContentUnavailable(RetraceError):
    """Restoration needs content that was never captured."""
    kind = ErrorKind.CONTENT_UNAVAILABLE


class TargetNotFound(RetraceError):
    """The file, directory or path a mutation expects is absent."""
    kind = ErrorKind.TARGET_NOT_FOUND


class IOFailure(RetraceError):
    """An underlying filesystem call failed."""
    kind = ErrorKind.IO_FAILURE


class UnsupportedReversal(RetraceError):
    """The operation kind cannot be reverted programmatically."""
    kind = ErrorKind.UNSUPPORTED_REVERSAL


class UnknownOperationKind(RetraceError):
    """No strategy is registered for the operation kind."""
    kind = ErrorKind.UNKNOWN_OPERATION_KIND

    def __init__(self, kind_value):
        self.kind_value = kind_value
        super().__init__(f"Unknown operation kind: {kind_value}")
