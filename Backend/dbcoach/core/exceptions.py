# dbcoach/core/exceptions.py
"""
Custom exceptions and the error taxonomy shared by the pipeline.
"""
from enum import Enum
from typing import Optional, Dict, Any


class ErrorKind(Enum):
    """Classified error kinds. The first four are retryable."""
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    NETWORK = "network"
    INVALID_REQUEST = "invalid_request"
    AUTH = "auth"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"
    RETRY_EXHAUSTED = "retry_exhausted"
    CANCELLED = "cancelled"
    MERGE_CONFIGURATION = "merge_configuration"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMITED,
    ErrorKind.UNAVAILABLE,
    ErrorKind.TIMEOUT,
    ErrorKind.NETWORK,
})


class DBCoachError(Exception):
    """Base exception for all DBCoach errors."""
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class GenerationError(DBCoachError):
    """A generator call for one phase failed."""
    def __init__(self, phase: str, message: str, kind: ErrorKind = ErrorKind.UNKNOWN):
        super().__init__(
            f"{phase} generation failed ({kind.value}): {message}",
            {"phase": phase, "kind": kind.value}
        )
        self.phase = phase
        self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class RetryExhaustedError(DBCoachError):
    """Retryable failures kept happening until the retry budget ran out."""
    kind = ErrorKind.RETRY_EXHAUSTED

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(
            f"Operation failed after {attempts} attempts. Last error: {last_error}",
            {"attempts": attempts, "last_error": str(last_error)}
        )
        self.attempts = attempts
        self.last_error = last_error


class GenerationCancelledError(DBCoachError):
    """The caller cancelled the running session."""
    kind = ErrorKind.CANCELLED

    def __init__(self, phase: Optional[str] = None):
        message = f"Generation cancelled during {phase}" if phase else "Generation cancelled"
        super().__init__(message, {"phase": phase})
        self.phase = phase


class MergeConfigurationError(DBCoachError):
    """A mode's slot or dependency table references a phase it does not run."""
    kind = ErrorKind.MERGE_CONFIGURATION

    def __init__(self, mode: str, message: str):
        super().__init__(f"Invalid configuration for mode '{mode}': {message}", {"mode": mode})
        self.mode = mode


class SessionStateError(DBCoachError):
    """An operation was attempted in a session or pipeline state that forbids it."""
    kind = ErrorKind.CONFIGURATION


class PersistenceError(DBCoachError):
    """Finished design could not be stored."""
    def __init__(self, session_id: str, message: str):
        super().__init__(
            f"Cannot persist session {session_id}: {message}",
            {"session_id": session_id}
        )
        self.session_id = session_id
