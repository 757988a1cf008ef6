# dbcoach/core/__init__.py
"""
Core module - configuration, logging, error taxonomy and shared types.
"""
from .config import settings
from .exceptions import (
    ErrorKind,
    RETRYABLE_KINDS,
    DBCoachError,
    GenerationError,
    RetryExhaustedError,
    GenerationCancelledError,
    MergeConfigurationError,
    SessionStateError,
    PersistenceError,
)
from .phase_outcome import PhaseStatus, PhaseResult

__all__ = [
    # Config
    "settings",
    # Exceptions
    "ErrorKind",
    "RETRYABLE_KINDS",
    "DBCoachError",
    "GenerationError",
    "RetryExhaustedError",
    "GenerationCancelledError",
    "MergeConfigurationError",
    "SessionStateError",
    "PersistenceError",
    # Types
    "PhaseStatus",
    "PhaseResult",
]
