# dbcoach/orchestration/__init__.py
"""
Orchestration module - modes, session state, merging, retries and the
phase pipeline.
"""
from .modes import MODES, ModeConfig, PhaseSpec, SlotRule, get_mode
from .merger import merge
from .state import Session, apply, replay
from .progress import Progress, aggregate
from .store import SessionFinalized, SessionStore
from .retry_policy import RetryPolicy
from .failure_classifier import FailureClassifier
from .pipeline import PhasePipelineExecutor, PipelineState
from .runner import GenerationRunner

__all__ = [
    "MODES",
    "ModeConfig",
    "PhaseSpec",
    "SlotRule",
    "get_mode",
    "merge",
    "Session",
    "apply",
    "replay",
    "Progress",
    "aggregate",
    "SessionFinalized",
    "SessionStore",
    "RetryPolicy",
    "FailureClassifier",
    "PhasePipelineExecutor",
    "PipelineState",
    "GenerationRunner",
]
