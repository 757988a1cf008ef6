# dbcoach/orchestration/state.py
"""
Session state machine - event-sourced, single-writer.

apply(session, event) is a PURE reducer:
- same (session, event) pair → same result, so any event log can be replayed
- ids and timestamps travel inside events, the reducer never reads a clock
- sessions are frozen; every transition returns a new Session

Closed event set:
    SessionStarted   → fresh session for the requested mode
    PhaseCompleted   → record raw output, recompute completed phases + artifacts
    FatalError       → terminal error, nothing recorded is discarded
    PhaseNarrated    → append a narration entry (no control effect)
    SessionReset     → no active session

A terminal session (is_generating == False) ignores every event except
SessionStarted (which replaces it with a brand-new session) and SessionReset.
"""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from dbcoach.core.exceptions import ErrorKind, SessionStateError
from dbcoach.core.phase_outcome import PhaseResult, PhaseStatus
from dbcoach.orchestration.merger import merge
from dbcoach.orchestration.modes import get_mode


def _empty_mapping() -> Mapping[str, PhaseResult]:
    return MappingProxyType({})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LogEntry:
    """One line of progress narration. Audit/UI only, never read for control."""
    label: str
    message: str
    timestamp: datetime
    phase: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "phase": self.phase,
        }


@dataclass(frozen=True)
class SessionRequest:
    """What the user asked for."""
    prompt: str = ""
    database_type: str = ""


@dataclass(frozen=True)
class Session:
    """Root aggregate for one generation run."""
    session_id: str
    mode: str
    phases: Tuple[str, ...]
    request: SessionRequest = field(default_factory=SessionRequest)
    started_at: Optional[datetime] = None
    completed_phases: FrozenSet[str] = frozenset()
    artifacts: Mapping[str, PhaseResult] = field(default_factory=_empty_mapping)
    raw_phase_outputs: Mapping[str, PhaseResult] = field(default_factory=_empty_mapping)
    is_generating: bool = True
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    log: Tuple[LogEntry, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return not self.is_generating

    @property
    def status(self) -> str:
        if self.is_generating:
            return "running"
        return "failed" if self.error is not None else "completed"

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly snapshot for the presentation and persistence layers."""
        return {
            "session_id": self.session_id,
            "mode": self.mode,
            "status": self.status,
            "phases": list(self.phases),
            "request": {"prompt": self.request.prompt, "database_type": self.request.database_type},
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_phases": [p for p in self.phases if p in self.completed_phases],
            "artifacts": {slot: r.to_dict() for slot, r in self.artifacts.items()},
            "raw_phase_outputs": {phase: r.to_dict() for phase, r in self.raw_phase_outputs.items()},
            "is_generating": self.is_generating,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "log": [entry.to_dict() for entry in self.log],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SessionStarted:
    session_id: str
    mode: str
    timestamp: datetime
    request: SessionRequest = field(default_factory=SessionRequest)


@dataclass(frozen=True)
class PhaseCompleted:
    result: PhaseResult
    timestamp: datetime


@dataclass(frozen=True)
class FatalError:
    reason: str
    timestamp: datetime
    kind: ErrorKind = ErrorKind.UNKNOWN


@dataclass(frozen=True)
class PhaseNarrated:
    label: str
    message: str
    timestamp: datetime
    phase: Optional[str] = None


@dataclass(frozen=True)
class SessionReset:
    pass


SessionEvent = Union[SessionStarted, PhaseCompleted, FatalError, PhaseNarrated, SessionReset]


# Event constructors. These are the only place ids and clocks are read.

def session_started(
    mode: str,
    prompt: str = "",
    database_type: str = "",
    session_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> SessionStarted:
    return SessionStarted(
        session_id=session_id or str(uuid.uuid4()),
        mode=mode,
        timestamp=timestamp or _utcnow(),
        request=SessionRequest(prompt=prompt, database_type=database_type),
    )


def phase_completed(result: PhaseResult, timestamp: Optional[datetime] = None) -> PhaseCompleted:
    return PhaseCompleted(result=result, timestamp=timestamp or _utcnow())


def fatal_error(reason: str, kind: ErrorKind = ErrorKind.UNKNOWN, timestamp: Optional[datetime] = None) -> FatalError:
    return FatalError(reason=reason, kind=kind, timestamp=timestamp or _utcnow())


def phase_narrated(
    label: str,
    message: str,
    phase: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> PhaseNarrated:
    return PhaseNarrated(label=label, message=message, phase=phase, timestamp=timestamp or _utcnow())


def session_reset() -> SessionReset:
    return SessionReset()


# ═══════════════════════════════════════════════════════════════════════════════
# REDUCER
# ═══════════════════════════════════════════════════════════════════════════════

def _start(event: SessionStarted) -> Session:
    mode = get_mode(event.mode)
    log: Tuple[LogEntry, ...] = ()
    if event.request.prompt:
        target = f"{event.request.database_type} database" if event.request.database_type else "database"
        log = (LogEntry("user", f"Create a {target}: {event.request.prompt}", event.timestamp),)
    return Session(
        session_id=event.session_id,
        mode=mode.name,
        phases=mode.phase_ids(),
        request=event.request,
        started_at=event.timestamp,
        log=log,
    )


def _record_phase(session: Session, event: PhaseCompleted) -> Session:
    result = event.result
    if result.phase not in session.phases:
        raise SessionStateError(
            f"Phase '{result.phase}' is not part of mode '{session.mode}' {list(session.phases)}"
        )

    raw = dict(session.raw_phase_outputs)
    raw[result.phase] = result
    completed = frozenset(phase for phase, r in raw.items() if r.status == PhaseStatus.COMPLETED)
    artifacts = merge(raw, get_mode(session.mode))

    verb = "completed" if result.status == PhaseStatus.COMPLETED else "failed"
    entry = LogEntry(
        label=result.agent or result.title,
        message=f"{result.title} {verb}",
        timestamp=event.timestamp,
        phase=result.phase,
    )

    return replace(
        session,
        raw_phase_outputs=MappingProxyType(raw),
        completed_phases=completed,
        artifacts=MappingProxyType(artifacts),
        is_generating=completed != frozenset(session.phases),
        log=session.log + (entry,),
    )


def _fail(session: Session, event: FatalError) -> Session:
    reason = event.reason or "Generation failed"
    entry = LogEntry(label="system", message=f"❌ {reason}", timestamp=event.timestamp)
    return replace(
        session,
        is_generating=False,
        error=reason,
        error_kind=event.kind,
        log=session.log + (entry,),
    )


def _narrate(session: Session, event: PhaseNarrated) -> Session:
    entry = LogEntry(label=event.label, message=event.message, timestamp=event.timestamp, phase=event.phase)
    return replace(session, log=session.log + (entry,))


def apply(session: Optional[Session], event: SessionEvent) -> Optional[Session]:
    """
    Apply one event.

    Args:
        session: Current session, or None when no session is active
        event: One of the SessionEvent types

    Returns:
        The next session (None after SessionReset)

    Raises:
        SessionStateError: PhaseCompleted for a phase outside the session's mode
        MergeConfigurationError: SessionStarted for an unknown mode
    """
    if isinstance(event, SessionStarted):
        return _start(event)

    if isinstance(event, SessionReset):
        return None

    # Events without an active session are dropped
    if session is None:
        return None

    # Terminal sessions are immutable
    if session.is_terminal:
        return session

    if isinstance(event, PhaseCompleted):
        return _record_phase(session, event)

    if isinstance(event, FatalError):
        return _fail(session, event)

    if isinstance(event, PhaseNarrated):
        return _narrate(session, event)

    raise TypeError(f"Unknown session event: {type(event).__name__}")


def replay(events: Iterable[SessionEvent], session: Optional[Session] = None) -> Optional[Session]:
    """Fold an event sequence into a session."""
    for event in events:
        session = apply(session, event)
    return session


def invariant_violations(session: Optional[Session]) -> List[str]:
    """
    Check the session invariants.

    Returns:
        Human-readable list of violations (empty when the session is consistent)
    """
    if session is None:
        return []

    violations: List[str] = []

    if session.is_generating and session.error is not None:
        violations.append("session is generating and has an error")

    completed_in_raw = {p for p, r in session.raw_phase_outputs.items() if r.status == PhaseStatus.COMPLETED}
    if set(session.completed_phases) != completed_in_raw:
        violations.append(
            f"completed_phases {sorted(session.completed_phases)} != completed raw outputs {sorted(completed_in_raw)}"
        )

    if set(session.completed_phases) == set(session.phases) and session.is_generating:
        violations.append("all phases complete but session still generating")

    if dict(session.artifacts) != merge(session.raw_phase_outputs, get_mode(session.mode)):
        violations.append("artifacts are not derivable from raw_phase_outputs")

    return violations
