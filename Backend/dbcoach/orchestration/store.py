# dbcoach/orchestration/store.py
"""
SessionStore - the single writer of session state.

- dispatch() is synchronous: apply → notify subscribers → maybe finalize
- a dispatch issued from inside a listener is queued and applied after the
  current one, so every subscriber observes transitions in applied order
- finished sessions are handed to on_finalize listeners exactly once
"""
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Mapping, Optional, Set

from dbcoach.core.exceptions import DBCoachError, SessionStateError
from dbcoach.core.logging import log
from dbcoach.core.phase_outcome import PhaseResult
from dbcoach.orchestration.progress import Progress, aggregate
from dbcoach.orchestration.state import Session, SessionEvent, SessionStarted, apply

Listener = Callable[[Optional[Session], SessionEvent], None]


@dataclass(frozen=True)
class SessionFinalized:
    """Emitted once per session that completed every phase."""
    session_id: str
    mode: str
    raw_phase_outputs: Mapping[str, PhaseResult]
    artifacts: Mapping[str, PhaseResult]


FinalizeListener = Callable[[SessionFinalized], None]


class SessionStore:
    """Holds the current session and applies events to it."""

    def __init__(self, session: Optional[Session] = None) -> None:
        self._session = session
        self._listeners: List[Listener] = []
        self._finalize_listeners: List[FinalizeListener] = []
        self._queue: Deque[SessionEvent] = deque()
        self._dispatching = False
        self._finalized: Set[str] = set()

    # ───────────────────────────────────────────────────────────────────────
    # Write side
    # ───────────────────────────────────────────────────────────────────────

    def dispatch(self, event: SessionEvent) -> Optional[Session]:
        """
        Apply an event to the current session.

        Returns:
            The session after this event and any events queued behind it

        Raises:
            SessionStateError: SessionStarted while a session is generating,
                or a phase outside the session's mode

        Only the caller's own event can raise. An event queued by a listener
        that gets rejected is logged and dropped; events behind it still apply.
        """
        self._queue.append(event)
        if self._dispatching:
            return self._session

        self._dispatching = True
        try:
            self._apply_one(self._queue.popleft())
            while self._queue:
                queued = self._queue.popleft()
                try:
                    self._apply_one(queued)
                except DBCoachError as e:
                    log("STORE", f"⚠️ Queued {type(queued).__name__} rejected: {e}")
        finally:
            self._dispatching = False
            self._queue.clear()
        return self._session

    def _apply_one(self, event: SessionEvent) -> None:
        previous = self._session
        if isinstance(event, SessionStarted) and previous is not None and previous.is_generating:
            raise SessionStateError(
                f"Session {previous.session_id} is still generating; cancel or reset it first"
            )

        self._session = apply(previous, event)
        log("STORE", f"{type(event).__name__} applied", session_id=self._session.session_id if self._session else None)

        for listener in list(self._listeners):
            try:
                listener(self._session, event)
            except Exception as e:
                log("STORE", f"⚠️ Subscriber failed on {type(event).__name__}: {e}")

        self._maybe_finalize()

    def _maybe_finalize(self) -> None:
        session = self._session
        if session is None or session.is_generating or session.error is not None:
            return
        if session.session_id in self._finalized:
            return
        self._finalized.add(session.session_id)

        finalized = SessionFinalized(
            session_id=session.session_id,
            mode=session.mode,
            raw_phase_outputs=session.raw_phase_outputs,
            artifacts=session.artifacts,
        )
        log("SESSION", f"🏁 Session finalized ({len(session.artifacts)} artifacts)", session_id=session.session_id)
        for listener in list(self._finalize_listeners):
            try:
                listener(finalized)
            except Exception as e:
                log("PERSIST", f"⚠️ Finalize listener failed: {e}", session_id=session.session_id)

    # ───────────────────────────────────────────────────────────────────────
    # Subscriptions
    # ───────────────────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; the returned callable removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_finalize(self, listener: FinalizeListener) -> Callable[[], None]:
        self._finalize_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._finalize_listeners:
                self._finalize_listeners.remove(listener)

        return unsubscribe

    # ───────────────────────────────────────────────────────────────────────
    # Read side
    # ───────────────────────────────────────────────────────────────────────

    def get_session(self) -> Optional[Session]:
        return self._session

    def get_slot_content(self, slot: str) -> Optional[PhaseResult]:
        if self._session is None:
            return None
        return self._session.artifacts.get(slot)

    def get_progress(self) -> Progress:
        return aggregate(self._session)

    def snapshot(self) -> Optional[Dict]:
        return self._session.to_dict() if self._session else None
