# dbcoach/orchestration/pipeline.py
"""
Phase Pipeline Executor - drives one session through its mode's phases.

STATE MACHINE:
    idle → running(0) → running(1) → ... → completed
                  ↘           ↘
                   failed      failed

- Phases run strictly one at a time, in mode order
- Each phase's context carries the content of the earlier phases it depends on
- Any surfaced error becomes exactly ONE FatalError event, prior results stay
- completed / failed are terminal: run() again raises SessionStateError
- cancel() abandons the in-flight call and discards whatever it returns
"""
import asyncio
from enum import Enum
from typing import Any, Dict, Optional

from dbcoach.core.config import settings
from dbcoach.core.exceptions import DBCoachError, ErrorKind, GenerationCancelledError, SessionStateError
from dbcoach.core.logging import log, log_section
from dbcoach.core.phase_outcome import PhaseResult
from dbcoach.orchestration.failure_classifier import FailureClassifier
from dbcoach.orchestration.modes import ModeConfig, PhaseSpec, get_mode
from dbcoach.orchestration.state import (
    Session,
    SessionEvent,
    fatal_error,
    phase_completed,
    phase_narrated,
    session_started,
)
from dbcoach.orchestration.store import SessionStore


class PipelineState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def build_phase_context(session: Session, phase: PhaseSpec) -> Dict[str, Any]:
    """Context handed to the generator for one phase."""
    previous: Dict[str, Any] = {}
    for dep in phase.depends_on:
        result = session.raw_phase_outputs.get(dep)
        if result is not None and result.is_completed():
            previous[dep] = result.content
    return {
        "request": session.request.prompt,
        "database_type": session.request.database_type,
        "mode": session.mode,
        "phase": phase.id,
        "title": phase.title,
        "previous": previous,
    }


class PhasePipelineExecutor:
    """
    Runs a single session. One executor per session.

    Usage:
        executor = PhasePipelineExecutor(store, adapter)
        session = await executor.run("Library system", database_type="SQL")
    """

    def __init__(self, store: SessionStore, adapter: Any, mode: Optional[str] = None):
        self.store = store
        self.adapter = adapter
        self.mode_name = mode or settings.generation.default_mode
        self.state = PipelineState.IDLE
        self.current_index: Optional[int] = None
        self.session_id: Optional[str] = None
        self._cancel_event = asyncio.Event()

    @property
    def is_terminal(self) -> bool:
        return self.state in (PipelineState.COMPLETED, PipelineState.FAILED)

    def cancel(self) -> None:
        """Request cancellation. Takes effect at the in-flight call or before the next phase."""
        if self.state == PipelineState.RUNNING:
            log("PIPELINE", "🛑 Cancellation requested", session_id=self.session_id)
        self._cancel_event.set()

    async def run(
        self,
        prompt: str,
        database_type: str = "",
        session_id: Optional[str] = None,
    ) -> Optional[Session]:
        """
        Start a new session and run every phase.

        Returns:
            The session in its terminal state

        Raises:
            MergeConfigurationError: the mode table is inconsistent (nothing started)
            SessionStateError: this executor already ran, or the store is busy
        """
        if self.state != PipelineState.IDLE:
            raise SessionStateError(f"Executor is {self.state.value}; start a new executor for a new session")

        mode = get_mode(self.mode_name)
        mode.validate()

        started = session_started(mode.name, prompt=prompt, database_type=database_type, session_id=session_id)
        self.store.dispatch(started)
        self.session_id = started.session_id
        self.state = PipelineState.RUNNING

        log_section("PIPELINE", f"🚀 {mode.name} generation: {len(mode.phases)} phases", session_id=self.session_id)

        try:
            await self._run_phases(mode)
        except asyncio.CancelledError:
            self._fail("Generation cancelled", ErrorKind.CANCELLED)
            raise
        return self.store.get_session()

    async def _run_phases(self, mode: ModeConfig) -> None:
        for index, phase in enumerate(mode.phases):
            if self._cancel_event.is_set():
                self._fail(str(GenerationCancelledError(phase.id)), ErrorKind.CANCELLED)
                return

            self.current_index = index
            if not self._dispatch(phase_narrated(phase.agent, f"{phase.title} in progress...", phase=phase.id)):
                return
            log("PIPELINE", f"▶️ [{index + 1}/{len(mode.phases)}] {phase.title}", session_id=self.session_id)

            session = self.store.get_session()
            context = build_phase_context(session, phase)

            try:
                result = await self._run_cancellable(phase, context)
            except GenerationCancelledError as e:
                self._fail(str(e), ErrorKind.CANCELLED)
                return
            except Exception as e:
                kind = FailureClassifier.classify(e)
                log("PIPELINE", f"❌ {phase.title} failed ({kind.value}): {e}", session_id=self.session_id)
                self._fail(str(e), kind)
                return

            if not self._dispatch(phase_completed(result)):
                return
            log("PIPELINE", f"✅ {phase.title} complete", session_id=self.session_id)

        self.current_index = None
        self.state = PipelineState.COMPLETED
        log("SESSION", "🎉 All phases complete", session_id=self.session_id)

    async def _run_cancellable(self, phase: PhaseSpec, context: Dict[str, Any]) -> PhaseResult:
        call = asyncio.ensure_future(self.adapter.run(phase, context))
        cancelled = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait({call, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            cancelled.cancel()

        # Cancellation wins even when the call finished in the same tick
        if call in done and not self._cancel_event.is_set():
            return call.result()

        # Abandoned call: its eventual result or error is discarded
        call.cancel()
        await asyncio.gather(call, return_exceptions=True)
        raise GenerationCancelledError(phase.id)

    def _dispatch(self, event: SessionEvent) -> bool:
        """Dispatch one event. False once this session can no longer continue."""
        try:
            session = self.store.dispatch(event)
        except DBCoachError as e:
            log("PIPELINE", f"❌ {type(event).__name__} rejected: {e}", session_id=self.session_id)
            self._fail(str(e), e.kind)
            return False

        if session is None or session.session_id != self.session_id:
            # Reset or replaced from outside: nothing of ours left to fail
            self.state = PipelineState.FAILED
            log("PIPELINE", "⚠️ Session was reset or replaced, stopping", session_id=self.session_id)
            return False

        if session.error is not None:
            self.state = PipelineState.FAILED
            log("PIPELINE", f"⚠️ Session failed elsewhere: {session.error}", session_id=self.session_id)
            return False
        return True

    def _fail(self, reason: str, kind: ErrorKind) -> None:
        self.state = PipelineState.FAILED
        self.store.dispatch(fatal_error(reason, kind))
        log("SESSION", f"💥 Session failed ({kind.value}): {reason}", session_id=self.session_id)
