# dbcoach/persistence/writer.py
"""
Finalize sink - stores finished designs as GeneratedDesign documents.

The store hands every completed session to on_finalize listeners exactly
once. Writing happens in a background task; a failed write is logged and
never feeds back into session state.
"""
import asyncio
from typing import Optional, Set

from dbcoach.core.exceptions import PersistenceError
from dbcoach.core.logging import log
from dbcoach.models.design import GeneratedDesign
from dbcoach.orchestration.state import SessionRequest
from dbcoach.orchestration.store import SessionFinalized, SessionStore


async def persist_design(
    finalized: SessionFinalized,
    request: Optional[SessionRequest] = None,
) -> GeneratedDesign:
    """
    Insert one finished design.

    Raises:
        PersistenceError: the insert failed
    """
    request = request or SessionRequest()
    document = GeneratedDesign(
        session_id=finalized.session_id,
        mode=finalized.mode,
        prompt=request.prompt or None,
        database_type=request.database_type or None,
        raw_phase_outputs={phase: r.to_dict() for phase, r in finalized.raw_phase_outputs.items()},
        artifacts={slot: r.to_dict() for slot, r in finalized.artifacts.items()},
        completed_phases=[phase for phase, r in finalized.raw_phase_outputs.items() if r.is_completed()],
    )
    try:
        await document.insert()
    except Exception as e:
        raise PersistenceError(finalized.session_id, str(e)) from e

    log("PERSIST", f"💾 Stored design ({len(document.artifacts)} artifacts)", session_id=finalized.session_id)
    return document


class DesignWriter:
    """Connects a SessionStore's finalize events to persist_design()."""

    def __init__(self, store: SessionStore):
        self.store = store
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe = None

    def attach(self) -> "DesignWriter":
        if self._unsubscribe is None:
            self._unsubscribe = self.store.on_finalize(self.handle)
        return self

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle(self, finalized: SessionFinalized) -> None:
        session = self.store.get_session()
        request = session.request if session and session.session_id == finalized.session_id else None

        task = asyncio.get_running_loop().create_task(persist_design(finalized, request))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log("PERSIST", f"⚠️ {error}")

    async def drain(self) -> None:
        """Wait for pending writes (used at shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
