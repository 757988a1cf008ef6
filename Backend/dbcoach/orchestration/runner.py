# dbcoach/orchestration/runner.py
"""
GenerationRunner - owns the background task of the current session.

The HTTP and WebSocket layers never touch an executor directly: they ask
the runner to start, cancel or reset, and read state from the store.
"""
import asyncio
import uuid
from typing import Any, Callable, Optional

from dbcoach.core.config import settings
from dbcoach.core.exceptions import SessionStateError
from dbcoach.core.logging import log
from dbcoach.orchestration.modes import get_mode
from dbcoach.orchestration.pipeline import PhasePipelineExecutor, PipelineState
from dbcoach.orchestration.state import session_reset
from dbcoach.orchestration.store import SessionStore


class GenerationRunner:
    """One running executor at a time, on top of one SessionStore."""

    def __init__(self, store: SessionStore, adapter_factory: Callable[[], Any]):
        self.store = store
        self.adapter_factory = adapter_factory
        self.executor: Optional[PhasePipelineExecutor] = None
        self.task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self, prompt: str, database_type: str = "", mode: Optional[str] = None) -> str:
        """
        Launch a new session in the background.

        Returns:
            The new session id

        Raises:
            SessionStateError: a session is still generating
            MergeConfigurationError: unknown or inconsistent mode
        """
        current = self.store.get_session()
        if self.is_running or (current is not None and current.is_generating):
            raise SessionStateError("A generation is already running; cancel or reset it first")

        mode_name = mode or settings.generation.default_mode
        get_mode(mode_name).validate()

        session_id = str(uuid.uuid4())
        self.executor = PhasePipelineExecutor(self.store, self.adapter_factory(), mode=mode_name)
        self.task = asyncio.get_running_loop().create_task(
            self.executor.run(prompt, database_type=database_type, session_id=session_id)
        )
        self.task.add_done_callback(self._on_done)
        log("SESSION", f"📝 Session queued ({mode_name})", session_id=session_id)
        return session_id

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log("SESSION", f"❌ Generation task ended with error: {error}")

    def cancel(self) -> bool:
        """Ask the running executor to stop. False when nothing is running."""
        if self.executor is None or self.executor.state not in (PipelineState.IDLE, PipelineState.RUNNING):
            return False
        if not self.is_running:
            return False
        self.executor.cancel()
        return True

    async def wait(self) -> None:
        """Wait for the current background task to settle."""
        if self.task is not None:
            await asyncio.gather(self.task, return_exceptions=True)

    async def reset(self) -> None:
        """Cancel anything running and clear the current session."""
        self.cancel()
        await self.wait()
        self.store.dispatch(session_reset())
        self.executor = None
        self.task = None

    async def shutdown(self) -> None:
        self.cancel()
        await self.wait()
