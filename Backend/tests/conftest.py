# tests/conftest.py
"""
Shared pytest fixtures for the DBCoach pipeline tests.

Provides:
- Scripted generator (per-phase responses / failures, call counting)
- Retry policy with recorded, zero-length sleeps
- Session store + adapter wiring
- Mock WebSocket manager
- Async HTTP client over the FastAPI app
"""
import asyncio
import json
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

from httpx import AsyncClient, ASGITransport

from dbcoach.core.phase_outcome import PhaseResult, PhaseStatus
from dbcoach.llm.adapter import GeneratorAdapter
from dbcoach.orchestration.retry_policy import RetryPolicy
from dbcoach.orchestration.store import SessionStore
from tests.utils.call_counter import CallCounter


# ═══════════════════════════════════════════════════════
# MOCK TYPES
# ═══════════════════════════════════════════════════════

def fenced_json(payload: Any, reasoning: str = "") -> str:
    """A generator response with an optional REASONING preface and a ```json block."""
    body = json.dumps(payload, indent=2)
    prefix = f"REASONING: {reasoning}\n\n" if reasoning else ""
    return f"{prefix}```json\n{body}\n```"


def default_response(phase: str) -> str:
    return fenced_json({"phase": phase, "ok": True}, reasoning=f"Designed the {phase} deliverable.")


class ScriptedGenerator:
    """
    Generator double.

    script maps phase id -> list of items consumed one per call:
    - str: returned as the raw response
    - Exception instance: raised
    - async callable(phase, context): awaited, its return value is the response
    Once a phase's list is empty, default_response(phase) is returned.
    """

    def __init__(self, script: Optional[Dict[str, List[Any]]] = None, counter: Optional[CallCounter] = None):
        self.script = {phase: list(items) for phase, items in (script or {}).items()}
        self.counter = counter or CallCounter()
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def invoke(self, phase: str, context: Dict[str, Any], timeout: float) -> str:
        self.counter.inc(phase)
        self.calls.append((phase, context))

        queue = self.script.get(phase)
        item = queue.pop(0) if queue else default_response(phase)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return await item(phase, context)
        return item

    def phases_called(self) -> List[str]:
        return [phase for phase, _ in self.calls]


class RecordingSleep:
    """Stands in for asyncio.sleep; records the delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_result(phase: str, content: Any = None, status: PhaseStatus = PhaseStatus.COMPLETED,
                title: Optional[str] = None, rationale: str = "") -> PhaseResult:
    return PhaseResult(
        phase=phase,
        title=title or phase.replace("_", " ").title(),
        content=content if content is not None else f"{phase} content",
        rationale=rationale,
        status=status,
    )


# ═══════════════════════════════════════════════════════
# FIXTURES - Clock / ids
# ═══════════════════════════════════════════════════════

@pytest.fixture
def clock() -> Callable[[int], datetime]:
    """Deterministic timestamps: clock(n) is n seconds after a fixed epoch."""
    epoch = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def at(seconds: int = 0) -> datetime:
        return epoch + timedelta(seconds=seconds)

    return at


@pytest.fixture
def user_request():
    """Sample user request for testing."""
    return "Create a library system with books, members and loans"


# ═══════════════════════════════════════════════════════
# FIXTURES - Pipeline wiring
# ═══════════════════════════════════════════════════════

@pytest.fixture
def counter():
    return CallCounter()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def retry_policy(recording_sleep):
    """Default budget (3 retries, 1s base) without real waiting."""
    return RetryPolicy(max_retries=3, base_delay=1.0, sleep=recording_sleep)


@pytest.fixture
def make_generator(counter):
    def factory(script: Optional[Dict[str, List[Any]]] = None) -> ScriptedGenerator:
        return ScriptedGenerator(script, counter=counter)
    return factory


@pytest.fixture
def make_adapter(retry_policy):
    def factory(generator, phase_timeout: float = 5.0) -> GeneratorAdapter:
        return GeneratorAdapter(generator, retry_policy=retry_policy, phase_timeout=phase_timeout)
    return factory


@pytest.fixture
def store():
    return SessionStore()


# ═══════════════════════════════════════════════════════
# FIXTURES - Mock Manager
# ═══════════════════════════════════════════════════════

@pytest.fixture
def mock_manager():
    """Create a mock manager for WebSocket broadcasting."""
    manager = AsyncMock()
    manager.broadcast_json = AsyncMock()
    return manager


@pytest.fixture
def mock_websocket():
    ws = AsyncMock()
    ws.accept = AsyncMock()
    ws.send_json = AsyncMock()
    return ws


# ═══════════════════════════════════════════════════════
# FIXTURES - HTTP
# ═══════════════════════════════════════════════════════

@pytest.fixture
def app_generator():
    """Generator used by the app under test; override per module if needed."""
    return ScriptedGenerator()


@pytest.fixture
def app(app_generator):
    from dbcoach.main import create_app
    return create_app(generator=app_generator)


@pytest.fixture
async def async_client(app):
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.state.runner.shutdown()


async def settle(runner) -> None:
    """Let the background generation task finish."""
    await runner.wait()
    await asyncio.sleep(0)
