# dbcoach/llm/adapter.py
"""
Generator Adapter - the only path from a phase to a generator.

One phase run:
    RetryPolicy( wait_for(generator.invoke, phase_timeout) → completeness check )
    → Content Extractor → PhaseResult(status=completed)

Failure after retries, or a fatal failure, propagates to the caller.
A failure is never downgraded to a partial success.
"""
import asyncio
from typing import Any, Dict, Optional, Protocol

from dbcoach.core.config import settings
from dbcoach.core.exceptions import ErrorKind, GenerationError
from dbcoach.core.logging import log
from dbcoach.core.phase_outcome import PhaseResult, PhaseStatus
from dbcoach.orchestration.modes import PhaseSpec
from dbcoach.orchestration.retry_policy import RetryPolicy
from dbcoach.utils.parser import check_completeness, extract_code_block, extract_content, extract_rationale


class Generator(Protocol):
    """External content-generation capability."""

    async def invoke(self, phase: str, context: Dict[str, Any], timeout: float) -> str:
        ...


SQL_SCHEMA_PHASE = "schema"


def is_sql_schema(phase: PhaseSpec, context: Dict[str, Any]) -> bool:
    """Schema phase of a SQL design: its payload is DDL, not JSON."""
    database_type = str(context.get("database_type") or "")
    return phase.id == SQL_SCHEMA_PHASE and "sql" in database_type.lower() and "nosql" not in database_type.lower()


class GeneratorAdapter:
    """
    Turns a generator call into a PhaseResult.

    Handles:
    - Timeout per attempt (a timeout is retryable)
    - Truncated responses (retryable)
    - Retries through RetryPolicy
    - Content extraction
    """

    def __init__(
        self,
        generator: Generator,
        retry_policy: Optional[RetryPolicy] = None,
        phase_timeout: Optional[float] = None,
    ):
        self.generator = generator
        self.retry_policy = retry_policy or RetryPolicy()
        self.phase_timeout = settings.generation.phase_timeout if phase_timeout is None else phase_timeout

    async def _invoke_once(self, phase: PhaseSpec, context: Dict[str, Any]) -> str:
        try:
            raw = await asyncio.wait_for(
                self.generator.invoke(phase.id, context, self.phase_timeout),
                timeout=self.phase_timeout,
            )
        except asyncio.TimeoutError:
            raise GenerationError(
                phase.id, f"no response within {self.phase_timeout:g}s", ErrorKind.TIMEOUT
            ) from None

        if raw is None:
            raw = ""
        complete, issues = check_completeness(raw)
        if not complete:
            log("GENERATOR", f"⚠️ {phase.title} response looks truncated: {issues}")
            raise GenerationError(phase.id, f"truncated response ({'; '.join(issues)})", ErrorKind.UNAVAILABLE)
        return raw

    async def run(self, phase: PhaseSpec, context: Dict[str, Any]) -> PhaseResult:
        """
        Run one phase to a completed PhaseResult.

        Raises:
            RetryExhaustedError: retryable failures outlasted the retry budget
            GenerationError / DBCoachError: fatal failure, not retried
        """
        log("GENERATOR", f"→ {phase.title} ({phase.agent})")
        raw = await self.retry_policy.execute(
            lambda: self._invoke_once(phase, context),
            label=phase.title,
        )

        content = extract_content(raw)
        if isinstance(content, str) and is_sql_schema(phase, context):
            content = extract_code_block(raw, "sql")
        rationale = ""
        if isinstance(content, dict) and isinstance(content.get("rationale"), str):
            content = dict(content)
            rationale = content.pop("rationale").strip()
        if not rationale:
            rationale = extract_rationale(raw)

        log("GENERATOR", f"✅ {phase.title} returned {len(raw)} chars")
        return PhaseResult(
            phase=phase.id,
            title=phase.title,
            content=content,
            rationale=rationale,
            status=PhaseStatus.COMPLETED,
            agent=phase.agent,
        )
