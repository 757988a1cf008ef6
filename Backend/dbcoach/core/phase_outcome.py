# dbcoach/core/phase_outcome.py
"""
Canonical phase-level outcome types.

These are PHASE outcomes, not SESSION outcomes. Session state is derived
from them by the reducer in orchestration/state.py.
"""
from enum import Enum
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


class PhaseStatus(Enum):
    """Phase-level outcomes."""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PhaseResult:
    """Output of one phase execution."""
    phase: str
    title: str
    content: Any
    rationale: str = ""
    status: PhaseStatus = PhaseStatus.COMPLETED
    agent: Optional[str] = None

    def is_completed(self) -> bool:
        return self.status == PhaseStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data
