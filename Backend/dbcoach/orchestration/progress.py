# dbcoach/orchestration/progress.py
"""
Progress Aggregator - pure projection of a session for progress displays.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from dbcoach.orchestration.modes import get_mode
from dbcoach.orchestration.state import Session


@dataclass(frozen=True)
class Progress:
    percent: int
    current_phase_label: Optional[str]
    completed_count: int = 0
    total: int = 0
    is_generating: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def aggregate(session: Optional[Session]) -> Progress:
    """
    Summarize how far a session has come.

    percent = round(100 * completed / total); current_phase_label is the title
    of the first phase that has not completed, or None when all have.
    """
    if session is None or not session.phases:
        return Progress(percent=0, current_phase_label=None)

    mode = get_mode(session.mode)
    completed = sum(1 for phase in session.phases if phase in session.completed_phases)
    total = len(session.phases)

    current: Optional[str] = None
    for phase in session.phases:
        if phase not in session.completed_phases:
            current = mode.title_for(phase)
            break

    return Progress(
        percent=int(round(100 * completed / total)),
        current_phase_label=current,
        completed_count=completed,
        total=total,
        is_generating=session.is_generating,
    )
