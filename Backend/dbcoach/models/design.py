# dbcoach/models/design.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from beanie import Document, Indexed
from pydantic import Field


class GeneratedDesign(Document):
    """
    A finished database design.
    Written once, when a session completes every phase.
    """
    session_id: Indexed(str, unique=True)
    mode: str
    prompt: Optional[str] = None
    database_type: Optional[str] = None

    # phase id -> PhaseResult.to_dict()
    raw_phase_outputs: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    # slot -> PhaseResult.to_dict(), derived from raw_phase_outputs
    artifacts: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    completed_phases: List[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "generated_designs"
