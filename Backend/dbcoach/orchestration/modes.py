# dbcoach/orchestration/modes.py
"""
Generation modes - fixed phase pipelines and their slot mapping rules.

A mode is DATA, not control flow:
- phases run in the listed order, never reordered or skipped
- depends_on names the earlier phases whose content is threaded into a phase's context
- slots map one or more phases onto a consumer-facing artifact; a slot with
  several sources is a composite whose sections follow the listed order

Adding a mode means adding an entry to MODES.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from dbcoach.core.exceptions import MergeConfigurationError


@dataclass(frozen=True)
class PhaseSpec:
    """One sequential generation step."""
    id: str
    title: str
    agent: str
    depends_on: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SlotRule:
    """Which phases feed a slot, and in what section order."""
    slot: str
    title: str
    sources: Tuple[str, ...]

    @property
    def is_composite(self) -> bool:
        return len(self.sources) > 1


@dataclass(frozen=True)
class ModeConfig:
    """Phase list + slot rules for one generation mode."""
    name: str
    phases: Tuple[PhaseSpec, ...]
    slots: Tuple[SlotRule, ...]

    def phase_ids(self) -> Tuple[str, ...]:
        return tuple(p.id for p in self.phases)

    def get_phase(self, phase_id: str) -> Optional[PhaseSpec]:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def title_for(self, phase_id: str) -> str:
        phase = self.get_phase(phase_id)
        return phase.title if phase else phase_id

    def get_slot(self, slot: str) -> Optional[SlotRule]:
        for rule in self.slots:
            if rule.slot == slot:
                return rule
        return None

    def validate(self) -> None:
        """
        Fail fast on an inconsistent table.

        Raises:
            MergeConfigurationError: duplicate ids, a slot fed by a phase this
                mode does not run, or a dependency on a phase that does not
                run earlier.
        """
        ids = self.phase_ids()
        if not ids:
            raise MergeConfigurationError(self.name, "mode has no phases")
        if len(set(ids)) != len(ids):
            raise MergeConfigurationError(self.name, f"duplicate phase ids in {list(ids)}")

        seen: List[str] = []
        for phase in self.phases:
            for dep in phase.depends_on:
                if dep not in seen:
                    raise MergeConfigurationError(
                        self.name,
                        f"phase '{phase.id}' depends on '{dep}', which does not run before it"
                    )
            seen.append(phase.id)

        slot_names = [rule.slot for rule in self.slots]
        if len(set(slot_names)) != len(slot_names):
            raise MergeConfigurationError(self.name, f"duplicate slots in {slot_names}")

        for rule in self.slots:
            if not rule.sources:
                raise MergeConfigurationError(self.name, f"slot '{rule.slot}' has no source phases")
            for source in rule.sources:
                if source not in ids:
                    raise MergeConfigurationError(
                        self.name,
                        f"slot '{rule.slot}' references phase '{source}', which is not in {list(ids)}"
                    )


# ═══════════════════════════════════════════════════════════════════════════════
# MODE TABLE
# ═══════════════════════════════════════════════════════════════════════════════

STANDARD = ModeConfig(
    name="standard",
    phases=(
        PhaseSpec("analysis", "Requirements Analysis", "Requirements Analyst"),
        PhaseSpec("schema", "Schema Design", "Schema Architect", depends_on=("analysis",)),
        PhaseSpec("implementation", "Implementation Package", "Implementation Specialist",
                  depends_on=("analysis", "schema")),
        PhaseSpec("validation", "Quality Report", "Quality Assurance",
                  depends_on=("schema", "implementation")),
    ),
    slots=(
        SlotRule("analysis", "Requirements Analysis", ("analysis",)),
        SlotRule("schema", "Schema Design", ("schema",)),
        SlotRule("implementation", "Implementation Package", ("implementation",)),
        SlotRule("validation", "Quality Report", ("validation",)),
    ),
)

ENHANCED = ModeConfig(
    name="enhanced",
    phases=(
        PhaseSpec("analysis", "Requirements Analysis", "Requirements Analyst"),
        PhaseSpec("schema", "Schema Design", "Schema Architect", depends_on=("analysis",)),
        PhaseSpec("sample_data", "Sample Data", "Data Engineer", depends_on=("schema",)),
        PhaseSpec("api_endpoints", "API Endpoints", "API Designer", depends_on=("schema",)),
        PhaseSpec("validation", "Quality Report", "Quality Assurance",
                  depends_on=("schema", "sample_data", "api_endpoints")),
        PhaseSpec("visualization", "Database Visualization", "Visualization Designer",
                  depends_on=("schema",)),
    ),
    slots=(
        SlotRule("analysis", "Requirements Analysis", ("analysis",)),
        SlotRule("schema", "Schema Design", ("schema",)),
        SlotRule("implementation", "Implementation Package", ("sample_data", "api_endpoints")),
        SlotRule("validation", "Quality Report", ("validation",)),
        SlotRule("visualization", "Database Visualization", ("visualization",)),
    ),
)

MODES: Dict[str, ModeConfig] = {
    STANDARD.name: STANDARD,
    ENHANCED.name: ENHANCED,
}


def get_mode(name: str) -> ModeConfig:
    """Look up a mode by name."""
    mode = MODES.get(name)
    if mode is None:
        raise MergeConfigurationError(name, f"unknown mode, expected one of {sorted(MODES)}")
    return mode
