# dbcoach/orchestration/merger.py
"""
Content Merger - derives slot artifacts from raw phase outputs.

Artifacts are a denormalized VIEW of raw_phase_outputs, never independent
truth. merge() is a pure function:
- same raw outputs → identical artifacts (idempotent)
- arrival order of phases is irrelevant, composite sections always follow
  the slot rule's source order
- a composite slot keeps its full section structure while incomplete, with
  an explicit placeholder for every section that has not arrived yet
"""
import json
from typing import Any, Dict, List, Mapping, Optional

from dbcoach.core.phase_outcome import PhaseResult, PhaseStatus
from dbcoach.orchestration.modes import ModeConfig, SlotRule

PLACEHOLDER_TEMPLATE = "_{title} not yet available._"


def render_section_content(content: Any) -> str:
    """Render a phase payload as stable markdown text."""
    if isinstance(content, (dict, list)):
        body = json.dumps(content, indent=2, sort_keys=True, ensure_ascii=False, default=str)
        return f"```json\n{body}\n```"
    if content is None:
        return ""
    return str(content).strip()


def placeholder_for(title: str) -> str:
    return PLACEHOLDER_TEMPLATE.format(title=title)


def _completed(raw_phase_outputs: Mapping[str, PhaseResult], phase: str) -> Optional[PhaseResult]:
    result = raw_phase_outputs.get(phase)
    if result is not None and result.status == PhaseStatus.COMPLETED:
        return result
    return None


def _compose(rule: SlotRule, mode: ModeConfig, raw_phase_outputs: Mapping[str, PhaseResult]) -> Optional[PhaseResult]:
    present = [_completed(raw_phase_outputs, source) for source in rule.sources]
    if not any(present):
        return None

    sections: List[str] = [f"# {rule.title}"]
    rationales: List[str] = []
    for source, result in zip(rule.sources, present):
        section_title = mode.title_for(source)
        if result is None:
            body = placeholder_for(section_title)
        else:
            body = render_section_content(result.content)
            if result.rationale:
                rationales.append(result.rationale)
        sections.append(f"## {section_title}\n\n{body}")

    return PhaseResult(
        phase=rule.slot,
        title=rule.title,
        content="\n\n".join(sections) + "\n",
        rationale=" | ".join(rationales),
        status=PhaseStatus.COMPLETED,
    )


def merge_slot(rule: SlotRule, mode: ModeConfig, raw_phase_outputs: Mapping[str, PhaseResult]) -> Optional[PhaseResult]:
    """
    Materialize a single slot.

    Returns:
        None when no source phase has completed yet.
    """
    if rule.is_composite:
        return _compose(rule, mode, raw_phase_outputs)
    return _completed(raw_phase_outputs, rule.sources[0])


def merge(raw_phase_outputs: Mapping[str, PhaseResult], rules: ModeConfig) -> Dict[str, PhaseResult]:
    """
    Rebuild every slot of the mode from raw phase outputs.

    Args:
        raw_phase_outputs: phase id → PhaseResult (failed entries are ignored)
        rules: the mode whose slot rules apply

    Returns:
        slot → PhaseResult for every slot with at least one completed source,
        in slot-rule order
    """
    artifacts: Dict[str, PhaseResult] = {}
    for rule in rules.slots:
        merged = merge_slot(rule, rules, raw_phase_outputs)
        if merged is not None:
            artifacts[rule.slot] = merged
    return artifacts
