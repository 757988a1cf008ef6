# dbcoach/llm/prompts.py
"""
Per-phase request payloads for text generators.

Kept deliberately small: one instruction per phase, one role line per
database family, and the threaded outputs of earlier phases.
"""
import json
from typing import Any, Dict, Tuple

DATABASE_ROLES: Dict[str, str] = {
    "sql": "You are a relational database expert focused on normalized, ACID-compliant designs.",
    "nosql": "You are a document database expert focused on access-pattern driven designs.",
    "vectordb": "You are a vector database expert focused on embedding storage and similarity search.",
}
DEFAULT_ROLE = "You are a senior database architect."

PHASE_INSTRUCTIONS: Dict[str, str] = {
    "analysis": "Analyze the requirements: entities, relationships, access patterns and constraints.",
    "schema": "Design the complete schema with keys, indexes and constraints.",
    "implementation": "Produce the implementation package: DDL or collection setup, sample data and API endpoints.",
    "sample_data": "Generate realistic sample data that respects every constraint of the schema.",
    "api_endpoints": "Design REST API endpoints covering CRUD operations for every entity.",
    "validation": "Review the design and report issues, risks and a quality score.",
    "visualization": "Describe the entity-relationship diagram as JSON with nodes and edges.",
}


def get_role(database_type: str) -> str:
    key = (database_type or "").lower().replace(" ", "").replace("-", "")
    return DATABASE_ROLES.get(key, DEFAULT_ROLE)


def _render_previous(previous: Dict[str, Any]) -> str:
    blocks = []
    for phase, content in previous.items():
        if isinstance(content, (dict, list)):
            content = json.dumps(content, indent=2, ensure_ascii=False, default=str)
        blocks.append(f"### {phase}\n{content}")
    return "\n\n".join(blocks)


def build_prompt(phase: str, context: Dict[str, Any]) -> Tuple[str, str]:
    """
    Build (system_prompt, prompt) for one phase.

    Args:
        phase: Phase id
        context: Executor context (request, database_type, previous)
    """
    system_prompt = get_role(context.get("database_type", ""))
    instruction = PHASE_INSTRUCTIONS.get(phase, f"Produce the {phase} deliverable.")

    parts = [
        f"REQUEST:\n{context.get('request', '')}",
        f"TASK:\n{instruction}",
    ]
    if context.get("database_type"):
        parts.insert(1, f"DATABASE TYPE: {context['database_type']}")

    previous = context.get("previous") or {}
    if previous:
        parts.append(f"EARLIER RESULTS:\n{_render_previous(previous)}")

    parts.append("Start with a REASONING: section, then return the deliverable in a fenced code block.")
    return system_prompt, "\n\n".join(parts)
