# dbcoach/utils/parser.py
"""
Content Extractor - normalizes raw generator text into a usable payload.

STRATEGY (first match wins):
1. Fenced structured-data block:  ```json { ... } ```
2. First balanced brace region:   prose { ... } prose
3. Trimmed raw text

Every strategy that fails to parse falls through to the next one.
extract_content() never raises.
"""

import json
import re
from typing import Any, List, Optional, Tuple

# ═══════════════════════════════════════════════════════════════════════════════
# MARKERS
# ═══════════════════════════════════════════════════════════════════════════════

# ```json ... ``` or ``` ... ``` (language tag optional)
FENCED_BLOCK_PATTERN = re.compile(
    r"```[ \t]*([A-Za-z0-9_+-]*)[ \t]*\r?\n?(.*?)```",
    re.DOTALL,
)
FENCE_MARKER = "```"
STRUCTURED_LANGUAGES = {"", "json", "json5", "javascript", "js"}

RATIONALE_START_MARKERS = ["REASONING:", "### Analysis", "## Analysis"]
RATIONALE_END_MARKERS = ["SCHEMA:", "### Schema", "## Schema", FENCE_MARKER]
RATIONALE_MIN_CHARS = 50
RATIONALE_MAX_CHARS = 500

# Phrases that only appear at the very end of a cut-off response
TRUNCATION_TAIL_PATTERNS = [
    re.compile(r"However,?\s*$", re.IGNORECASE),
    re.compile(r"Unfortunately,?\s*$", re.IGNORECASE),
]


# ═══════════════════════════════════════════════════════════════════════════════
# STRATEGIES
# ═══════════════════════════════════════════════════════════════════════════════

def _loads_structured(text: str) -> Optional[Any]:
    """Parse text as a JSON object or array; anything else is not structured data."""
    try:
        value = json.loads(text)
    except (ValueError, TypeError):
        return None
    if isinstance(value, (dict, list)):
        return value
    return None


def _from_fenced_block(raw: str) -> Optional[Any]:
    for match in FENCED_BLOCK_PATTERN.finditer(raw):
        language = match.group(1).lower()
        if language not in STRUCTURED_LANGUAGES:
            continue
        parsed = _loads_structured(match.group(2).strip())
        if parsed is not None:
            return parsed
    return None


def find_balanced_region(raw: str, opener: str = "{", closer: str = "}") -> Optional[str]:
    """
    Return the first balanced opener..closer region of raw, or None.

    Braces inside JSON string literals are ignored.
    """
    start = raw.find(opener)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(raw)):
        char = raw[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return raw[start:index + 1]
    return None


def _from_balanced_braces(raw: str) -> Optional[Any]:
    region = find_balanced_region(raw)
    if region is None:
        return None
    return _loads_structured(region)


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN API
# ═══════════════════════════════════════════════════════════════════════════════

def extract_content(raw: Any) -> Any:
    """
    Normalize a generator response.

    Returns:
        dict/list when structured data was found, otherwise the trimmed text.
    """
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raw = str(raw)

    structured = _from_fenced_block(raw)
    if structured is not None:
        return structured

    structured = _from_balanced_braces(raw)
    if structured is not None:
        return structured

    return raw.strip()


def extract_code_block(raw: str, language: str) -> str:
    """
    Return the body of the first ```<language> block, or the trimmed text.

    Used for phases whose payload is code (e.g. a SQL schema) rather than JSON.
    """
    if not raw:
        return ""
    pattern = re.compile(rf"```[ \t]*(?:{re.escape(language)})?[ \t]*\r?\n(.*?)```", re.DOTALL | re.IGNORECASE)
    match = pattern.search(raw)
    if match:
        return match.group(1).strip()
    return raw.strip()


def extract_rationale(raw: str) -> str:
    """
    Pull the generator's reasoning out of a prose response.

    Looks for a reasoning marker ("REASONING:", "## Analysis", ...) and reads
    up to the next design marker. Falls back to the first substantial
    paragraph, or "" when there is none.
    """
    if not raw:
        return ""

    start = -1
    for marker in RATIONALE_START_MARKERS:
        index = raw.find(marker)
        if index != -1:
            start = index + len(marker)
            break

    if start != -1:
        end = -1
        for marker in RATIONALE_END_MARKERS:
            index = raw.find(marker, start)
            if index != -1:
                end = index
                break
        return raw[start:end].strip() if end != -1 else raw[start:].strip()

    whole = raw.strip()
    for paragraph in raw.split("\n\n"):
        paragraph = paragraph.strip()
        if len(paragraph) <= RATIONALE_MIN_CHARS or paragraph.startswith(FENCE_MARKER):
            continue
        # A prose-only response is the content itself, not an explanation of it
        if paragraph == whole:
            return ""
        if len(paragraph) > RATIONALE_MAX_CHARS:
            return paragraph[:RATIONALE_MAX_CHARS].rstrip() + "..."
        return paragraph
    return ""


# ═══════════════════════════════════════════════════════════════════════════════
# COMPLETENESS CHECK
# ═══════════════════════════════════════════════════════════════════════════════

def check_completeness(raw: str) -> Tuple[bool, List[str]]:
    """
    Detect responses that were cut off mid-way.

    Returns:
        (is_complete, issues)
    """
    issues: List[str] = []
    if not raw:
        return True, issues

    if raw.count(FENCE_MARKER) % 2 != 0:
        issues.append("Incomplete code block detected")

    stripped = raw.rstrip()
    for pattern in TRUNCATION_TAIL_PATTERNS:
        if pattern.search(stripped):
            issues.append("Response ends with a truncation phrase")
            break

    return len(issues) == 0, issues
