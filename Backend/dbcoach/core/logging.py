import sys
import os
from datetime import datetime
from typing import Any, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# LOG FILTERING
# ═══════════════════════════════════════════════════════════════════════════════
# Only these scopes are shown at INFO level
# Everything else is gated behind DEBUG

INFO_SCOPES = {
    "PIPELINE",     # Phase lifecycle
    "SESSION",      # Session start / terminal transitions
    "RETRY",        # Backoff decisions
    "GENERATOR",    # Generator boundary
    "PERSIST",      # Finalize sink
}

# DEBUG-only scopes (hidden by default)
DEBUG_SCOPES = {
    "STORE",
    "WS",
    "API",
    "DB",
}

# Check if DEBUG mode is enabled
DEBUG_MODE = os.getenv("DBCOACH_DEBUG", "false").lower() == "true"


def log(scope: str, message: str, data: Any = None, session_id: Optional[str] = None) -> None:
    """
    Unified logging function for DBCoach.

    Only INFO_SCOPES are shown by default.
    Set DBCOACH_DEBUG=true to see all scopes.
    """
    if not DEBUG_MODE and scope not in INFO_SCOPES:
        return

    timestamp = datetime.now().strftime("%H:%M:%S")
    prefix = f"[{timestamp}] [{scope}]"

    if session_id:
        prefix += f" [{session_id[:8]}]"

    print(f"{prefix} {message}")

    if data:
        print(f"  Data: {data}")

    sys.stdout.flush()


def log_section(scope: str, title: str, session_id: Optional[str] = None) -> None:
    """
    Log a section header with visual separator.
    """
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"\n{'='*60}")
    if session_id:
        print(f"[{timestamp}] [{scope}] [{session_id[:8]}] {title}")
    else:
        print(f"[{timestamp}] [{scope}] {title}")
    print(f"{'='*60}")
    sys.stdout.flush()
