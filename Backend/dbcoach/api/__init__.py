# dbcoach/api/__init__.py
"""
API module - All route handlers.
"""
from . import health, generations

__all__ = [
    "health",
    "generations",
]
