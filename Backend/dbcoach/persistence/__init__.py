# dbcoach/persistence/__init__.py
"""
Persistence module - storage of finished designs.
"""
from .writer import DesignWriter, persist_design

__all__ = ["DesignWriter", "persist_design"]
