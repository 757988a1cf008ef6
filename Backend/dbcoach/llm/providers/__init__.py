# dbcoach/llm/providers/__init__.py
"""
Generator providers.
"""
from .gemini import GeminiGenerator

__all__ = ["GeminiGenerator"]
