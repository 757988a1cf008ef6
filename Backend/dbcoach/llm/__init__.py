# dbcoach/llm/__init__.py
"""
LLM module - generator protocol, adapter and providers.
"""
from .adapter import Generator, GeneratorAdapter
from .prompts import build_prompt

__all__ = ["Generator", "GeneratorAdapter", "build_prompt"]
