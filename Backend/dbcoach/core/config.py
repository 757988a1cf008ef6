# dbcoach/core/config.py
"""
Application configuration - single source of truth for all settings.
"""
import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


@dataclass
class LLMSettings:
    """Generator provider configuration."""
    default_model: str = field(default_factory=lambda: os.getenv("DEFAULT_LLM_MODEL", "gemini-2.0-flash-exp"))
    gemini_api_key: Optional[str] = field(default_factory=lambda: os.getenv("GEMINI_API_KEY"))
    temperature: float = 0.7
    max_output_tokens: int = field(default_factory=lambda: int(os.getenv("DBCOACH_MAX_OUTPUT_TOKENS", "16384")))


@dataclass
class GenerationSettings:
    """Pipeline execution configuration."""
    max_retries: int = field(default_factory=lambda: int(os.getenv("DBCOACH_MAX_RETRIES", "3")))
    base_delay: float = field(default_factory=lambda: float(os.getenv("DBCOACH_BASE_DELAY", "1.0")))
    # Seconds a single generator call may take before it counts as a timeout
    phase_timeout: float = field(default_factory=lambda: float(os.getenv("DBCOACH_PHASE_TIMEOUT", "120")))
    default_mode: str = field(default_factory=lambda: os.getenv("DBCOACH_DEFAULT_MODE", "standard"))


@dataclass
class DatabaseSettings:
    """MongoDB configuration for the persistence sink."""
    mongodb_url: str = field(default_factory=lambda: os.getenv("MONGODB_URL", "mongodb://localhost:27017"))
    database_name: str = field(default_factory=lambda: os.getenv("MONGODB_DATABASE", "dbcoach"))
    enabled: bool = field(default_factory=lambda: os.getenv("DBCOACH_PERSISTENCE", "true").lower() == "true")


@dataclass
class Settings:
    """Main application settings."""
    llm: LLMSettings = field(default_factory=LLMSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    port: int = field(default_factory=lambda: int(os.getenv("PORT", 8000)))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")


# Singleton instance
settings = Settings()
