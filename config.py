#!/usr/bin/env python3
"""
Configuration Module - Centralized configuration for the grade sheet importer

Loads and validates all configuration from environment variables.
"""

import os
from typing import Optional, List
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


@dataclass
class DatabaseConfig:
    """Database configuration (any SQLAlchemy URL)."""
    url: str = ""

    def is_valid(self) -> bool:
        return bool(self.url)


@dataclass
class LLMConfig:
    """AI extraction provider configuration (provider-agnostic)."""
    provider: str = "openrouter"  # openrouter or ollama

    # OpenRouter (OpenAI-compatible chat completions)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "openai/gpt-4o-mini"
    openrouter_vision_model: str = ""
    site_url: str = "http://localhost:5000"

    # Ollama
    ollama_url: str = "http://localhost:11434/api/generate"
    ollama_model: str = "llama3.2:latest"

    # Seconds to wait for an extraction response
    timeout: float = 30.0

    def get_provider_config(self) -> dict:
        """Get configuration for the selected provider."""
        if self.provider == "openrouter":
            return {
                "api_key": self.openrouter_api_key,
                "base_url": self.openrouter_base_url,
                "model": self.openrouter_model,
                "vision_model": self.openrouter_vision_model or self.openrouter_model,
            }
        elif self.provider == "ollama":
            return {"url": self.ollama_url, "model": self.ollama_model}
        return {}

    def is_valid(self) -> bool:
        if self.provider == "openrouter":
            return bool(self.openrouter_api_key)
        elif self.provider == "ollama":
            return bool(self.ollama_url)
        return False


@dataclass
class ImportConfig:
    """Grade sheet import policy."""
    # Minimum token-set similarity for a name to be auto-matched (0-1).
    # Tunable policy, not a property of the data.
    match_threshold: float = 0.62
    candidate_limit: int = 3
    default_max_marks: float = 100.0
    default_assessment_label: str = "Assessment"

    def is_valid(self) -> bool:
        return 0 < self.match_threshold <= 1 and self.candidate_limit > 0 and self.default_max_marks > 0


@dataclass
class Config:
    """Main configuration container."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    grade_import: ImportConfig = field(default_factory=ImportConfig)


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Config object with all settings
    """
    config = Config()

    # Database
    config.database.url = os.getenv("DATABASE_URL", "")

    # LLM
    config.llm.provider = os.getenv("LLM_PROVIDER", "openrouter")
    config.llm.openrouter_api_key = os.getenv("OPENROUTER_API_KEY", "")
    config.llm.openrouter_base_url = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
    config.llm.openrouter_model = os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini")
    config.llm.openrouter_vision_model = os.getenv("OPENROUTER_VISION_MODEL", "")
    config.llm.site_url = os.getenv("OPENROUTER_SITE_URL", "http://localhost:5000")
    config.llm.ollama_url = os.getenv("OLLAMA_API_URL", "http://localhost:11434/api/generate")
    config.llm.ollama_model = os.getenv("OLLAMA_MODEL", "llama3.2:latest")
    config.llm.timeout = float(os.getenv("LLM_TIMEOUT", "30"))

    # Import policy
    config.grade_import.match_threshold = float(os.getenv("IMPORT_MATCH_THRESHOLD", "0.62"))
    config.grade_import.candidate_limit = int(os.getenv("IMPORT_CANDIDATE_LIMIT", "3"))
    config.grade_import.default_max_marks = float(os.getenv("IMPORT_DEFAULT_MAX_MARKS", "100"))
    config.grade_import.default_assessment_label = os.getenv("IMPORT_DEFAULT_ASSESSMENT_LABEL", "Assessment")

    return config


def validate_config(config: Config) -> List[str]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Config object to validate

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    if not config.database.is_valid():
        errors.append("Database not configured (DATABASE_URL required)")

    if not config.grade_import.is_valid():
        errors.append(
            "Import policy invalid (IMPORT_MATCH_THRESHOLD must be in (0, 1], "
            "IMPORT_CANDIDATE_LIMIT and IMPORT_DEFAULT_MAX_MARKS must be positive)"
        )

    return errors


def print_config_status(config: Config):
    """Print configuration status for debugging."""
    print("Configuration Status")
    print("=" * 50)

    # Database
    print(f"\nDatabase:")
    print(f"  URL: {config.database.url[:30]}..." if config.database.url else "  URL: NOT SET")
    print(f"  Status: {'OK' if config.database.is_valid() else 'NOT CONFIGURED'}")

    # LLM
    print(f"\nAI Extraction:")
    print(f"  Provider: {config.llm.provider}")
    if config.llm.provider == "openrouter":
        print(f"  Model: {config.llm.openrouter_model}")
        print(f"  API Key: {'*' * 20}..." if config.llm.openrouter_api_key else "  API Key: NOT SET")
    elif config.llm.provider == "ollama":
        print(f"  URL: {config.llm.ollama_url}")
        print(f"  Model: {config.llm.ollama_model}")
    print(f"  Timeout: {config.llm.timeout:.0f}s")
    print(f"  Status: {'OK' if config.llm.is_valid() else 'NOT CONFIGURED (text parser only)'}")

    # Import policy
    print(f"\nImport Policy:")
    print(f"  Match Threshold: {config.grade_import.match_threshold}")
    print(f"  Candidates: {config.grade_import.candidate_limit}")
    print(f"  Default Max Marks: {config.grade_import.default_max_marks:g}")
    print(f"  Default Assessment: {config.grade_import.default_assessment_label}")


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        Config object (loaded on first call)
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


# =============================================================================
# MAIN (for testing)
# =============================================================================

if __name__ == "__main__":
    config = get_config()
    print_config_status(config)

    errors = validate_config(config)
    if errors:
        print("\nConfiguration Errors:")
        for error in errors:
            print(f"  - {error}")
    else:
        print("\nConfiguration is valid!")
