"""Configuration for Specforge using pydantic-settings."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve project root so .env is found regardless of working directory.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class SpecforgeConfig(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = {
        "env_prefix": "SPECFORGE_",
        "env_file": str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        "extra": "ignore",
    }

    # LLM provider settings
    llm_provider: str = "anthropic"  # "anthropic", "openai"
    model: str = "claude-sonnet-4-20250514"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    openai_base_url: str = ""

    db_path: str = "output/specforge.db"

    # Comma-separated stage ids that require the "pro" plan ("" = no gate).
    pro_gate: str = ""

    # Seconds between SSE heartbeats while a stage is waiting on the backend.
    heartbeat_seconds: float = 15.0

    @property
    def has_llm_key(self) -> bool:
        """Check if the configured provider has an API key."""
        if self.llm_provider == "openai":
            return bool(self.openai_api_key or os.environ.get("OPENAI_API_KEY"))
        return bool(self.anthropic_api_key)

    @property
    def gated_stages(self) -> set[str]:
        return {s.strip() for s in self.pro_gate.split(",") if s.strip()}


def get_config() -> SpecforgeConfig:
    """Load configuration from environment."""
    return SpecforgeConfig()
