"""
Centralized application settings using Pydantic BaseSettings.

This module provides type-safe access to environment variables with validation.
All settings are loaded once at application startup.
"""

import logging
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# ============================================================================
# Application Constants
# ============================================================================

# Synthetic speaker ids used for director entries in the conversation log
DIRECTOR_COMMAND_ID = "DIRECTOR_COMMAND"
NARRATOR_ID = "NARRATOR"

# Placeholder agent id for the human participant
USER_AGENT_ID = "user"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults and are validated on startup.
    """

    # User configuration
    user_name: str = "User"

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./chat_sessions.db"

    # Turn orchestration
    streaming_enabled: bool = True
    default_turn_policy: Literal["broadcast", "sequential"] = "broadcast"
    advance_delay_seconds: float = 0.0

    # Provider adapters
    claude_provider_ids: str = "anthropic,claude"
    claude_max_turns: int = 1

    # Logging
    log_level: str = "INFO"

    @field_validator("default_turn_policy", mode="before")
    @classmethod
    def validate_turn_policy(cls, v: Optional[str]) -> str:
        """Validate and normalize DEFAULT_TURN_POLICY setting."""
        if not v:
            return "broadcast"
        v_lower = v.lower()
        if v_lower in ("broadcast", "sequential"):
            return v_lower
        # Invalid value - log warning and default to broadcast
        logging.warning(f"Invalid DEFAULT_TURN_POLICY value: {v}. Defaulting to 'broadcast' mode.")
        return "broadcast"

    @field_validator("streaming_enabled", mode="before")
    @classmethod
    def validate_streaming_enabled(cls, v: Optional[str]) -> bool:
        """Parse streaming_enabled from string to bool."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() == "true"
        return True

    @field_validator("advance_delay_seconds")
    @classmethod
    def validate_advance_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("ADVANCE_DELAY_SECONDS must be >= 0")
        return v

    def get_claude_provider_ids(self) -> List[str]:
        """
        Get the provider ids served by the Claude adapter.

        Returns:
            List of provider ids from the comma-separated CLAUDE_PROVIDER_IDS setting
        """
        if not self.claude_provider_ids:
            return []
        return [pid.strip() for pid in self.claude_provider_ids.split(",") if pid.strip()]

    @property
    def project_root(self) -> Path:
        """Project root directory (parent of backend/)."""
        return Path(__file__).parent.parent.parent

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        # Allow extra fields for forward compatibility
        extra = "ignore"


# Singleton instance - load settings once
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()

        # Find .env file in project root using settings path properties
        env_path = _settings.project_root / ".env"

        # Reload settings with explicit env file path if it exists
        if env_path.exists():
            _settings = Settings(_env_file=str(env_path))

    return _settings


def reset_settings() -> None:
    """
    Reset the settings singleton (useful for testing).
    """
    global _settings
    _settings = None
