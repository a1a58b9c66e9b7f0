"""
Retort Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables (prefixed with ``RETORT_``)
and an optional ``.env`` file.
"""

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_data_dir() -> str:
    """
    Get XDG-compliant data directory for Retort.

    Follows XDG Base Directory Specification:
    - Uses $XDG_DATA_HOME/retort if XDG_DATA_HOME is set
    - Falls back to $HOME/.local/share/retort if not set
    - Returns relative path .retort if HOME not available (dev/testing)

    Returns:
        str: Path to data directory
    """
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    if xdg_data_home:
        return str(Path(xdg_data_home) / "retort")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "share" / "retort")

    return ".retort"


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for Retort logs.

    Follows XDG Base Directory Specification:
    - Uses $XDG_STATE_HOME/retort/logs if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/retort/logs if not set
    - Returns relative path ./logs if HOME not available (dev/testing)

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "retort" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "retort" / "logs")

    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RETORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_path: str = f"{get_xdg_data_dir()}/retort.db"

    @property
    def database_url(self) -> str:
        """Construct the SQLite database URL from the configured path."""
        if self.database_path == ":memory:":
            return "sqlite:///:memory:"
        return f"sqlite:///{Path(self.database_path).expanduser()}"

    # LLM
    llm_provider: str = "openai"  # openai or mock
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("RETORT_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = "gpt-4o-mini"
    openai_max_tokens: int = 8192
    openai_temperature: float = 0.7
    mock_llm_content: str = "This is a mocked response."

    # Context
    default_stage: str = "default"
    default_profile: str = "default"

    # Logging
    log_level: str = "WARNING"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True
    log_file_enabled: bool = True
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())


# Global settings instance
settings = Settings()
