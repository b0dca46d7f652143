"""Configuration management for citypulse."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .generation import DEFAULT_API_BASE, DEFAULT_MODEL
from .logging_utils import configure_logging
from .types import clamp_limit

PREFERENCES_FILE = "preferences.json"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CITYPULSE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Generation service
    model: str = Field(default=DEFAULT_MODEL, description="Model name (e.g., 'gemini-2.5-flash')")
    api_key: Optional[str] = Field(None, description="Credential override for the generation service")
    generation_api_base: str = Field(default=DEFAULT_API_BASE, description="Generation API base URL")

    # Dashboard API
    base_url: str = Field(default="http://localhost:4000", description="Dashboard API base URL")
    city: str = Field(default="taipei", description="Default city")
    index: str = Field(default="traffic", description="Default dashboard index")
    component_limit: int = Field(default=4, description="Maximum components per dashboard (1-12)")

    # Runtime
    request_timeout_seconds: float = Field(default=20.0, description="Timeout for every HTTP request")
    home: Path = Field(default=Path.home() / ".citypulse", description="Directory for local preferences")
    remember_credential: bool = Field(default=True, description="Persist the credential between runs")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    @field_validator("component_limit", mode="before")
    @classmethod
    def _clamp_component_limit(cls, value: object) -> int:
        return clamp_limit(value)

    @property
    def preferences_path(self) -> Path:
        return self.home.expanduser() / PREFERENCES_FILE


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Args:
        overrides: Field values that take precedence over the environment

    Returns:
        Settings instance
    """
    # pydantic-settings reads CITYPULSE_* variables and the .env file on its own
    settings = Settings(**{key: value for key, value in overrides.items() if value is not None})

    configure_logging(level=settings.log_level)

    return settings
