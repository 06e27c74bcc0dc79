"""Configuration management for pykron."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PYKRON_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timezone: str | None = Field(
        default="UTC",
        description="IANA zone for schedules built without one (empty = naive local time)",
    )

    # Execution loop settings
    loop_pause_seconds: float = Field(
        default=0.001,
        description="Pause before each round of a repeating loop, so one instant never fires twice",
    )

    log_level: str = Field(
        default="WARNING",
        description="Log level used by the command-line interface",
    )


# Global settings instance
settings = Settings()
