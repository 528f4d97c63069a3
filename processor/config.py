"""Processor configuration settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class ProcessorSettings(BaseSettings):
    """Settings for the processor service.

    Check-in cadence, email and AI settings are shared with the API and read
    from ``api.config.settings``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./placements.db"

    # Scheduler
    SCHEDULER_INTERVAL: int = 3600  # Seconds between check-in passes
    SCHEDULER_ENABLED: bool = True

    # Monitoring
    HEARTBEAT_INTERVAL: int = 30  # Seconds between heartbeat writes
    HEARTBEAT_FILE: str = "/tmp/placement_ledger_heartbeat"
    HEALTH_PORT: int = 8080

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"


@lru_cache
def get_settings() -> ProcessorSettings:
    """Get cached settings instance."""
    return ProcessorSettings()


settings = get_settings()
