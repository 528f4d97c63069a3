"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Placement Ledger"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database
    DATABASE_URL: str = "sqlite:///./placements.db"
    DATABASE_ECHO: bool = False

    # Internal Token (HS256)
    SECRET_KEY: str = "change-me-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 720  # 12 hours
    ALGORITHM: str = "HS256"
    COOKIE_NAME: str = "placements_access_token"

    # Shared secret for the external cron trigger
    CRON_SECRET: str = ""

    # Check-in cadence (days after introduction, one entry per check-in)
    CHECK_IN_SCHEDULE_DAYS: list[int] = [30, 60, 90, 180, 365]
    CHECK_IN_RESPONSE_DAYS: int = 14

    # Introduction protection period (fee applies to hires inside it)
    INTRODUCTION_PROTECTION_DAYS: int = 365
    INTRODUCTION_EXPIRY_ALERT_DAYS: int = 7

    # Placement billing
    REMAINING_PAYMENT_DUE_DAYS: int = 30
    INVOICE_DUE_DAYS: int = 30
    PAYMENT_REMINDER_INTERVAL_DAYS: int = 1

    # Claude AI (free-text reply parsing)
    ANTHROPIC_API_KEY: str = ""
    CLAUDE_MODEL: str = "claude-sonnet-4-5-20250929"

    # AWS SES
    SES_FROM_EMAIL: str = "noreply@example.com"
    SES_FROM_NAME: str = "Placement Team"
    SES_REGION: str = "us-west-2"
    SES_ACCESS_KEY_ID: Optional[str] = None
    SES_SECRET_ACCESS_KEY: Optional[str] = None

    # Where circumvention alerts go
    ADMIN_EMAIL: str = "admin@example.com"

    # Frontend URL (for check-in response links)
    FRONTEND_URL: str = "http://localhost:3000"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
