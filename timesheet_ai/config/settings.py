import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    SQLite is meant for local development and tests only. Set DATABASE_URL to a
    PostgreSQL connection string for tenant databases.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "timesheets.db"
    db_url = f"sqlite:///{db_path.resolve()}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}. Set DATABASE_URL for a real tenant database.")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(
        default=None,
        validation_alias="LOG_FILE",
        description="Rotating log file; console only when unset",
    )
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    intent_model: str = Field(
        default="gpt-4o-mini",
        validation_alias="TIMESHEET_INTENT_MODEL",
        description="Model used to pre-structure free-text timesheet requests",
    )
    app_timezone: str = Field(default="UTC", validation_alias="APP_TIMEZONE")

    # Timesheet policy
    daily_hour_cap: float = Field(
        default=12.0,
        validation_alias="TIMESHEETS_DAILY_HOUR_CAP",
        description="Maximum hours (existing + planned) per technician per day",
    )
    break_required_after_hours: float = Field(
        default=6.0,
        validation_alias="TIMESHEETS_BREAK_REQUIRED_AFTER_HOURS",
        description="Continuous work longer than this requires a break",
    )
    break_min_minutes: int = Field(
        default=30,
        validation_alias="TIMESHEETS_BREAK_MIN_MINUTES",
        description="Smallest gap between entries that counts as a break",
    )
    enforce_breaks: bool = Field(
        default=False,
        validation_alias="TIMESHEETS_ENFORCE_BREAKS",
        description="Treat break policy violations as errors on commit",
    )
    ai_timesheet_debug: bool = Field(
        default=False,
        validation_alias="AI_TIMESHEET_DEBUG",
        description="Log overlap validation diagnostics and enable the overlap-debug CLI",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("app_timezone")
    @classmethod
    def validate_app_timezone(cls, value: str) -> str:
        """Fall back to UTC when the configured zone is not a known IANA name."""
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown APP_TIMEZONE '{value}'. Defaulting to UTC.")
            return "UTC"
        return value

    @field_validator("daily_hour_cap", "break_required_after_hours")
    @classmethod
    def validate_positive_hours(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"hour thresholds must be positive, got {value}")
        return value

    @field_validator("break_min_minutes")
    @classmethod
    def validate_break_min_minutes(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"break_min_minutes must be >= 0, got {value}")
        return value


settings = Settings()
