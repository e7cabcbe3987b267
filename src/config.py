"""
Configuration module for the room booking core.

Loads environment variables (and an optional ``.env`` file) and provides
the database connection string, logging settings and booking tunables.
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        database_url: Database connection string
        environment: Logging profile ("development", "production", "test")
        log_level: Overrides the profile's default log level
        available_hours_per_day: Bookable hours per room per day, used for occupancy
        default_weeks_ahead: Recurring booking horizon when a request omits it
        usage_ranking_limit: Default number of rooms in usage rankings
    """

    # Database configuration
    database_url: str = Field(
        alias="DATABASE_URL",
        description="Database connection string"
    )

    # Logging
    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment"
    )

    log_level: Optional[str] = Field(
        default=None,
        alias="LOG_LEVEL",
        description="Log level override"
    )

    # Booking tunables
    available_hours_per_day: float = Field(
        default=12.0,
        gt=0,
        alias="AVAILABLE_HOURS_PER_DAY",
        description="Bookable hours per room per day"
    )

    default_weeks_ahead: int = Field(
        default=12,
        ge=1,
        alias="DEFAULT_WEEKS_AHEAD",
        description="Recurring booking horizon in weeks"
    )

    usage_ranking_limit: int = Field(
        default=5,
        ge=1,
        alias="USAGE_RANKING_LIMIT",
        description="Rooms listed in usage rankings"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Returns:
        Settings instance with loaded configuration

    Raises:
        pydantic.ValidationError: If DATABASE_URL is not set
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings
