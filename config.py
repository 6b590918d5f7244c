"""Configuration module for the Heloilo notification scheduler.

This module provides configuration settings using Pydantic Settings.
Environment variables can be used to override default values.
"""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings for the notification scheduler.

    All settings can be overridden via environment variables.
    Example: export SCHEDULER_INTERVAL_SECONDS=600
    """

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./heloilo.db"
    """Database connection URL. Default: SQLite file in current directory"""

    # API Server Configuration
    API_HOST: str = "0.0.0.0"
    """API server host address"""

    API_PORT: int = 8005
    """API server port"""

    # Scheduler Configuration
    SCHEDULER_ENABLED: bool = True
    """Enable/disable the background notification scheduler"""

    SCHEDULER_INTERVAL_SECONDS: int = 3600
    """Seconds between two scheduler cycles (default: one hour)"""

    NOTIFICATION_WINDOW_MINUTES: int = 60
    """Lookahead window in minutes for upcoming reminders, activities and celebrations"""

    # Realtime Delivery Configuration
    REALTIME_GATEWAY_URL: str = ""
    """Base URL of the realtime gateway. Empty disables realtime push"""

    REALTIME_PUSH_TIMEOUT: float = 10.0
    """Timeout in seconds for a realtime push request"""

    # Logging Configuration
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    """Level applied to every service logger"""

    LOG_DIR: str = ""
    """Directory for rotating log files. Empty means ./logs next to the code"""

    class Config:
        """Pydantic config"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
