"""
Application configuration.

Every setting comes from an environment variable, optionally
loaded from a .env file. Connection strings never live in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Ledger Core"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/ledger_core"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "console" if DEBUG else "json")

    # Bookkeeping defaults
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "USD")
    ENTRY_NUMBER_PREFIX: str = os.getenv("ENTRY_NUMBER_PREFIX", "JE")

    # Per-account locking during posting
    LOCK_BACKEND: str = os.getenv("LOCK_BACKEND", "local")
    LOCK_TIMEOUT_SECONDS: float = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5.0"))
    LOCK_TTL_SECONDS: int = int(os.getenv("LOCK_TTL_SECONDS", "30"))
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")


@lru_cache()
def get_settings() -> Settings:
    """
    Return the process-wide settings.

    Built once on first call; later calls return the same object.
    """
    return Settings()
