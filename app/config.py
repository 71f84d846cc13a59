"""Environment configuration for the EduTrack backend."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./edutrack.db")
        self.JWT_SECRET: str = os.getenv("JWT_SECRET", "")
        self.FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
        self.JWT_ALGORITHM: str = "HS256"
        self.JWT_EXPIRATION_HOURS: int = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))

        # Reminder scheduler
        self.SCHEDULER_ENABLED: bool = _env_bool("SCHEDULER_ENABLED", True)
        self.DEADLINE_SWEEP_INTERVAL_MINUTES: int = int(
            os.getenv("DEADLINE_SWEEP_INTERVAL_MINUTES", "60")
        )
        # Off keeps re-notifying on every sweep until the task/project is done
        self.DEADLINE_REMINDER_DEDUPLICATE: bool = _env_bool(
            "DEADLINE_REMINDER_DEDUPLICATE", False
        )

        # Calendar sync collaborator (disabled when the URL is empty)
        self.CALENDAR_SYNC_URL: str = os.getenv("CALENDAR_SYNC_URL", "")
        self.CALENDAR_SYNC_TIMEOUT_SECONDS: float = float(
            os.getenv("CALENDAR_SYNC_TIMEOUT_SECONDS", "5")
        )

    def validate(self) -> None:
        """Validate that required environment variables are set."""
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL environment variable is required")
        if not self.JWT_SECRET:
            raise ValueError("JWT_SECRET environment variable is required")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    return settings
