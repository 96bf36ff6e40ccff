"""Configuration management for the timesheet engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from zoneinfo import ZoneInfo

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    host: str
    port: int
    debug: bool
    log_level: str
    business_timezone: str
    history_days: int
    resend_api_key: str | None
    from_email: str
    frontend_url: str
    rate_limit_requests: int
    rate_limit_window: int
    invitation_ttl_days: int

    @property
    def tz(self) -> ZoneInfo:
        """Canonical business timezone for date keys and wall-clock times."""
        return ZoneInfo(self.business_timezone)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./timesheets.db",
            ),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            business_timezone=os.getenv("BUSINESS_TIMEZONE", "UTC"),
            history_days=int(os.getenv("HISTORY_DAYS", "90")),
            resend_api_key=os.getenv("RESEND_API_KEY") or None,
            from_email=os.getenv("FROM_EMAIL", "onboarding@resend.dev"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173"),
            rate_limit_requests=int(os.getenv("RATE_LIMIT_REQUESTS", "10")),
            rate_limit_window=int(os.getenv("RATE_LIMIT_WINDOW", "60")),
            invitation_ttl_days=int(os.getenv("INVITATION_TTL_DAYS", "7")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure the root logger from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
