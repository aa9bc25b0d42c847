"""offercalc configuration management.

Loads configuration from environment variables with sensible defaults.
Company-specific pricing lives in the database (CompanyPricingConfig); the
values here are the fallbacks used when a company has not configured one.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class DBConfig:
    """Database connection configuration."""

    url: str
    pool_size: int = 10
    pool_max_overflow: int = 20
    pool_timeout: int = 30
    echo: bool = False  # SQL logging


@dataclass
class PricingConfig:
    """Pricing fallbacks applied when a company row leaves a value unset."""

    distance_increment_km: int = 150
    default_hours_per_day: float = 8.0


@dataclass
class SyncConfig:
    """Booking sync presentation and gating settings."""

    removal_summary_limit: int = 10  # Lines per resource class before "…and N more"
    tooltip_section_limit: int = 8
    technical_offers_only: bool = True


@dataclass
class AppConfig:
    """Root application configuration.

    Loads from environment variables with fail-fast on missing required values.
    """

    db: DBConfig
    log_level: str = "INFO"
    log_format: str = "text"  # json or text
    log_file: str | None = "logs/offercalc.log"

    pricing: PricingConfig = field(default_factory=PricingConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Required environment variables:
        - DATABASE_URL: SQLAlchemy async connection string

        Optional (with defaults):
        - LOG_LEVEL: Logging verbosity (default: "INFO")
        - LOG_FORMAT: "json" or "text" (default: "text")
        - LOG_FILE: Log file path, used when its directory exists;
          empty disables (default: "logs/offercalc.log")
        - DISTANCE_INCREMENT_KM, DEFAULT_HOURS_PER_DAY
        - SYNC_REMOVAL_SUMMARY_LIMIT, SYNC_TOOLTIP_SECTION_LIMIT,
          SYNC_TECHNICAL_OFFERS_ONLY

        Raises:
            KeyError: If required environment variables are missing
        """
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise KeyError(
                "DATABASE_URL environment variable is required. "
                "Example: sqlite+aiosqlite:///./offercalc.db"
            )

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
            log_file=os.getenv("LOG_FILE", "logs/offercalc.log") or None,
            db=DBConfig(
                url=database_url,
                pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
                pool_max_overflow=int(os.getenv("DB_POOL_MAX_OVERFLOW", "20")),
                pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
                echo=os.getenv("DB_ECHO", "false").lower() == "true",
            ),
            pricing=PricingConfig(
                distance_increment_km=int(os.getenv("DISTANCE_INCREMENT_KM", "150")),
                default_hours_per_day=float(os.getenv("DEFAULT_HOURS_PER_DAY", "8")),
            ),
            sync=SyncConfig(
                removal_summary_limit=int(os.getenv("SYNC_REMOVAL_SUMMARY_LIMIT", "10")),
                tooltip_section_limit=int(os.getenv("SYNC_TOOLTIP_SECTION_LIMIT", "8")),
                technical_offers_only=os.getenv(
                    "SYNC_TECHNICAL_OFFERS_ONLY", "true"
                ).lower()
                == "true",
            ),
        )


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment.

    Raises:
        KeyError: If required environment variables are missing
    """
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads env."""
    global _config
    _config = None
