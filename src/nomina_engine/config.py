"""Configuration management for the nomina engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

PACKAGED_TAX_TABLES = Path(__file__).parent / "tax_tables"


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    tax_config_dir: Path
    bulk_max_workers: int
    bulk_deadline_seconds: float | None
    log_level: str
    debug: bool

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        deadline = os.getenv("NOMINA_BULK_DEADLINE_SECONDS")
        workers = int(os.getenv("NOMINA_BULK_MAX_WORKERS", "4"))

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./nomina.db",
            ),
            tax_config_dir=Path(
                os.getenv("NOMINA_TAX_CONFIG_DIR", str(PACKAGED_TAX_TABLES))
            ),
            bulk_max_workers=max(workers, 1),
            bulk_deadline_seconds=float(deadline) if deadline else None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            debug=os.getenv("DEBUG", "false").lower() == "true",
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
