"""Runtime settings loaded from environment variables, plus logging setup."""

from __future__ import annotations

import logging
import sys
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All settings come from ``VITALSCORE_*`` environment variables (or .env)."""

    # --- General ---
    log_level: str = "INFO"
    verbose: bool = False
    drivers: list[str] = ["oura"]

    # --- Vendor credentials ---
    oura_personal_token: str = ""
    whoop_access_token: str = ""

    # --- HTTP ---
    http_timeout_seconds: float = 30.0

    # --- Analysis ---
    analysis_config_path: str | None = None  # defaults to the bundled YAML

    model_config = {
        "env_prefix": "VITALSCORE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Install the root log handler; ``verbose`` forces DEBUG."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.verbose else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    logging.getLogger("vitalscore").debug("Logging configured at %s", logging.getLevelName(level))
