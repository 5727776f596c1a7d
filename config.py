"""
Runtime settings.

Values come from environment variables; a `.env` file in the working
directory (or the path given to load_settings) is read first.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'.") from None


@dataclass(frozen=True)
class Settings:
    db_path: str = "rigstock.db"
    enforce_required_slots: bool = False
    build_name_max_length: int = 52
    default_build_name: str = "New Gaming PC"
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.build_name_max_length < 8:
            raise ValueError("build_name_max_length must be at least 8.")


def load_settings(env_file: Optional[str] = None) -> Settings:
    load_dotenv(env_file, override=False)
    return Settings(
        db_path=os.getenv("RIGSTOCK_DB_PATH", "rigstock.db"),
        enforce_required_slots=_env_bool("RIGSTOCK_ENFORCE_REQUIRED_SLOTS", False),
        build_name_max_length=_env_int("RIGSTOCK_BUILD_NAME_MAX_LENGTH", 52),
        default_build_name=os.getenv("RIGSTOCK_DEFAULT_BUILD_NAME", "New Gaming PC"),
        log_level=os.getenv("RIGSTOCK_LOG_LEVEL", "WARNING").upper(),
    )


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
