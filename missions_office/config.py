import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    db_path: str = ".data/missions_office.db"
    log_level: int = logging.INFO
    # Lookup passes the resolver makes after losing an insert race
    resolver_attempts: int = 3


def _log_level(raw: str) -> int:
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _positive_int(raw: str, default: int) -> int:
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_settings() -> Settings:
    load_dotenv(override=False)
    defaults = Settings()
    db_path = os.getenv("MISSIONS_DB_PATH", "").strip()
    return Settings(
        db_path=db_path or defaults.db_path,
        log_level=_log_level(os.getenv("MISSIONS_LOG_LEVEL", "INFO")),
        resolver_attempts=_positive_int(
            os.getenv("MISSIONS_RESOLVER_ATTEMPTS", ""), defaults.resolver_attempts
        ),
    )
