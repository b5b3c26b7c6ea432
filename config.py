"""Application settings loaded from the environment"""
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv


def _split_csv(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    mongodb_uri: str = "mongodb://localhost:27017"
    db_name: str = "dental_expenses"
    allowed_origins: Tuple[str, ...] = ("http://localhost:3000", "http://localhost:5173")
    host: str = "0.0.0.0"
    port: int = 5001
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 30.0
    health_check_interval: float = 15.0
    server_selection_timeout_ms: int = 5000
    rate_limit: str = "120/minute"
    rate_limit_enabled: bool = True
    max_bulk_body_size: int = 1 * 1024 * 1024  # 1MB
    summary_excluded_categories: Tuple[str, ...] = field(default_factory=tuple)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Builds settings from environment variables (after loading .env)."""
        load_dotenv()
        defaults = cls()
        origins = _split_csv(os.getenv("ALLOWED_ORIGINS"))
        return cls(
            mongodb_uri=os.getenv("MONGODB_URI", defaults.mongodb_uri),
            db_name=os.getenv("DB_NAME", defaults.db_name),
            allowed_origins=origins or defaults.allowed_origins,
            host=os.getenv("HOST", defaults.host),
            port=_get_int("PORT", defaults.port),
            retry_initial_delay=_get_float("DB_RETRY_INITIAL_DELAY", defaults.retry_initial_delay),
            retry_max_delay=_get_float("DB_RETRY_MAX_DELAY", defaults.retry_max_delay),
            health_check_interval=_get_float("DB_HEALTH_CHECK_INTERVAL", defaults.health_check_interval),
            server_selection_timeout_ms=_get_int("DB_SERVER_SELECTION_TIMEOUT_MS", defaults.server_selection_timeout_ms),
            rate_limit=os.getenv("RATE_LIMIT", defaults.rate_limit),
            rate_limit_enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
            max_bulk_body_size=_get_int("MAX_BULK_BODY_SIZE", defaults.max_bulk_body_size),
            summary_excluded_categories=_split_csv(os.getenv("SUMMARY_EXCLUDED_CATEGORIES")),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )
