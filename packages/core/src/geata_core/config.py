"""Configuration utilities.

All settings come from the environment (optionally primed from
``config/env/.env.backend``) so a deployment only needs env vars.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Optional
import os
from pathlib import Path
from zoneinfo import ZoneInfo
from dotenv import load_dotenv  # type: ignore


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    return val if val not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    val = _env(name)
    try:
        return int(val) if val is not None else default
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    val = _env(name)
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


INSECURE_SECRET_KEY = "dev-insecure-secret-key-change-me"


@dataclass
class Settings:
    database_url: Optional[str] = field(default_factory=lambda: _env("GEATA_DB_URL") or _env("GEATA_DATABASE_URL"))
    secret_key: str = field(default_factory=lambda: _env("SECRET_KEY", INSECURE_SECRET_KEY))
    access_token_expire_hours: int = field(default_factory=lambda: _env_int("ACCESS_TOKEN_EXPIRE_HOURS", 24 * 7))
    admin_api_key: Optional[str] = field(default_factory=lambda: _env("ADMIN_API_KEY"))
    # IANA zone used to evaluate schedules; host local time when unset
    timezone_name: Optional[str] = field(default_factory=lambda: _env("GEATA_TIMEZONE"))
    default_duration_ms: int = field(default_factory=lambda: _env_int("GEATA_DEFAULT_DURATION_MS", 1000))
    events_max_limit: int = field(default_factory=lambda: _env_int("GEATA_EVENTS_MAX_LIMIT", 1000))
    poll_require_secret: bool = field(default_factory=lambda: _env_bool("GEATA_POLL_REQUIRE_SECRET", False))
    default_country_code: str = field(default_factory=lambda: _env("GEATA_DEFAULT_COUNTRY_CODE", "+353"))
    notify_workers: int = field(default_factory=lambda: _env_int("GEATA_NOTIFY_WORKERS", 2))

    def repo_root(self) -> str:
        # packages/core/src/geata_core -> repo root
        return os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../../"))

    def load_backend_env(self) -> None:
        """Load canonical backend env file if present (idempotent)."""
        env_file = Path(self.repo_root()) / "config" / "env" / ".env.backend"
        if env_file.exists():
            load_dotenv(env_file, override=False)

    def effective_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        data_dir = os.path.join(self.repo_root(), "data")
        return f"sqlite:///{os.path.join(data_dir, 'geata.db')}"

    def tz(self) -> Optional[tzinfo]:
        if not self.timezone_name:
            return None
        return ZoneInfo(self.timezone_name)

    def now(self) -> datetime:
        """Wall-clock instant used for access decisions.

        Naive local time of the configured zone (or of the host when no zone
        is configured); schedules are written in that wall-clock time.
        """
        zone = self.tz()
        if zone is None:
            return datetime.now()
        return datetime.now(timezone.utc).astimezone(zone).replace(tzinfo=None)


__all__ = ["Settings", "INSECURE_SECRET_KEY"]
