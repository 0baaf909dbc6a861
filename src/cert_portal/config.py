"""Runtime settings loaded from environment variables / .env file."""
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=False)

DEFAULT_DB_PATH = str(Path.home() / ".cert_portal" / "portal.db")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass(frozen=True)
class Settings:
    db_path: str
    log_dir: str
    log_file: str
    log_level: str
    commit_retries: int
    poll_interval: float
    due_soon_days: int


def get_settings() -> Settings:
    """Build a Settings object from the current environment."""
    return Settings(
        db_path=os.getenv("CERT_PORTAL_DB", DEFAULT_DB_PATH),
        log_dir=os.getenv("CERT_PORTAL_LOG_DIR", str(Path.home() / ".cert_portal" / "log")),
        log_file=os.getenv("CERT_PORTAL_LOG_FILE", "cert_portal.log"),
        log_level=os.getenv("CERT_PORTAL_LOG_LEVEL", "INFO").upper(),
        commit_retries=max(1, _env_int("CERT_PORTAL_COMMIT_RETRIES", 3)),
        poll_interval=_env_float("CERT_PORTAL_POLL_INTERVAL", 1.0),
        due_soon_days=_env_int("CERT_PORTAL_DUE_SOON_DAYS", 7),
    )
