"""Configuration constants, .env parsing, and scheduler settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def read_env_file(keys: list[str]) -> dict[str, str]:
    """Parse .env file and return values for requested keys.

    Does NOT load into os.environ; callers decide what to do with values.
    This keeps webhook credentials out of the process environment so they
    don't leak to child processes.
    """
    env_file = Path.cwd() / ".env"
    try:
        content = env_file.read_text()
    except OSError:
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        eq_idx = trimmed.find("=")
        if eq_idx == -1:
            continue
        key = trimmed[:eq_idx].strip()
        if key not in wanted:
            continue
        value = trimmed[eq_idx + 1 :].strip()
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        if value:
            result[key] = value

    return result


_ENV_KEYS = [
    "SCHEDULER_POLL_INTERVAL",
    "COMMAND_POLL_INTERVAL",
    "MAX_CONCURRENT_FIRINGS",
    "ACTION_TIMEOUT",
    "SCHEDULER_TIMEZONE",
    "ACTION_WEBHOOK_URL",
    "RECUR_DATA_DIR",
]

# Read config values from .env (os.environ wins).
_env_config = read_env_file(_ENV_KEYS)


def _setting(key: str, default: str) -> str:
    return os.environ.get(key) or _env_config.get(key, default)


SCHEDULER_POLL_INTERVAL: float = float(_setting("SCHEDULER_POLL_INTERVAL", "60"))  # seconds
COMMAND_POLL_INTERVAL: float = float(_setting("COMMAND_POLL_INTERVAL", "1"))
MAX_CONCURRENT_FIRINGS: int = max(1, int(_setting("MAX_CONCURRENT_FIRINGS", "10")))
ACTION_TIMEOUT: float = float(_setting("ACTION_TIMEOUT", "30"))  # seconds
ACTION_WEBHOOK_URL: str = _setting("ACTION_WEBHOOK_URL", "")
SHUTDOWN_GRACE_PERIOD: float = 5.0

# Upper bound for cron searches; Feb 29 needs up to 4 years.
CRON_SEARCH_YEARS: int = 4

# Absolute paths
PROJECT_ROOT: Path = Path.cwd()
DATA_DIR: Path = Path(_setting("RECUR_DATA_DIR", str(PROJECT_ROOT / "data"))).resolve()
STORE_DIR: Path = (DATA_DIR / "store").resolve()
IPC_DIR: Path = DATA_DIR / "ipc"
SNAPSHOT_PATH: Path = DATA_DIR / "schedules.json"


def resolve_timezone(name: str | None) -> str:
    """Return name if it is a known IANA zone, else UTC."""
    if not name:
        return "UTC"
    try:
        ZoneInfo(name)
        return name
    except (ZoneInfoNotFoundError, ValueError):
        return "UTC"


SCHEDULER_TIMEZONE: str = resolve_timezone(_setting("SCHEDULER_TIMEZONE", "UTC"))


@dataclass
class SchedulerSettings:
    """Tunables for the scheduler loop, overridable per instance."""

    poll_interval: float = SCHEDULER_POLL_INTERVAL
    max_concurrent: int = MAX_CONCURRENT_FIRINGS
    action_timeout: float = ACTION_TIMEOUT
    default_timezone: str = SCHEDULER_TIMEZONE
    shutdown_grace_period: float = SHUTDOWN_GRACE_PERIOD
