"""Persisted client-side configuration for the terminal monitor.

The management key captured after an auth challenge lives here, so it survives restarts and is
shared by every request the process makes. Load and save are explicit; nothing is written until
`save_monitor_config` is called.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from app.core.config.settings import DEFAULT_HOME_DIR

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV: Final[str] = "ACCOUNT_MONITOR_CLIENT_CONFIG"
DEFAULT_CONFIG_PATH: Final[Path] = DEFAULT_HOME_DIR / "monitor.json"
DEFAULT_BASE_URL: Final[str] = "http://127.0.0.1:8317"

# 0 turns the refresh timer off.
REFRESH_INTERVALS: Final[tuple[int, ...]] = (0, 5, 10, 30, 60)
DEFAULT_REFRESH_INTERVAL: Final[int] = 10


class MonitorConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    base_url: str = DEFAULT_BASE_URL
    management_key: str | None = None
    refresh_interval_seconds: int = DEFAULT_REFRESH_INTERVAL

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value

    @field_validator("management_key")
    @classmethod
    def _normalize_management_key(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("refresh_interval_seconds")
    @classmethod
    def _validate_refresh_interval(cls, value: int) -> int:
        if value not in REFRESH_INTERVALS:
            raise ValueError(f"refresh_interval_seconds must be one of {REFRESH_INTERVALS}")
        return value


def monitor_config_path() -> Path:
    override = os.environ.get(CONFIG_PATH_ENV)
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_PATH


def load_monitor_config(path: Path | None = None) -> MonitorConfig:
    resolved = path or monitor_config_path()
    if not resolved.exists():
        return MonitorConfig()
    try:
        data = json.loads(resolved.read_text(encoding="utf-8"))
        return MonitorConfig.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError):
        logger.warning("Ignoring unreadable monitor config path=%s", resolved)
        return MonitorConfig()


def save_monitor_config(config: MonitorConfig, path: Path | None = None) -> Path:
    resolved = path or monitor_config_path()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    resolved.write_text(json.dumps(config.model_dump(mode="json"), indent=2) + "\n", encoding="utf-8")
    # The file carries a credential.
    resolved.chmod(0o600)
    return resolved


_config: MonitorConfig | None = None


def get_monitor_config() -> MonitorConfig:
    global _config
    if _config is None:
        _config = load_monitor_config()
    return _config


def set_monitor_config(config: MonitorConfig | None) -> None:
    global _config
    _config = config
