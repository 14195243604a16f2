from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final

from app.core.config.settings import BASE_DIR, Settings, get_settings

logger = logging.getLogger(__name__)

_ENV_PREFIX: Final[str] = "ACCOUNT_MONITOR_"
_REDACT_VALUE: Final[str] = "***"


@dataclass(frozen=True, slots=True)
class StartupEnvSnapshot:
    values: dict[str, str]

    @classmethod
    def from_process_env(cls) -> StartupEnvSnapshot:
        values: dict[str, str] = {}
        for key, value in os.environ.items():
            if key.startswith(_ENV_PREFIX):
                values[key] = value
        return cls(values=values)


def log_startup_config() -> None:
    settings = get_settings()
    if not settings.startup_log_config and not settings.startup_log_env:
        return

    env_files = (BASE_DIR / ".env", BASE_DIR / ".env.local")
    env_file_status = ", ".join(f"{path.name}={'present' if path.exists() else 'missing'}" for path in env_files)
    logger.info("Startup config: env_files=[%s]", env_file_status)

    if settings.startup_log_env:
        _log_env_snapshot(StartupEnvSnapshot.from_process_env())

    if settings.startup_log_config:
        _log_settings(settings)


def _log_env_snapshot(snapshot: StartupEnvSnapshot) -> None:
    items = sorted(snapshot.values.items(), key=lambda kv: kv[0])
    logger.info("Startup env snapshot: prefix=%s", _ENV_PREFIX)
    for key, value in items:
        logger.info("  %s=%s", key, _redact_env_value(key, value))


def _log_settings(settings: Settings) -> None:
    # `mode="json"` converts Path -> str and other non-JSON types.
    data = settings.model_dump(mode="json")
    items = sorted(data.items(), key=lambda kv: kv[0])
    logger.info("Startup settings snapshot:")
    for key, value in items:
        logger.info("  %s=%s", key, _redact_setting_value(key, value))


def _redact_env_value(key: str, value: str) -> str:
    upper = key.upper()
    if any(token in upper for token in ("TOKEN", "PASSWORD", "SECRET", "COOKIE")):
        return _REDACT_VALUE
    if upper.endswith("_KEY"):
        return _REDACT_VALUE
    return value


def _redact_setting_value(key: str, value: object) -> object:
    if value is None:
        return value
    if key.lower().endswith("_key"):
        return _REDACT_VALUE
    return value
