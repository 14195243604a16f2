from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[3]

DOCKER_DATA_DIR = Path("/var/lib/account-monitor")


def _in_container() -> bool:
    return Path("/.dockerenv").exists() or Path("/run/.containerenv").exists()


def _default_home_dir() -> Path:
    if _in_container():
        return DOCKER_DATA_DIR
    return Path.home() / ".account-monitor"


DEFAULT_HOME_DIR = _default_home_dir()
DEFAULT_AUTH_DIR = DEFAULT_HOME_DIR / "auths"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ACCOUNT_MONITOR_",
        env_file=(BASE_DIR / ".env", BASE_DIR / ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Directory of provider auth files (one JSON document per account). When the directory does not
    # exist the registry is reported as unavailable and the monitor endpoint answers 503.
    auth_dir: Path = DEFAULT_AUTH_DIR
    registry_reload_enabled: bool = True
    registry_reload_interval_seconds: float = Field(default=30.0, gt=0)
    # Bearer token required on `/v0/management/*` JSON endpoints. Unset leaves them open.
    management_key: str | None = None
    access_log_enabled: bool = False
    startup_log_config: bool = False
    startup_log_env: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("auth_dir", mode="before")
    @classmethod
    def _expand_auth_dir(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("auth_dir must be a path")

    @field_validator("management_key", mode="before")
    @classmethod
    def _normalize_management_key(cls, value: object) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        raise TypeError("management_key must be a string")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
