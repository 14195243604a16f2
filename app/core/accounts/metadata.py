from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Final

from app.core.utils.time import from_epoch_seconds, parse_iso_datetime

LAST_REFRESH_KEYS: Final[tuple[str, ...]] = (
    "last_refresh",
    "lastRefresh",
    "last_refreshed_at",
    "last_refresh_at",
)

# Epoch values above this are milliseconds (1e12 seconds is ~33,000 years out).
_EPOCH_MILLIS_THRESHOLD: Final[float] = 1e12


def metadata_email(metadata: Mapping[str, Any] | None) -> str | None:
    if not metadata:
        return None
    value = metadata.get("email")
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def metadata_last_refresh(metadata: Mapping[str, Any] | None) -> datetime | None:
    if not metadata:
        return None
    for key in LAST_REFRESH_KEYS:
        if key not in metadata:
            continue
        parsed = _coerce_timestamp(metadata[key])
        if parsed is not None:
            return parsed
    return None


def _coerce_timestamp(value: object) -> datetime | None:
    # bool is an int subclass; a flag is never a timestamp.
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return parse_iso_datetime(value)
    if isinstance(value, (int, float)):
        if value <= 0:
            return None
        seconds = value / 1000 if value > _EPOCH_MILLIS_THRESHOLD else value
        try:
            return from_epoch_seconds(seconds)
        except (OverflowError, OSError, ValueError):
            return None
    return None
