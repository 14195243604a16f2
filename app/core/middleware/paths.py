from __future__ import annotations

from typing import Final

MANAGEMENT_PREFIX: Final[str] = "/v0/management/"
ACCOUNTS_MONITOR_PATH: Final[str] = "/v0/management/accounts-monitor"
ACCOUNTS_MONITOR_PAGE_PATH: Final[str] = "/v0/management/accounts-monitor/page"


def is_management_path(path: str) -> bool:
    return path.startswith(MANAGEMENT_PREFIX)
