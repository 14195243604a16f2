"""Account state classification shared by the snapshot endpoint and monitor clients.

Both the server-side aggregator (over registry records) and the terminal monitor (over the
parsed wire payload) call `classify`, so the summary counts and the client-side status filter
cannot drift apart.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from app.core.accounts.types import MonitorState
from app.core.utils.time import to_utc


class ClassifiableAccount(Protocol):
    @property
    def disabled(self) -> bool: ...

    @property
    def quota_exceeded(self) -> bool: ...

    @property
    def unavailable(self) -> bool: ...

    @property
    def next_recover_at(self) -> datetime | None: ...

    @property
    def status(self) -> str: ...


def classify(account: ClassifiableAccount, now: datetime) -> MonitorState:
    # Precedence matters: disabled > quota exceeded > pending recovery > error > active.
    if account.disabled:
        return MonitorState.DISABLED
    if account.quota_exceeded:
        return MonitorState.COOLDOWN
    if account.unavailable and is_recovery_pending(account.next_recover_at, now):
        return MonitorState.COOLDOWN
    if account.unavailable or account.status == "error":
        return MonitorState.ERROR
    return MonitorState.ACTIVE


def is_recovery_pending(next_recover_at: datetime | None, now: datetime) -> bool:
    if next_recover_at is None:
        return False
    return to_utc(next_recover_at) > to_utc(now)
