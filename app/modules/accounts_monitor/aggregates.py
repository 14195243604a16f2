from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from app.core.accounts.classifier import classify
from app.core.accounts.types import AccountRecord, MonitorState
from app.modules.accounts_monitor.mappers import to_account_status
from app.modules.accounts_monitor.schemas import AccountStatus, AccountsSnapshot


@dataclass(slots=True)
class MonitorCounts:
    total: int = 0
    active: int = 0
    error: int = 0
    cooldown: int = 0

    @property
    def disabled(self) -> int:
        return self.total - self.active - self.error - self.cooldown

    def add(self, state: MonitorState) -> None:
        self.total += 1
        match state:
            case MonitorState.ACTIVE:
                self.active += 1
            case MonitorState.ERROR:
                self.error += 1
            case MonitorState.COOLDOWN:
                self.cooldown += 1
            case MonitorState.DISABLED:
                # Counted in the total only.
                pass


def aggregate(accounts: Iterable[AccountRecord | None], now: datetime) -> AccountsSnapshot:
    statuses: list[AccountStatus] = []
    counts = MonitorCounts()
    for record in accounts:
        if record is None:
            continue
        statuses.append(to_account_status(record))
        counts.add(classify(record, now))

    return AccountsSnapshot(
        timestamp=now,
        total_count=counts.total,
        active_count=counts.active,
        error_count=counts.error,
        cooldown_count=counts.cooldown,
        accounts=statuses,
    )
