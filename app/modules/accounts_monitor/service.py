from __future__ import annotations

from datetime import datetime

from app.core.accounts.registry import AccountRegistry
from app.core.metrics import get_metrics
from app.core.metrics.metrics import Metrics
from app.core.utils.time import utcnow
from app.modules.accounts_monitor.aggregates import aggregate
from app.modules.accounts_monitor.schemas import AccountsSnapshot


class RegistryUnavailableError(RuntimeError):
    pass


class AccountsMonitorService:
    def __init__(self, registry: AccountRegistry | None, *, metrics: Metrics | None = None) -> None:
        self._registry = registry
        self._metrics = metrics

    @property
    def registry_available(self) -> bool:
        return self._registry is not None

    def snapshot(self, now: datetime | None = None) -> AccountsSnapshot:
        if self._registry is None:
            raise RegistryUnavailableError("Account registry not available")
        # One read of the registry per snapshot: counts and account list come from the same copy.
        records = self._registry.list()
        current = now or utcnow()
        snapshot = aggregate(records, current)
        self._get_metrics().observe_snapshot(
            total=snapshot.total_count,
            active=snapshot.active_count,
            error=snapshot.error_count,
            cooldown=snapshot.cooldown_count,
            generated_at_epoch=current.timestamp(),
        )
        return snapshot

    def _get_metrics(self) -> Metrics:
        return self._metrics or get_metrics()
