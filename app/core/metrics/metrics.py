from __future__ import annotations

from typing import Final, Literal

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from app.core.accounts.types import MonitorState

_PROM_CONTENT_TYPE: Final[str] = "text/plain; version=0.0.4; charset=utf-8"

SnapshotOutcome = Literal["ok", "registry_unavailable", "handler_not_initialized"]


class Metrics:
    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry(auto_describe=True)

        self._snapshot_requests_total = Counter(
            "account_monitor_snapshot_requests_total",
            "Total accounts monitor snapshot requests by outcome.",
            labelnames=("outcome",),
            registry=self._registry,
        )
        self._accounts = Gauge(
            "account_monitor_accounts",
            "Accounts per monitor state in the most recent snapshot.",
            labelnames=("state",),
            registry=self._registry,
        )
        self._snapshot_generated_at_seconds = Gauge(
            "account_monitor_snapshot_generated_at_seconds",
            "Unix seconds when the most recent snapshot was generated.",
            registry=self._registry,
        )

    @property
    def content_type(self) -> str:
        return _PROM_CONTENT_TYPE

    def observe_snapshot(
        self,
        *,
        total: int,
        active: int,
        error: int,
        cooldown: int,
        generated_at_epoch: float,
    ) -> None:
        self._snapshot_requests_total.labels(outcome="ok").inc()
        self._accounts.labels(state=MonitorState.ACTIVE.value).set(active)
        self._accounts.labels(state=MonitorState.ERROR.value).set(error)
        self._accounts.labels(state=MonitorState.COOLDOWN.value).set(cooldown)
        # Disabled accounts have no bucket in the payload; they are the remainder of the total.
        self._accounts.labels(state=MonitorState.DISABLED.value).set(max(0, total - active - error - cooldown))
        self._snapshot_generated_at_seconds.set(generated_at_epoch)

    def observe_snapshot_failure(self, outcome: SnapshotOutcome) -> None:
        self._snapshot_requests_total.labels(outcome=outcome).inc()

    def render(self) -> bytes:
        return generate_latest(self._registry)
