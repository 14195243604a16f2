from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry
from prometheus_client.parser import text_string_to_metric_families

from app.core.accounts.registry import InMemoryAccountRegistry
from app.core.metrics.metrics import Metrics
from app.modules.accounts_monitor.service import AccountsMonitorService, RegistryUnavailableError

pytestmark = pytest.mark.unit


def _sample_value(text: str, metric_name: str, labels: dict[str, str] | None = None) -> float | None:
    target_labels = labels or {}
    for family in text_string_to_metric_families(text):
        for sample in family.samples:
            if sample.name != metric_name:
                continue
            if all(sample.labels.get(k) == v for k, v in target_labels.items()):
                return float(sample.value)
    return None


def test_metrics_observes_snapshot() -> None:
    metrics = Metrics(registry=CollectorRegistry(auto_describe=True))
    metrics.observe_snapshot(total=5, active=2, error=1, cooldown=1, generated_at_epoch=1_700_000_000.0)

    rendered = metrics.render().decode("utf-8")
    assert _sample_value(rendered, "account_monitor_snapshot_requests_total", {"outcome": "ok"}) == 1.0
    assert _sample_value(rendered, "account_monitor_accounts", {"state": "active"}) == 2.0
    assert _sample_value(rendered, "account_monitor_accounts", {"state": "error"}) == 1.0
    assert _sample_value(rendered, "account_monitor_accounts", {"state": "cooldown"}) == 1.0
    assert _sample_value(rendered, "account_monitor_accounts", {"state": "disabled"}) == 1.0
    assert _sample_value(rendered, "account_monitor_snapshot_generated_at_seconds") == 1_700_000_000.0


def test_metrics_observes_failures() -> None:
    metrics = Metrics(registry=CollectorRegistry(auto_describe=True))
    metrics.observe_snapshot_failure("registry_unavailable")
    metrics.observe_snapshot_failure("registry_unavailable")

    rendered = metrics.render().decode("utf-8")
    assert (
        _sample_value(rendered, "account_monitor_snapshot_requests_total", {"outcome": "registry_unavailable"}) == 2.0
    )


def test_service_snapshot_updates_gauges(sample_records, now) -> None:
    metrics = Metrics(registry=CollectorRegistry(auto_describe=True))
    service = AccountsMonitorService(InMemoryAccountRegistry(sample_records()), metrics=metrics)

    snapshot = service.snapshot(now=now)

    assert snapshot.total_count == 4
    rendered = metrics.render().decode("utf-8")
    for state in ("active", "error", "cooldown", "disabled"):
        assert _sample_value(rendered, "account_monitor_accounts", {"state": state}) == 1.0


def test_service_without_registry_raises() -> None:
    service = AccountsMonitorService(None, metrics=Metrics(registry=CollectorRegistry()))
    assert service.registry_available is False
    with pytest.raises(RegistryUnavailableError):
        service.snapshot()
