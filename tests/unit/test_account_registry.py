from __future__ import annotations

import threading

import pytest

from app.core.accounts.registry import InMemoryAccountRegistry, RegistrySyncResult
from app.core.accounts.types import QuotaState

pytestmark = pytest.mark.unit


def test_register_assigns_stable_indexes(make_record) -> None:
    registry = InMemoryAccountRegistry([make_record("a"), make_record("b")])
    assert [(record.id, record.index) for record in registry.list()] == [("a", 1), ("b", 2)]

    registry.register(make_record("a", label="renamed"))
    registry.register(make_record("c"))

    listed = {record.id: record for record in registry.list()}
    assert listed["a"].index == 1
    assert listed["a"].label == "renamed"
    assert listed["c"].index == 3


def test_list_returns_detached_copies(make_record) -> None:
    registry = InMemoryAccountRegistry([make_record("a")])
    copy = registry.list()[0]
    copy.disabled = True
    copy.quota.exceeded = True

    stored = registry.get("a")
    assert stored is not None
    assert stored.disabled is False
    assert stored.quota.exceeded is False


def test_apply_mutates_and_bumps_updated_at(make_record) -> None:
    record = make_record("a")
    registry = InMemoryAccountRegistry([record])
    before = registry.get("a").updated_at

    def _exceed(target) -> None:
        target.unavailable = True
        target.quota = QuotaState(exceeded=True, reason="quota", backoff_level=1)

    assert registry.apply("a", _exceed) is True
    assert registry.apply("missing", _exceed) is False

    updated = registry.get("a")
    assert updated.quota.exceeded is True
    assert updated.updated_at > before


def test_remove(make_record) -> None:
    registry = InMemoryAccountRegistry([make_record("a")])
    assert registry.remove("a") is True
    assert registry.remove("a") is False
    assert len(registry) == 0
    assert registry.get("a") is None


def test_sync_keeps_runtime_state_and_replaces_file_fields(make_record) -> None:
    registry = InMemoryAccountRegistry([make_record("a"), make_record("b")])
    registry.apply("a", lambda record: setattr(record, "unavailable", True))

    result = registry.sync(
        [
            make_record("a", label="new label", disabled=True),
            make_record("c"),
        ]
    )

    assert result == RegistrySyncResult(added=1, updated=1, removed=1)
    listed = {record.id: record for record in registry.list()}
    assert set(listed) == {"a", "c"}
    assert listed["a"].label == "new label"
    assert listed["a"].disabled is True
    assert listed["a"].status == "disabled"
    assert listed["a"].unavailable is True
    assert listed["a"].index == 1
    assert listed["c"].index == 3


def test_sync_without_changes_reports_nothing(make_record) -> None:
    registry = InMemoryAccountRegistry([make_record("a")])
    assert registry.sync([make_record("a")]) == RegistrySyncResult(added=0, updated=0, removed=0)


def test_list_is_consistent_under_concurrent_mutation(make_record) -> None:
    registry = InMemoryAccountRegistry([make_record(f"acc_{i}") for i in range(50)])
    stop = threading.Event()

    def _toggle() -> None:
        flag = False
        while not stop.is_set():
            flag = not flag
            for i in range(50):
                registry.apply(f"acc_{i}", lambda record, value=flag: setattr(record, "disabled", value))

    worker = threading.Thread(target=_toggle)
    worker.start()
    try:
        for _ in range(20):
            snapshot = registry.list()
            assert len(snapshot) == 50
            assert len({record.id for record in snapshot}) == 50
    finally:
        stop.set()
        worker.join()


def test_registered_records_are_detached_from_caller(make_record) -> None:
    record = make_record("a")
    registry = InMemoryAccountRegistry([record])
    record.disabled = True
    record.quota.exceeded = True

    stored = registry.list()[0]
    assert stored.disabled is False
    assert stored.quota.exceeded is False
    assert stored.index == 1
    assert record.index == 0

    later = make_record("b")
    registry.register(later)
    later.label = "changed"
    assert registry.get("b").label == "b"
    assert later.index == 0


def test_sync_does_not_keep_references_to_loaded_records(make_record) -> None:
    registry = InMemoryAccountRegistry()
    loaded = make_record("a", metadata={"plan": "pro"})
    registry.sync([loaded])

    loaded.unavailable = True
    loaded.metadata["plan"] = "free"

    stored = registry.get("a")
    assert stored.unavailable is False
    assert stored.metadata == {"plan": "pro"}
    assert stored.index == 1
    assert loaded.index == 0

    replacement = make_record("a", label="renamed", metadata={"plan": "team"})
    registry.sync([replacement])
    replacement.metadata["plan"] = "free"
    assert registry.get("a").metadata == {"plan": "team"}
