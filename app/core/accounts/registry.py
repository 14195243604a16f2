from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from app.core.accounts.types import AccountRecord
from app.core.utils.time import utcnow


class AccountRegistry(Protocol):
    def list(self) -> Sequence[AccountRecord | None]: ...


@dataclass(frozen=True, slots=True)
class RegistrySyncResult:
    added: int
    updated: int
    removed: int


class InMemoryAccountRegistry:
    """Lock-protected account registry.

    `list()` copies every record while holding the lock, so callers get a consistent point-in-time
    view even while other tasks or threads keep mutating accounts through `apply`/`sync`.
    """

    def __init__(self, records: Iterable[AccountRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, AccountRecord] = {}
        self._next_index = 0
        for record in records:
            self.register(record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def list(self) -> list[AccountRecord]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._records.values()]

    def get(self, account_id: str) -> AccountRecord | None:
        with self._lock:
            record = self._records.get(account_id)
            return copy.deepcopy(record) if record is not None else None

    def register(self, record: AccountRecord) -> AccountRecord:
        stored = copy.deepcopy(record)
        with self._lock:
            existing = self._records.get(stored.id)
            if existing is not None:
                stored.index = existing.index
            else:
                self._next_index += 1
                stored.index = self._next_index
            self._records[stored.id] = stored
            return copy.deepcopy(stored)

    def remove(self, account_id: str) -> bool:
        with self._lock:
            return self._records.pop(account_id, None) is not None

    def apply(self, account_id: str, mutate: Callable[[AccountRecord], None]) -> bool:
        with self._lock:
            record = self._records.get(account_id)
            if record is None:
                return False
            mutate(record)
            record.updated_at = utcnow()
            return True

    def sync(self, records: Sequence[AccountRecord]) -> RegistrySyncResult:
        """Reconcile the registry with freshly loaded auth files.

        Only file-owned fields (provider, label, disabled flag, metadata) are replaced on existing
        accounts; runtime state such as quota, availability and last error is kept.
        """
        added = updated = removed = 0
        incoming_ids = {record.id for record in records}
        with self._lock:
            for account_id in [key for key in self._records if key not in incoming_ids]:
                del self._records[account_id]
                removed += 1
            for record in records:
                existing = self._records.get(record.id)
                if existing is None:
                    stored = copy.deepcopy(record)
                    self._next_index += 1
                    stored.index = self._next_index
                    self._records[stored.id] = stored
                    added += 1
                    continue
                if _merge_file_fields(existing, record):
                    updated += 1
        return RegistrySyncResult(added=added, updated=updated, removed=removed)


def _merge_file_fields(existing: AccountRecord, incoming: AccountRecord) -> bool:
    changed = (
        existing.provider != incoming.provider
        or existing.label != incoming.label
        or existing.disabled != incoming.disabled
        or existing.metadata != incoming.metadata
    )
    if not changed:
        return False
    if existing.disabled != incoming.disabled:
        existing.status = "disabled" if incoming.disabled else "active"
        existing.status_message = ""
    existing.provider = incoming.provider
    existing.label = incoming.label
    existing.disabled = incoming.disabled
    existing.metadata = copy.deepcopy(incoming.metadata)
    existing.updated_at = incoming.updated_at
    return True
