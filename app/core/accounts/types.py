from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from app.core.utils.time import utcnow


class MonitorState(str, Enum):
    ACTIVE = "active"
    ERROR = "error"
    COOLDOWN = "cooldown"
    DISABLED = "disabled"


@dataclass
class QuotaState:
    exceeded: bool = False
    reason: str = ""
    backoff_level: int = 0
    next_recover_at: datetime | None = None


@dataclass
class AccountError:
    code: str = ""
    message: str = ""
    http_status: int | None = None


@dataclass
class AccountRecord:
    id: str
    provider: str
    label: str = ""
    status: str = "active"
    status_message: str = ""
    disabled: bool = False
    unavailable: bool = False
    quota: QuotaState = field(default_factory=QuotaState)
    next_retry_after: datetime | None = None
    last_error: AccountError | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    index: int = 0

    @property
    def quota_exceeded(self) -> bool:
        return self.quota.exceeded

    @property
    def next_recover_at(self) -> datetime | None:
        return self.quota.next_recover_at
