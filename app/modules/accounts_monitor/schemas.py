from __future__ import annotations

from typing import Any, List

from pydantic import Field

from app.modules.shared.schemas import ManagementModel, UtcDateTime


class AccountLastError(ManagementModel):
    code: str | None = None
    message: str | None = None
    http_status: int | None = None


class AccountStatus(ManagementModel):
    id: str
    provider: str
    label: str = ""
    email: str | None = None
    status: str = ""
    status_message: str | None = None
    disabled: bool = False
    unavailable: bool = False
    quota_exceeded: bool = False
    quota_reason: str | None = None
    next_recover_at: UtcDateTime | None = None
    next_retry_at: UtcDateTime | None = None
    backoff_level: int = 0
    last_error: AccountLastError | None = None
    last_refresh: UtcDateTime | None = None
    created_at: UtcDateTime
    updated_at: UtcDateTime
    index: int = 0


class AccountsSnapshot(ManagementModel):
    timestamp: UtcDateTime
    total_count: int = 0
    active_count: int = 0
    error_count: int = 0
    cooldown_count: int = 0
    accounts: List[AccountStatus] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        # Absent optional fields are omitted rather than emitted as null; clients treat presence as
        # the signal (e.g. `next_recover_at` drives the recovery countdown).
        return self.model_dump(mode="json", exclude_none=True)
