from __future__ import annotations

from app.core.accounts.metadata import metadata_email, metadata_last_refresh
from app.core.accounts.types import AccountError, AccountRecord
from app.modules.accounts_monitor.schemas import AccountLastError, AccountStatus


def to_account_status(record: AccountRecord) -> AccountStatus:
    return AccountStatus(
        id=record.id,
        provider=record.provider,
        label=record.label,
        email=metadata_email(record.metadata),
        status=record.status,
        status_message=_optional_text(record.status_message),
        disabled=record.disabled,
        unavailable=record.unavailable,
        quota_exceeded=record.quota.exceeded,
        quota_reason=_optional_text(record.quota.reason),
        next_recover_at=record.quota.next_recover_at,
        next_retry_at=record.next_retry_after,
        backoff_level=max(0, record.quota.backoff_level),
        last_error=_to_last_error(record.last_error),
        last_refresh=metadata_last_refresh(record.metadata),
        created_at=record.created_at,
        updated_at=record.updated_at,
        index=record.index,
    )


def _to_last_error(error: AccountError | None) -> AccountLastError | None:
    if error is None:
        return None
    return AccountLastError(
        code=_optional_text(error.code),
        message=_optional_text(error.message),
        http_status=error.http_status or None,
    )


def _optional_text(value: str | None) -> str | None:
    if not value:
        return None
    return value
