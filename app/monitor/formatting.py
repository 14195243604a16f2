from __future__ import annotations

from datetime import datetime

from app.core.accounts.types import MonitorState
from app.core.utils.time import to_utc
from app.modules.accounts_monitor.schemas import AccountStatus


def format_duration(ms: float) -> str:
    """Format a remaining duration with its two largest units, e.g. "1h 5m", "3m 12s", "45s"."""
    if ms <= 0:
        return "now"
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def recovery_countdown(account: AccountStatus, now: datetime) -> str:
    if account.next_recover_at is None:
        return ""
    remaining_ms = (to_utc(account.next_recover_at) - to_utc(now)).total_seconds() * 1000
    if remaining_ms <= 0:
        return ""
    return format_duration(remaining_ms)


def status_text(account: AccountStatus, state: MonitorState, countdown: str) -> str:
    match state:
        case MonitorState.DISABLED:
            return "Disabled"
        case MonitorState.COOLDOWN:
            return f"Cooldown ({countdown})" if countdown else "Cooldown"
        case MonitorState.ERROR:
            return account.status_message or "Error"
        case _:
            return "Active"


def account_title(account: AccountStatus) -> str:
    return account.email or account.label or "Unknown"


def account_id_line(account: AccountStatus) -> str:
    return f"#{account.index} • {account.id[:20]}..."


def format_local_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return to_utc(value).astimezone().strftime("%Y-%m-%d %H:%M:%S")
