from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from app.modules.accounts_monitor.service import AccountsMonitorService


@dataclass(slots=True)
class AccountsMonitorContext:
    service: AccountsMonitorService | None


def get_accounts_monitor_context(request: Request) -> AccountsMonitorContext:
    service = getattr(request.app.state, "accounts_monitor_service", None)
    return AccountsMonitorContext(service=service)
