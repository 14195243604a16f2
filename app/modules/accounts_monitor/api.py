from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, JSONResponse

from app.core.errors import management_error
from app.core.metrics import get_metrics
from app.dependencies import AccountsMonitorContext, get_accounts_monitor_context
from app.modules.accounts_monitor.schemas import AccountsSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v0/management/accounts-monitor", tags=["management"])

_PAGE_PATH = Path(__file__).resolve().parents[2] / "static" / "accounts_monitor.html"


@lru_cache(maxsize=1)
def _page_html() -> str:
    return _PAGE_PATH.read_text(encoding="utf-8")


@router.get(
    "",
    response_model=AccountsSnapshot,
    response_model_exclude_none=True,
)
async def get_accounts_monitor(
    context: AccountsMonitorContext = Depends(get_accounts_monitor_context),
) -> AccountsSnapshot | JSONResponse:
    if context.service is None:
        logger.warning("Accounts monitor requested before the handler was initialized")
        get_metrics().observe_snapshot_failure("handler_not_initialized")
        return JSONResponse(
            status_code=500,
            content=management_error("handler_not_initialized", "Handler not initialized"),
        )
    if not context.service.registry_available:
        get_metrics().observe_snapshot_failure("registry_unavailable")
        return JSONResponse(
            status_code=503,
            content=management_error("registry_unavailable", "Account registry not available"),
        )
    return context.service.snapshot()


@router.get("/page", include_in_schema=False)
async def get_accounts_monitor_page() -> HTMLResponse:
    return HTMLResponse(
        content=_page_html(),
        headers={"Cache-Control": "no-cache"},
    )
