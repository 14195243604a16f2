from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from app.core.accounts.loader import build_registry_from_auth_dir
from app.core.accounts.registry import AccountRegistry
from app.core.accounts.reload_scheduler import RegistryReloadScheduler, build_registry_reload_scheduler
from app.core.config.settings import get_settings
from app.core.config.startup_log import log_startup_config
from app.core.handlers.exceptions import add_exception_handlers
from app.core.middleware import (
    add_api_unhandled_error_middleware,
    add_management_auth_middleware,
    add_request_id_middleware,
)
from app.core.middleware.paths import ACCOUNTS_MONITOR_PAGE_PATH
from app.modules.accounts_monitor import api as accounts_monitor_api
from app.modules.accounts_monitor.service import AccountsMonitorService
from app.modules.health import api as health_api
from app.modules.metrics import api as metrics_api

logger = logging.getLogger(__name__)


def create_app(*, registry: AccountRegistry | None = None) -> FastAPI:
    """Build the monitor app.

    `registry` lets a host service hand over its live account registry. Without one, accounts are
    loaded from `ACCOUNT_MONITOR_AUTH_DIR` and kept in sync by a periodic reload.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_startup_config()
        scheduler: RegistryReloadScheduler | None = None
        resolved = registry
        if resolved is None:
            loaded = await asyncio.to_thread(build_registry_from_auth_dir, get_settings().auth_dir)
            if loaded is not None:
                scheduler = build_registry_reload_scheduler(loaded)
                await scheduler.start()
            resolved = loaded

        app.state.account_registry = resolved
        app.state.accounts_monitor_service = AccountsMonitorService(resolved)
        try:
            yield
        finally:
            app.state.accounts_monitor_service = None
            if scheduler is not None:
                await scheduler.stop()

    app = FastAPI(title="account-monitor", version="0.1.0", lifespan=lifespan)

    # Middleware registered last runs first: request id wraps error handling wraps auth.
    add_management_auth_middleware(app)
    add_api_unhandled_error_middleware(app)
    add_request_id_middleware(app)
    add_exception_handlers(app)

    app.include_router(accounts_monitor_api.router)
    app.include_router(metrics_api.router)
    app.include_router(health_api.router)

    @app.get("/", include_in_schema=False)
    async def root_redirect():
        return RedirectResponse(url=ACCOUNTS_MONITOR_PAGE_PATH, status_code=302)

    return app


app = create_app()
