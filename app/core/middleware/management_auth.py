from __future__ import annotations

import hmac
import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from app.core.config.settings import get_settings
from app.core.errors import management_error
from app.core.middleware.paths import ACCOUNTS_MONITOR_PAGE_PATH, is_management_path

logger = logging.getLogger(__name__)

# The dashboard page must load without credentials so it can prompt for them.
_PUBLIC_MANAGEMENT_PATHS = frozenset({ACCOUNTS_MONITOR_PAGE_PATH})


def add_management_auth_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def management_auth_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        path = request.url.path.rstrip("/") or "/"
        if not is_management_path(request.url.path) or path in _PUBLIC_MANAGEMENT_PATHS:
            return await call_next(request)

        expected = get_settings().management_key
        if not expected:
            return await call_next(request)

        provided = _extract_management_key(request)
        if provided is not None and hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            return await call_next(request)

        logger.info("Rejected management request path=%s has_key=%s", path, provided is not None)
        return JSONResponse(
            status_code=401,
            content=management_error("unauthorized", "Missing or invalid management key"),
            headers={"WWW-Authenticate": "Bearer"},
        )


def _extract_management_key(request: Request) -> str | None:
    authorization = request.headers.get("authorization")
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    header_key = request.headers.get("x-management-key")
    if header_key and header_key.strip():
        return header_key.strip()
    return None
