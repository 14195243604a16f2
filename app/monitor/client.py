from __future__ import annotations

import aiohttp
from pydantic import ValidationError

from app.core.middleware.paths import ACCOUNTS_MONITOR_PATH
from app.modules.accounts_monitor.schemas import AccountsSnapshot


class MonitorFetchError(Exception):
    pass


class MonitorAuthRequired(MonitorFetchError):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class AccountsMonitorClient:
    """Fetches accounts snapshots from the management API.

    No request timeout is applied: a slow server only delays the next render.
    """

    def __init__(
        self,
        base_url: str,
        *,
        management_key: str | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + ACCOUNTS_MONITOR_PATH
        self._management_key = management_key
        self._session = session
        self._owns_session = session is None

    @property
    def management_key(self) -> str | None:
        return self._management_key

    def set_management_key(self, key: str | None) -> None:
        self._management_key = key

    async def fetch_snapshot(self) -> AccountsSnapshot:
        headers = {"Accept": "application/json"}
        if self._management_key:
            headers["Authorization"] = f"Bearer {self._management_key}"
        try:
            async with self._get_session().get(self._url, headers=headers) as resp:
                if resp.status in (401, 403):
                    raise MonitorAuthRequired(resp.status)
                if resp.status >= 400:
                    raise MonitorFetchError(f"HTTP {resp.status}")
                try:
                    data = await resp.json(content_type=None)
                except ValueError as exc:
                    raise MonitorFetchError("Invalid snapshot payload") from exc
        except aiohttp.ClientError as exc:
            raise MonitorFetchError(str(exc) or exc.__class__.__name__) from exc
        try:
            return AccountsSnapshot.model_validate(data)
        except ValidationError as exc:
            raise MonitorFetchError("Invalid snapshot payload") from exc

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> AccountsMonitorClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            # trust_env picks up HTTP(S)_PROXY / NO_PROXY like the rest of the stack.
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None),
                trust_env=True,
            )
            self._owns_session = True
        return self._session
