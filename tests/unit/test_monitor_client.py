from __future__ import annotations

import json
from dataclasses import dataclass, field

import aiohttp
import pytest

from app.monitor.client import AccountsMonitorClient, MonitorAuthRequired, MonitorFetchError

pytestmark = pytest.mark.unit

SNAPSHOT = {
    "timestamp": "2025-01-15T12:00:00Z",
    "total_count": 1,
    "active_count": 1,
    "error_count": 0,
    "cooldown_count": 0,
    "accounts": [
        {
            "id": "acc_active",
            "provider": "codex",
            "label": "acc_active",
            "status": "active",
            "disabled": False,
            "unavailable": False,
            "quota_exceeded": False,
            "backoff_level": 0,
            "created_at": "2025-01-14T12:00:00Z",
            "updated_at": "2025-01-15T11:55:00Z",
            "index": 1,
        }
    ],
}


class StubResponse:
    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self._body = body

    async def json(self, content_type: str | None = None) -> object:
        return json.loads(self._body)


@dataclass
class SessionState:
    urls: list[str] = field(default_factory=list)
    headers: list[dict[str, str]] = field(default_factory=list)
    closed: bool = False


class StubRequestContext:
    def __init__(self, outcome: StubResponse | Exception) -> None:
        self._outcome = outcome

    async def __aenter__(self) -> StubResponse:
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class StubSession:
    def __init__(self, outcome: StubResponse | Exception, state: SessionState) -> None:
        self._outcome = outcome
        self._state = state

    def get(self, url: str, headers: dict[str, str] | None = None) -> StubRequestContext:
        self._state.urls.append(url)
        self._state.headers.append(dict(headers or {}))
        return StubRequestContext(self._outcome)

    async def close(self) -> None:
        self._state.closed = True


def _client(outcome: StubResponse | Exception, *, key: str | None = None) -> tuple[AccountsMonitorClient, SessionState]:
    state = SessionState()
    client = AccountsMonitorClient(
        "http://monitor.test/",
        management_key=key,
        session=StubSession(outcome, state),  # type: ignore[arg-type]
    )
    return client, state


@pytest.mark.asyncio
async def test_fetch_snapshot_sends_bearer_key() -> None:
    client, state = _client(StubResponse(200, json.dumps(SNAPSHOT)), key="secret")
    snapshot = await client.fetch_snapshot()

    assert state.urls == ["http://monitor.test/v0/management/accounts-monitor"]
    assert state.headers[0]["Authorization"] == "Bearer secret"
    assert snapshot.total_count == 1
    assert snapshot.accounts[0].id == "acc_active"
    assert snapshot.accounts[0].next_recover_at is None


@pytest.mark.asyncio
async def test_management_key_can_be_set_later() -> None:
    client, state = _client(StubResponse(200, json.dumps(SNAPSHOT)))
    await client.fetch_snapshot()
    client.set_management_key("late")
    await client.fetch_snapshot()

    assert "Authorization" not in state.headers[0]
    assert state.headers[1]["Authorization"] == "Bearer late"
    assert client.management_key == "late"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_auth_failures_raise_auth_required(status_code: int) -> None:
    client, _ = _client(StubResponse(status_code, "{}"))
    with pytest.raises(MonitorAuthRequired) as excinfo:
        await client.fetch_snapshot()
    assert excinfo.value.status_code == status_code
    assert str(excinfo.value) == f"HTTP {status_code}"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [500, 503])
async def test_server_errors_raise_fetch_error(status_code: int) -> None:
    client, _ = _client(StubResponse(status_code, '{"error": {}}'))
    with pytest.raises(MonitorFetchError, match=f"HTTP {status_code}") as excinfo:
        await client.fetch_snapshot()
    assert not isinstance(excinfo.value, MonitorAuthRequired)


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["<html>", json.dumps({"accounts": "nope"})])
async def test_invalid_payload_raises_fetch_error(body: str) -> None:
    client, _ = _client(StubResponse(200, body))
    with pytest.raises(MonitorFetchError, match="Invalid snapshot payload"):
        await client.fetch_snapshot()


@pytest.mark.asyncio
async def test_transport_errors_raise_fetch_error() -> None:
    client, _ = _client(aiohttp.ClientConnectionError("connection refused"))
    with pytest.raises(MonitorFetchError, match="connection refused"):
        await client.fetch_snapshot()


@pytest.mark.asyncio
async def test_injected_session_is_left_open() -> None:
    client, state = _client(StubResponse(200, json.dumps(SNAPSHOT)))
    async with client:
        await client.fetch_snapshot()
    assert state.closed is False
