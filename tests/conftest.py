from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

TEST_HOME_DIR = Path(tempfile.mkdtemp(prefix="account-monitor-tests-"))
TEST_AUTH_DIR = TEST_HOME_DIR / "auths"
TEST_AUTH_DIR.mkdir(parents=True, exist_ok=True)

os.environ["ACCOUNT_MONITOR_AUTH_DIR"] = str(TEST_AUTH_DIR)
os.environ["ACCOUNT_MONITOR_REGISTRY_RELOAD_ENABLED"] = "false"
os.environ["ACCOUNT_MONITOR_CLIENT_CONFIG"] = str(TEST_HOME_DIR / "monitor.json")
os.environ.pop("ACCOUNT_MONITOR_MANAGEMENT_KEY", None)

from app.core.accounts.registry import InMemoryAccountRegistry  # noqa: E402
from app.core.accounts.types import AccountError, AccountRecord, QuotaState  # noqa: E402
from app.core.utils.time import UTC  # noqa: E402
from app.main import create_app  # noqa: E402
from app.monitor.config import set_monitor_config  # noqa: E402

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


def _make_record(account_id: str, **overrides) -> AccountRecord:
    values = {
        "provider": "codex",
        "label": account_id,
        "created_at": FIXED_NOW - timedelta(days=1),
        "updated_at": FIXED_NOW - timedelta(minutes=5),
    }
    values.update(overrides)
    return AccountRecord(id=account_id, **values)


def _sample_records(now: datetime = FIXED_NOW) -> list[AccountRecord]:
    """One account per state: active, quota cooldown, error, disabled."""
    return [
        _make_record("acc_active", metadata={"email": "active@example.com"}),
        _make_record(
            "acc_cooldown",
            provider="claude",
            unavailable=True,
            quota=QuotaState(
                exceeded=True,
                reason="quota",
                backoff_level=2,
                next_recover_at=now + timedelta(minutes=5),
            ),
        ),
        _make_record(
            "acc_error",
            provider="gemini",
            status="error",
            status_message="token revoked",
            last_error=AccountError(code="unauthorized", message="invalid token", http_status=401),
        ),
        _make_record("acc_disabled", provider="gemini-cli", status="disabled", disabled=True),
    ]


@pytest.fixture(autouse=True)
def reset_settings_cache():
    from app.core.config.settings import get_settings

    get_settings.cache_clear()
    set_monitor_config(None)
    yield
    get_settings.cache_clear()
    set_monitor_config(None)


@pytest.fixture
def registry() -> InMemoryAccountRegistry:
    return InMemoryAccountRegistry(_sample_records())


@pytest_asyncio.fixture
async def app_instance(registry):
    return create_app(registry=registry)


@pytest_asyncio.fixture
async def async_client(app_instance):
    async with app_instance.router.lifespan_context(app_instance):
        transport = ASGITransport(app=app_instance)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_record():
    return _make_record


@pytest.fixture
def sample_records():
    return _sample_records
