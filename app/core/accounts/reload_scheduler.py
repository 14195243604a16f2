from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from pathlib import Path

from app.core.accounts.loader import load_auth_dir
from app.core.accounts.registry import InMemoryAccountRegistry
from app.core.config.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RegistryReloadScheduler:
    registry: InMemoryAccountRegistry
    auth_dir: Path
    interval_seconds: float
    enabled: bool
    _task: asyncio.Task[None] | None = None
    _stop: asyncio.Event = field(default_factory=asyncio.Event)

    async def start(self) -> None:
        if not self.enabled:
            return
        if self._task and not self._task.done():
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop.set()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run_loop(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                await self.reload_once()

    async def reload_once(self) -> None:
        try:
            records = await asyncio.to_thread(load_auth_dir, self.auth_dir)
            result = self.registry.sync(records)
        except Exception:
            logger.exception("Account registry reload failed auth_dir=%s", self.auth_dir)
            return
        if result.added or result.updated or result.removed:
            logger.info(
                "Account registry reloaded added=%s updated=%s removed=%s",
                result.added,
                result.updated,
                result.removed,
            )


def build_registry_reload_scheduler(registry: InMemoryAccountRegistry) -> RegistryReloadScheduler:
    settings = get_settings()
    return RegistryReloadScheduler(
        registry=registry,
        auth_dir=settings.auth_dir,
        interval_seconds=settings.registry_reload_interval_seconds,
        enabled=settings.registry_reload_enabled,
    )
