"""Terminal rendition of the accounts monitor dashboard.

The view polls the snapshot endpoint, keeps the last good snapshot, and re-classifies accounts
locally (with the same classifier the server uses) to apply the provider/status filters.

Everything runs on one asyncio loop. Fetches triggered by the timer are not serialized: a tick
that fires while a previous fetch is still pending starts another one. The monitor only ever
displays the latest completed snapshot, so this is accepted rather than guarded.
"""

from __future__ import annotations

import asyncio
import logging
import os
import select
import sys
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Final, Protocol, TextIO, TypeVar

from rich.columns import Columns
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from app.core.accounts.classifier import classify
from app.core.accounts.types import MonitorState
from app.core.utils.time import utcnow
from app.modules.accounts_monitor.schemas import AccountStatus, AccountsSnapshot
from app.monitor.client import AccountsMonitorClient, MonitorAuthRequired, MonitorFetchError
from app.monitor.config import REFRESH_INTERVALS, MonitorConfig, get_monitor_config, save_monitor_config
from app.monitor.formatting import (
    account_id_line,
    account_title,
    format_local_time,
    recovery_countdown,
    status_text,
)

logger = logging.getLogger(__name__)

NOTIFICATION_SECONDS: Final[float] = 3.0
KEY_POLL_SECONDS: Final[float] = 0.25
KEY_HELP: Final[str] = "Keys (then Enter): r refresh  i interval  s status  p <text> provider  q quit"

_STATE_STYLES: Final[dict[MonitorState, str]] = {
    MonitorState.ACTIVE: "green",
    MonitorState.ERROR: "red",
    MonitorState.COOLDOWN: "yellow",
    MonitorState.DISABLED: "grey50",
}

_STATUS_FILTERS: Final[frozenset[str]] = frozenset({"", *(state.value for state in MonitorState)})
_STATUS_CYCLE: Final[tuple[str, ...]] = ("", *(state.value for state in MonitorState))


class ViewPhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RENDERED = "rendered"
    ERRORED = "errored"


@dataclass(frozen=True, slots=True)
class MonitorFilters:
    provider: str = ""
    status: str = ""


@dataclass(frozen=True, slots=True)
class Notification:
    message: str
    is_error: bool = False


class _Reload:
    pass


_RELOAD: Final = _Reload()

PromptFn = Callable[[str], "str | None"]
T = TypeVar("T")


def prompt_management_key(message: str) -> str | None:
    value = Prompt.ask(message, password=True, default="", show_default=False)
    return value.strip() or None


class KeySource(Protocol):
    async def read(self) -> str:
        """Return the next command line, or "" once input is exhausted."""
        ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def close(self) -> None: ...


class StdinKeyReader:
    """Reads command lines from stdin on a daemon thread.

    The thread polls with `select` so it can be paused while a prompt owns stdin and stopped
    without waiting for another line.
    """

    def __init__(self, stream: TextIO | None = None, *, poll_seconds: float = KEY_POLL_SECONDS) -> None:
        self._stream = stream or sys.stdin
        self._poll_seconds = poll_seconds
        self._paused = threading.Event()
        self._closed = threading.Event()
        self._queue: asyncio.Queue[str] | None = None

    async def read(self) -> str:
        if self._queue is None:
            self._queue = asyncio.Queue()
            thread = threading.Thread(
                target=self._read_loop,
                args=(asyncio.get_running_loop(), self._queue),
                name="monitor-key-reader",
                daemon=True,
            )
            thread.start()
        return await self._queue.get()

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()

    def close(self) -> None:
        self._closed.set()

    def _read_loop(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[str]) -> None:
        # Raw reads keep nothing in the text buffer, so a prompt reading stdin later sees every line.
        pending = ""
        while not self._closed.is_set():
            if self._paused.is_set():
                self._closed.wait(self._poll_seconds)
                continue
            try:
                fd = self._stream.fileno()
                ready, _, _ = select.select([fd], [], [], self._poll_seconds)
                chunk = os.read(fd, 1024) if ready else None
            except (OSError, ValueError):
                self._publish(loop, queue, "")
                return
            if chunk is None:
                continue
            if not chunk:
                self._publish(loop, queue, "")
                return
            *lines, pending = (pending + chunk.decode(errors="replace")).split("\n")
            for line in lines:
                if line.strip():
                    self._publish(loop, queue, line.strip())

    @staticmethod
    def _publish(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[str], line: str) -> None:
        try:
            loop.call_soon_threadsafe(queue.put_nowait, line)
        except RuntimeError:
            logger.debug("Dropping key input; event loop is closed")


def filter_accounts(
    accounts: Sequence[AccountStatus],
    filters: MonitorFilters,
    now: datetime,
) -> list[AccountStatus]:
    provider = filters.provider.strip().lower()
    matched: list[AccountStatus] = []
    for account in accounts:
        if provider and provider not in account.provider.lower():
            continue
        if filters.status and classify(account, now).value != filters.status:
            continue
        matched.append(account)
    return matched


class MonitorView:
    def __init__(
        self,
        client: AccountsMonitorClient,
        *,
        console: Console | None = None,
        config: MonitorConfig | None = None,
        filters: MonitorFilters | None = None,
        prompt: PromptFn = prompt_management_key,
        save_config: Callable[[MonitorConfig], object] = save_monitor_config,
        clock: Callable[[], datetime] = utcnow,
        notification_seconds: float = NOTIFICATION_SECONDS,
        keys: KeySource | None = None,
    ) -> None:
        self._client = client
        self._keys = keys or StdinKeyReader()
        self._console = console or Console()
        self._config = config or get_monitor_config()
        self._prompt = prompt
        self._save_config = save_config
        self._clock = clock
        self._notification_seconds = notification_seconds
        self._interval = self._config.refresh_interval_seconds

        self.phase = ViewPhase.IDLE
        self.last_outcome: ViewPhase | None = None
        self.busy = False
        self.snapshot: AccountsSnapshot | None = None
        self.notification: Notification | None = None

        self._dismiss_handle: asyncio.TimerHandle | None = None
        self._timer_task: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._live: Live | None = None
        self._stop: asyncio.Event | None = None

        self._filters = MonitorFilters()
        initial = filters or MonitorFilters()
        self.set_filters(provider=initial.provider, status=initial.status)

    @property
    def interval(self) -> int:
        return self._interval

    @property
    def filters(self) -> MonitorFilters:
        return self._filters

    def set_filters(self, *, provider: str | None = None, status: str | None = None) -> None:
        next_status = self._filters.status if status is None else status.strip().lower()
        if next_status not in _STATUS_FILTERS:
            raise ValueError(f"Unknown status filter: {status}")
        next_provider = self._filters.provider if provider is None else provider.strip()
        self._filters = MonitorFilters(provider=next_provider, status=next_status)
        self._paint()

    def set_interval(self, seconds: int) -> None:
        if seconds not in REFRESH_INTERVALS:
            raise ValueError(f"refresh interval must be one of {REFRESH_INTERVALS}")
        self._interval = seconds
        self._schedule_timer()
        self._paint()

    def trigger_refresh(self) -> asyncio.Task[None]:
        task = asyncio.create_task(self.refresh())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def refresh(self) -> None:
        result = await self._fetch(allow_prompt=True)
        if result is _RELOAD:
            # A newly captured key gets exactly one retry; a second rejection is only reported.
            result = await self._fetch(allow_prompt=False)
        if isinstance(result, AccountsSnapshot):
            self._show_snapshot(result)

    def handle_key(self, line: str) -> None:
        command, _, argument = line.strip().partition(" ")
        key = command[:1].lower()
        if not key:
            return
        if key == "r":
            self.trigger_refresh()
        elif key == "i":
            self.set_interval(_next_in_cycle(REFRESH_INTERVALS, self._interval))
        elif key == "s":
            self.set_filters(status=_next_in_cycle(_STATUS_CYCLE, self._filters.status))
        elif key == "p":
            # A bare "p" clears the provider filter.
            self.set_filters(provider=argument)
        elif key == "q":
            self.stop()
        else:
            self.notify(f"Unknown key: {command}")

    async def run(self) -> None:
        self._stop = asyncio.Event()
        with Live(self.render(), console=self._console, auto_refresh=False) as live:
            self._live = live
            reader: asyncio.Task[None] | None = None
            try:
                await self.refresh()
                self._schedule_timer()
                reader = asyncio.create_task(self._read_keys())
                await self._stop.wait()
            finally:
                self._live = None
                if reader is not None:
                    reader.cancel()
                self._keys.close()
                self._cancel_timer()
                for task in list(self._inflight):
                    task.cancel()
                if self._dismiss_handle is not None:
                    self._dismiss_handle.cancel()
                    self._dismiss_handle = None

    def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()

    def notify(self, message: str, *, is_error: bool = False) -> None:
        self.notification = Notification(message=message, is_error=is_error)
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._dismiss_handle = loop.call_later(self._notification_seconds, self._dismiss_notification)
        self._paint()

    def render(self, now: datetime | None = None) -> RenderableType:
        current = now or self._clock()
        parts: list[RenderableType] = [self._render_header(), self._render_stats()]
        if self.snapshot is not None:
            accounts = filter_accounts(self.snapshot.accounts, self._filters, current)
            if accounts:
                parts.append(Columns([self._render_card(account, current) for account in accounts], equal=True))
            else:
                parts.append(
                    Panel(
                        Text("No accounts found\nNo accounts match the current filters", justify="center"),
                        border_style="grey50",
                    )
                )
        if self.notification is not None:
            parts.append(
                Panel(
                    Text(self.notification.message),
                    border_style="red" if self.notification.is_error else "blue",
                )
            )
        return Group(*parts)

    async def _read_keys(self) -> None:
        while True:
            line = await self._keys.read()
            if not line:
                logger.debug("Key input closed; monitor keeps running until interrupted")
                return
            self.handle_key(line)

    async def _fetch(self, *, allow_prompt: bool) -> AccountsSnapshot | _Reload | None:
        self._transition(ViewPhase.FETCHING)
        self.busy = True
        self._paint()
        try:
            return await self._client.fetch_snapshot()
        except MonitorAuthRequired as exc:
            if not allow_prompt:
                self._report_failure(exc)
                return None
            if self._capture_management_key():
                return _RELOAD
            logger.info("Accounts refresh aborted: no management key supplied")
            self._transition(ViewPhase.IDLE)
            return None
        except MonitorFetchError as exc:
            self._report_failure(exc)
            return None
        finally:
            self.busy = False
            self._paint()

    def _capture_management_key(self) -> bool:
        live = self._live
        if live is not None:
            live.stop()
        self._keys.pause()
        try:
            key = self._prompt("Enter management key")
        finally:
            self._keys.resume()
            if live is not None:
                live.start()
        if not key:
            return False
        self._config.management_key = key
        self._client.set_management_key(key)
        try:
            self._save_config(self._config)
        except OSError:
            logger.warning("Could not persist management key; keeping it for this session only")
        return True

    def _show_snapshot(self, snapshot: AccountsSnapshot) -> None:
        self.snapshot = snapshot
        self._transition(ViewPhase.RENDERED)
        self.last_outcome = ViewPhase.RENDERED
        self._paint()
        self._transition(ViewPhase.IDLE)

    def _report_failure(self, exc: Exception) -> None:
        logger.debug("Accounts fetch failed: %s", exc)
        self._transition(ViewPhase.ERRORED)
        self.last_outcome = ViewPhase.ERRORED
        # Previously rendered accounts stay on screen.
        self.notify(f"Failed to fetch accounts: {exc}", is_error=True)
        self._transition(ViewPhase.IDLE)

    def _transition(self, phase: ViewPhase) -> None:
        if phase is not self.phase:
            logger.debug("Monitor view %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def _dismiss_notification(self) -> None:
        self.notification = None
        self._dismiss_handle = None
        self._paint()

    def _schedule_timer(self) -> None:
        self._cancel_timer()
        if self._interval > 0:
            self._timer_task = asyncio.create_task(self._tick(self._interval))

    def _cancel_timer(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

    async def _tick(self, seconds: int) -> None:
        while True:
            await asyncio.sleep(seconds)
            self.trigger_refresh()

    def _paint(self) -> None:
        if self._live is not None:
            self._live.update(self.render(), refresh=True)

    def _render_header(self) -> RenderableType:
        title = Text("Account Monitor", style="bold blue")
        if self.busy:
            title.append("  ⟳ refreshing", style="cyan")
        updated = format_local_time(self.snapshot.timestamp) if self.snapshot is not None else "-"
        auto = f"{self._interval}s" if self._interval > 0 else "off"
        filters = Text(
            f"Last updated: {updated}   Provider: {self._filters.provider or 'all'}   "
            f"Status: {self._filters.status or 'all'}   Auto: {auto}",
            style="grey62",
        )
        if self._live is None:
            return Group(title, filters)
        return Group(title, filters, Text(KEY_HELP, style="grey50"))

    def _render_stats(self) -> RenderableType:
        snapshot = self.snapshot
        table = Table.grid(padding=(0, 4))
        cells = (
            ("Total", "blue", snapshot.total_count if snapshot else None),
            ("Active", "green", snapshot.active_count if snapshot else None),
            ("Cooldown", "yellow", snapshot.cooldown_count if snapshot else None),
            ("Error", "red", snapshot.error_count if snapshot else None),
        )
        for _ in cells:
            table.add_column()
        table.add_row(*(Text(label, style="grey62") for label, _, _ in cells))
        table.add_row(*(Text("-" if value is None else str(value), style=f"bold {color}") for _, color, value in cells))
        return table

    def _render_card(self, account: AccountStatus, now: datetime) -> RenderableType:
        state = classify(account, now)
        style = _STATE_STYLES[state]
        countdown = recovery_countdown(account, now)

        details = Table.grid(padding=(0, 2))
        details.add_column(style="grey62")
        details.add_column()
        if account.quota_reason:
            details.add_row("Quota Reason", Text(account.quota_reason, style="yellow"))
        if countdown:
            details.add_row("Recovery In", Text(countdown, style="yellow"))
        if account.backoff_level > 0:
            details.add_row("Backoff Level", str(account.backoff_level))
        details.add_row("Last Refresh", format_local_time(account.last_refresh))
        details.add_row("Updated", format_local_time(account.updated_at))

        status_line = Text("● ", style=style)
        status_line.append(status_text(account, state, countdown))
        body: list[RenderableType] = [
            Text(account_title(account), style="bold"),
            Text(account_id_line(account), style="grey50"),
            status_line,
            details,
        ]
        if account.last_error is not None and account.last_error.message:
            body.append(Text(account.last_error.message, style="red"))
        return Panel(
            Group(*body),
            title=account.provider.upper(),
            title_align="right",
            border_style=style,
            width=48,
        )


def _next_in_cycle(values: Sequence[T], current: T) -> T:
    try:
        position = values.index(current)
    except ValueError:
        return values[0]
    return values[(position + 1) % len(values)]
