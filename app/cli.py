from __future__ import annotations

import argparse
import copy
import json
import logging
import os

import anyio
import uvicorn
import uvicorn.config
from rich.console import Console
from pydantic import ValidationError
from rich.logging import RichHandler

from app.core.accounts.types import MonitorState
from app.core.config.settings import Settings, get_settings
from app.monitor.config import REFRESH_INTERVALS, MonitorConfig, get_monitor_config

DEFAULT_PORT = 8317


def _build_log_config(settings: Settings) -> dict:
    # Uvicorn's default LOGGING_CONFIG does not attach handlers to the `app.*` logger namespace.
    # Ensure application logs are visible on stdout without enabling noisy root logging.
    config = copy.deepcopy(uvicorn.config.LOGGING_CONFIG)
    loggers = config.setdefault("loggers", {})
    loggers["app"] = {
        "handlers": ["default"],
        "level": settings.log_level,
        "propagate": False,
    }
    return config


def _configure_monitor_logging(console: Console, settings: Settings) -> None:
    # Log records are drawn above the live view instead of tearing it.
    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    app_logger = logging.getLogger("app")
    app_logger.handlers[:] = [handler]
    app_logger.setLevel(settings.log_level)
    app_logger.propagate = False


def _apply_monitor_overrides(config: MonitorConfig, args: argparse.Namespace) -> None:
    try:
        if args.url:
            config.base_url = args.url
        if args.interval is not None:
            config.refresh_interval_seconds = args.interval
    except ValidationError as exc:
        message = exc.errors()[0]["msg"].removeprefix("Value error, ")
        raise SystemExit(f"Invalid monitor option: {message}") from exc


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the account monitor API server.")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", str(DEFAULT_PORT))))
    parser.add_argument("--ssl-certfile", default=os.getenv("SSL_CERTFILE"))
    parser.add_argument("--ssl-keyfile", default=os.getenv("SSL_KEYFILE"))

    subparsers = parser.add_subparsers(dest="command")

    monitor = subparsers.add_parser(
        "monitor",
        help="Watch account status from a running server in the terminal.",
    )
    monitor.add_argument("--url", default=None, help="Server base URL (default: from monitor.json).")
    monitor.add_argument(
        "--interval",
        type=int,
        choices=REFRESH_INTERVALS,
        default=None,
        help="Auto refresh interval in seconds; 0 disables it.",
    )
    monitor.add_argument("--provider", default="", help="Show only providers containing this text.")
    monitor.add_argument(
        "--status",
        default="",
        choices=["", *(state.value for state in MonitorState)],
        help="Show only accounts in this status.",
    )
    monitor.add_argument("--once", action="store_true", help="Fetch and print one snapshot, then exit.")

    snapshot = subparsers.add_parser(
        "snapshot",
        help="Print the accounts snapshot computed from the local auth directory.",
    )
    snapshot.add_argument("--auth-dir", default=None, help="Override ACCOUNT_MONITOR_AUTH_DIR.")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)

    if args.command is None:
        settings = get_settings()
        if bool(args.ssl_certfile) ^ bool(args.ssl_keyfile):
            raise SystemExit("Both --ssl-certfile and --ssl-keyfile must be provided together.")

        uvicorn.run(
            "app.main:app",
            host=args.host,
            port=args.port,
            ssl_certfile=args.ssl_certfile,
            ssl_keyfile=args.ssl_keyfile,
            log_config=_build_log_config(settings),
            # Keep access logs off by default; controlled via `ACCOUNT_MONITOR_ACCESS_LOG_ENABLED`.
            access_log=settings.access_log_enabled,
        )
        return

    if args.command == "snapshot":
        from pathlib import Path

        from app.core.accounts.loader import build_registry_from_auth_dir
        from app.core.utils.time import utcnow
        from app.modules.accounts_monitor.aggregates import aggregate

        settings = get_settings()
        auth_dir = Path(args.auth_dir).expanduser() if args.auth_dir else settings.auth_dir
        registry = build_registry_from_auth_dir(auth_dir)
        if registry is None:
            raise SystemExit(f"Auth directory not found: {auth_dir}")
        payload = aggregate(registry.list(), utcnow()).to_payload()
        print(json.dumps(payload, indent=2))
        return

    if args.command == "monitor":
        from app.monitor.client import AccountsMonitorClient
        from app.monitor.view import MonitorFilters, MonitorView

        settings = get_settings()
        config = get_monitor_config()
        _apply_monitor_overrides(config, args)
        console = Console()
        _configure_monitor_logging(console, settings)

        async def _run() -> None:
            async with AccountsMonitorClient(config.base_url, management_key=config.management_key) as client:
                view = MonitorView(
                    client,
                    console=console,
                    config=config,
                    filters=MonitorFilters(provider=args.provider, status=args.status),
                )
                if args.once:
                    await view.refresh()
                    console.print(view.render())
                    return
                await view.run()

        try:
            anyio.run(_run)
        except KeyboardInterrupt:
            pass
        return

    raise SystemExit(f"Unknown command: {args.command}")


if __name__ == "__main__":
    main()
