# src/shell_deadlines/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs one of:
- run:       the per-minute scan loop (until SIGINT/SIGTERM),
- scan:      a single scan, result printed as JSON,
- add-task / add-user: local helpers for the SQLite backend.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from datetime import date, datetime

from ..cli.bootstrap import create_app
from ..config import get_settings
from ..core.state import AppState
from ..errors import ShellDeadlinesError
from ..logging_setup import setup_logging
from ..tasks.deadline_scanner import run_scan_loop, utc_now

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shell-deadlines",
        description="Send deadline reminders and overdue alerts for pending shells.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="scan every SHELLS_SCAN_INTERVAL_SECONDS until stopped")

    scan = sub.add_parser("scan", help="run a single scan and print the result")
    scan.add_argument(
        "--at",
        type=datetime.fromisoformat,
        default=None,
        help="evaluate at this ISO instant instead of now (naive = configured timezone)",
    )

    add_task = sub.add_parser("add-task", help="create a pending task (sqlite backend)")
    add_task.add_argument("--title", required=True)
    add_task.add_argument("--date", type=date.fromisoformat, required=True, help="YYYY-MM-DD")
    add_task.add_argument("--start", required=True, help="HH:MM (24h)")
    add_task.add_argument("--duration", type=int, required=True, help="minutes")
    add_task.add_argument("--user", required=True, help="owner user id")

    add_user = sub.add_parser("add-user", help="create or update a user contact (sqlite backend)")
    add_user.add_argument("--id", required=True)
    add_user.add_argument("--email", default=None)
    add_user.add_argument("--name", default=None)

    return parser


async def _run_forever(state: AppState) -> None:
    loop = asyncio.get_running_loop()
    runner = asyncio.create_task(
        run_scan_loop(state.scanner, interval_seconds=state.settings.scan_interval_seconds)
    )

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        runner.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not every platform supports loop signal handlers (e.g. Windows).
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _handle_signal, sig)

    try:
        await runner
    except asyncio.CancelledError:
        pass
    finally:
        await state.aclose()


async def _scan_once(state: AppState, at: datetime | None) -> dict[str, int]:
    try:
        result = await state.scanner.run_scan(at or utc_now())
        return result.as_dict()
    finally:
        await state.aclose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (%s)...", settings.app_name, args.command)
    try:
        state = create_app(settings=settings)
    except ValueError as e:
        print(f"{args.command}: {e}", file=sys.stderr)
        return 2

    if args.command == "run":
        asyncio.run(_run_forever(state))
        logger.info("Bye.")
        return 0

    if args.command == "scan":
        summary = asyncio.run(_scan_once(state, args.at))
        print(json.dumps({"message": f"Checked {summary['scanned']} tasks.", **summary}))
        return 0

    try:
        return _run_local_command(state, args)
    finally:
        asyncio.run(state.aclose())


def _run_local_command(state: AppState, args: argparse.Namespace) -> int:
    """add-task / add-user: only meaningful with the sqlite backend."""
    if state.task_store is None or state.user_store is None:
        print(f"{args.command} is only available with the sqlite backend", file=sys.stderr)
        return 2

    if args.command == "add-task":
        try:
            task_id = state.task_store.add_task(
                title=args.title,
                scheduled_date=args.date,
                start_time=args.start,
                duration_minutes=args.duration,
                owner_user_id=args.user,
            )
        except (ShellDeadlinesError, ValueError) as e:
            print(f"add-task: {e}", file=sys.stderr)
            return 2
        print(task_id)
        return 0

    if args.command == "add-user":
        state.user_store.upsert_user(args.id, email=args.email, display_name=args.name)
        print(args.id)
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
