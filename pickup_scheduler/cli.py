# File: pickup_scheduler/cli.py
"""Command line entry point: `pickup-scheduler <command>`."""

import argparse
import sys
from typing import Optional, Sequence

from pickup_scheduler.core.config_manager import Config
from pickup_scheduler.core.exceptions import PickupSchedulerError
from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)

REQUEST_COMMANDS = ("register", "refresh", "cancel", "hold", "assignee-edited")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pickup-scheduler",
        description="Pickup scheduling: sheet records <-> Google Calendar."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("process", help="Consume pending statuses (scheduled job).")
    subparsers.add_parser("sync", help="Pull calendar changes into the sheets (scheduled job).")
    subparsers.add_parser("auth", help="Run the one-time Google OAuth flow.")

    helps = {
        "register": "Queue a row for calendar registration.",
        "refresh": "Queue a calendar refresh for a registered row.",
        "cancel": "Cancel a row (queues the event deletion if registered).",
        "hold": "Put a row on hold.",
        "assignee-edited": "Queue an assignee transfer after the Assignee cell changed.",
    }
    for name in REQUEST_COMMANDS:
        sub = subparsers.add_parser(name, help=helps[name])
        sub.add_argument("--sheet", default=Config.REGULAR_SHEET_NAME, help="Sheet name (default: regular sheet).")
        sub.add_argument("row", type=int, help="1-based sheet row number.")

    return parser


def _run_request(orchestrator, command: str, sheet: str, row: int) -> None:
    if command == "register":
        orchestrator.request_register(sheet, row)
        print(f"Row {row} queued for calendar registration.")
    elif command == "refresh":
        if orchestrator.request_refresh(sheet, row):
            print(f"Row {row} queued for refresh.")
        else:
            print(f"Row {row} is not registered on the calendar.")
    elif command == "cancel":
        status = orchestrator.request_cancel(sheet, row)
        print(f"Row {row}: {status.value}")
    elif command == "hold":
        orchestrator.request_hold(sheet, row)
        print(f"Row {row} put on hold.")
    elif command == "assignee-edited":
        if orchestrator.on_assignee_edited(sheet, row):
            print(f"Row {row} queued for assignee change.")
        else:
            print(f"Row {row} is not registered; nothing to move.")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "auth":
        from pickup_scheduler.auth.google_auth import create_initial_token
        return 0 if create_initial_token() else 1

    from pickup_scheduler.core.orchestrator import OrchestratorFactory

    try:
        orchestrator = OrchestratorFactory.create()
        if args.command == "process":
            summary = orchestrator.run_scheduled_tasks()
            if summary is not None and summary.failed:
                print(f"{summary.failed} record(s) failed; see notifications.")
        elif args.command == "sync":
            summary = orchestrator.run_calendar_sync()
            if summary is not None and summary.failed_calendars:
                print(f"Sync failed for: {', '.join(summary.failed_calendars)}")
                return 1
        else:
            _run_request(orchestrator, args.command, args.sheet, args.row)
    except PickupSchedulerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (ValueError, ConnectionError, KeyError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
