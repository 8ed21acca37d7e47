"""mgint: sync Monday.com board tasks to Google Calendar."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from .calendar import (
    CalendarError,
    GoogleCalendarClient,
    account_from_settings,
    find_or_create_board_calendar,
)
from .config import (
    CONFIG_KEYS,
    ConfigError,
    Settings,
    describe_settings,
    load_settings,
    set_config_values,
)
from .errors import SyncError
from .monday_client import MondayClient
from .sync import ApplyError, SyncService, format_plan


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mgint",
        description="A tool to integrate Monday.com boards and Google Calendar.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default is $MGINT_CONFIG or ~/.mgint.yml).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log HTTP requests and other debug details.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser(
        "sync",
        help="Sync this week's tasks for a Monday.com board to a Google Calendar.",
    )
    sync_parser.add_argument("board_id", help="Monday.com board id.")
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the planned changes without modifying the calendar.",
    )

    subparsers.add_parser(
        "calendars",
        help="List the calendars of the configured Google account.",
    )

    subparsers.add_parser(
        "check-config",
        help="Validate that every required config value is available.",
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Set API keys and secrets needed for the CLI.",
    )
    config_sub = config_parser.add_subparsers(dest="config_command", required=True)
    valid_keys = "\n".join(f"  {key.name}: {key.help}" for key in CONFIG_KEYS)
    set_parser = config_sub.add_parser(
        "set",
        help="Change variables in the config file.",
        description="Set one or more config values using 'mgint config set <key>=<value>'.",
        epilog=f"Valid key names:\n{valid_keys}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    set_parser.add_argument("pairs", nargs="+", metavar="key=value")
    config_sub.add_parser("show", help="Show effective config values (secrets masked).")

    return parser


def _parse_board_id(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Not a valid board id: '{value}' (expected an integer)") from None


def _build_calendar_client(settings: Settings) -> GoogleCalendarClient:
    return GoogleCalendarClient(
        account_from_settings(settings),
        timezone_name=settings.timezone_name,
    )


def _cmd_sync(board_id_arg: str, *, dry_run: bool, config_path: Path | None) -> int:
    try:
        board_id = _parse_board_id(board_id_arg)
        settings = load_settings(config_path=config_path)
    except ConfigError as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 1

    calendar_client = _build_calendar_client(settings)
    service = SyncService(settings, calendar_client)

    try:
        board = MondayClient(settings.monday_api_key).get_board(board_id)
        calendar = find_or_create_board_calendar(calendar_client, board)
        plan = service.plan(board, calendar.id)
        if dry_run:
            print(f"Planned changes for '{board.name}' on calendar '{calendar.summary}':")
            print(format_plan(plan))
            return 0
        report = service.apply(plan)
    except ApplyError as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        if exc.report.total:
            print("Applied before the failure:", file=sys.stderr)
            for event in exc.report.inserted:
                print(f" - added {event.summary}", file=sys.stderr)
            for existing in exc.report.deleted:
                print(f" - removed {existing.summary}", file=sys.stderr)
            for update in exc.report.updated:
                print(f" - updated {update.event.summary}", file=sys.stderr)
        return 1
    except SyncError as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 1

    print(f"Done syncing tasks to Google Calendar ({report.summary()}).")
    return 0


def _cmd_calendars(config_path: Path | None) -> int:
    try:
        settings = load_settings(config_path=config_path)
        calendars = _build_calendar_client(settings).list_calendars()
    except (ConfigError, CalendarError) as exc:
        print(f"Unable to list calendars: {exc}", file=sys.stderr)
        return 1

    print("ID | Summary | Description")
    for cal in calendars:
        print(f"{cal.id} | {cal.summary} | {cal.description or ''}")
    return 0


def _cmd_check_config(config_path: Path | None) -> int:
    try:
        settings = load_settings(config_path=config_path)
    except ConfigError as exc:
        print(f"Config check failed: {exc}", file=sys.stderr)
        return 1

    print(
        "Configuration is complete",
        f"(monday key {settings.monday_api_key[:4]}...)",
        f"timezone={settings.timezone_name}",
    )
    return 0


def _cmd_config_set(pairs: list[str], config_path: Path | None) -> int:
    try:
        path = set_config_values(pairs, config_path=config_path)
    except ConfigError as exc:
        print(f"Config set failed: {exc}", file=sys.stderr)
        return 1
    print(f"Updated {path}")
    return 0


def _cmd_config_show(config_path: Path | None) -> int:
    try:
        described = describe_settings(config_path=config_path)
    except ConfigError as exc:
        print(f"Config show failed: {exc}", file=sys.stderr)
        return 1
    for name, value in described.items():
        print(f"{name}: {value}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "sync":
        return _cmd_sync(args.board_id, dry_run=args.dry_run, config_path=args.config)
    if args.command == "calendars":
        return _cmd_calendars(args.config)
    if args.command == "check-config":
        return _cmd_check_config(args.config)
    if args.command == "config":
        if args.config_command == "set":
            return _cmd_config_set(args.pairs, args.config)
        if args.config_command == "show":
            return _cmd_config_show(args.config)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
