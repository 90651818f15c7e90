"""Application entry point and CLI for mass-notify.

This module implements the ``mass-notify`` command: argument parsing,
configuration loading, logging setup and one engine operation per invocation.
Summaries and stats are written to stdout as JSON; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import NoReturn

from mass_notify.app.runner import open_engine
from mass_notify.core.config import (
    ConfigurationError,
    EnvironmentVariableError,
    MainConfig,
    load_main_config,
)
from mass_notify.core.engine import MassNotificationEngine
from mass_notify.core.exceptions import MassNotifyError, TypeDisabled
from mass_notify.types import CustomAudience, NotificationRequest, Platform, parse_audience
from mass_notify.utils.logging import configure_logging
from mass_notify.utils.template import TemplateError

__all__ = ["main"]

DEFAULT_CONFIG_PATH: Path = Path("config/mass-notify.yaml")

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 1
EXIT_TYPE_DISABLED = 2

type JSONValue = dict[str, object] | list[dict[str, object]]


def _add_message_arguments(parser: argparse.ArgumentParser) -> None:
    _ = parser.add_argument("--title", help="Notification title")
    _ = parser.add_argument("--body", help="Notification body")
    _ = parser.add_argument(
        "--type",
        dest="notification_type",
        help="Notification type key; disabled types are rejected",
        metavar="KEY",
    )
    _ = parser.add_argument(
        "--data",
        help="Extra JSON object attached to every message",
        metavar="JSON",
    )
    source = parser.add_mutually_exclusive_group()
    _ = source.add_argument(
        "--template",
        help="Render a quick campaign template (promotion, maintenance, new_service, holiday)",
        metavar="NAME",
    )
    _ = source.add_argument(
        "--from-type",
        help="Render the template of a notification type",
        metavar="KEY",
    )
    _ = parser.add_argument(
        "--param",
        action="append",
        default=[],
        help="Template placeholder value, repeatable",
        metavar="NAME=VALUE",
    )


def _add_owner_arguments(parser: argparse.ArgumentParser, *, required: bool) -> None:
    _ = parser.add_argument(
        "--owner",
        action="append",
        default=[],
        required=required,
        help="Recipient identifier, repeatable or comma-separated",
        metavar="ID",
    )


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for mass-notify.

    Returns:
        Parsed arguments namespace

    CLI Arguments:
        --config, -c: Path to main configuration file
        --dry-run: Log gateway calls instead of sending
        --log-level: Override log level from config
        --no-syslog: Disable syslog integration
    """
    parser = argparse.ArgumentParser(
        prog="mass-notify",
        description="Send one push notification to many registered devices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mass-notify send-all --title "Hello" --body "New features are live"
  mass-notify send-platform ios --template holiday --param holiday_name="New Year"
  mass-notify send-owners --owner u1,u2 --from-type ORDER_CONFIRMED --param order_number=42
  mass-notify schedule --at 2026-12-31T09:00:00+00:00 --audience all --title Hi --body There
  mass-notify run-due
  mass-notify stats --limit 5
        """,
    )

    _ = parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help=f"Path to main configuration file (default: {DEFAULT_CONFIG_PATH}, optional)",
        metavar="PATH",
    )
    _ = parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry-run mode: log gateway calls without sending (overrides config)",
    )
    _ = parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration",
        metavar="LEVEL",
    )
    _ = parser.add_argument(
        "--no-syslog",
        action="store_true",
        help="Disable syslog integration",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    send_all = commands.add_parser("send-all", help="Send to every eligible device")
    _add_message_arguments(send_all)

    send_platform = commands.add_parser("send-platform", help="Send to one platform")
    _ = send_platform.add_argument("platform", choices=[platform.value for platform in Platform])
    _add_message_arguments(send_platform)

    send_owners = commands.add_parser("send-owners", help="Send to specific recipients")
    _add_owner_arguments(send_owners, required=True)
    _add_message_arguments(send_owners)

    schedule = commands.add_parser("schedule", help="Store a notification for later delivery")
    _ = schedule.add_argument(
        "--at",
        required=True,
        help="Delivery time as ISO 8601 with a UTC offset",
        metavar="DATETIME",
    )
    _ = schedule.add_argument(
        "--audience",
        default="all",
        choices=["all", *(platform.value for platform in Platform), CustomAudience.tag],
    )
    _add_owner_arguments(schedule, required=False)
    _add_message_arguments(schedule)

    cancel = commands.add_parser("cancel", help="Cancel a scheduled notification")
    _ = cancel.add_argument("scheduled_id", metavar="ID")

    stats = commands.add_parser("stats", help="Show recent dispatch statistics")
    _ = stats.add_argument("--limit", type=int, default=10)

    run_due = commands.add_parser("run-due", help="Dispatch every scheduled notification that is due")
    _ = run_due.add_argument(
        "--now",
        help="Reference time as ISO 8601 with a UTC offset (default: current time)",
        metavar="DATETIME",
    )

    return parser.parse_args(argv)


def parse_params(pairs: Sequence[str]) -> dict[str, object]:
    """Parse ``NAME=VALUE`` pairs into template parameters.

    Raises:
        ValueError: If a pair has no ``=``
    """
    params: dict[str, object] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            msg = f"Template parameter must look like NAME=VALUE, got {pair!r}"
            raise ValueError(msg)
        params[name.strip()] = value
    return params


def parse_owner_ids(values: Sequence[str]) -> frozenset[str]:
    return frozenset(owner.strip() for value in values for owner in value.split(",") if owner.strip())


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp that carries a UTC offset.

    Raises:
        ValueError: If the value is malformed or has no offset
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        msg = f"Datetime {value!r} must include a UTC offset, e.g. {value}+00:00"
        raise ValueError(msg)
    return parsed


def _parse_data(raw: str | None) -> dict[str, object]:
    if raw is None:
        return {}
    data: object = json.loads(raw)  # pyright: ignore[reportAny]  # JSON boundary
    if not isinstance(data, dict):
        msg = "--data must be a JSON object"
        raise ValueError(msg)
    return data  # pyright: ignore[reportUnknownVariableType]  # JSON boundary


def build_request(
    engine: MassNotificationEngine,
    args: argparse.Namespace,
    audience_tag: str,
    owner_ids: frozenset[str] = frozenset(),
) -> NotificationRequest:
    """Turn message arguments into a request, rendering a template if one is named.

    Raises:
        ValueError: If neither a template nor both title and body are given
        TemplateError: If the template or one of its parameters is invalid
    """
    audience = parse_audience(audience_tag, owner_ids)
    params = parse_params(args.param)  # pyright: ignore[reportAny]  # argparse boundary
    data = _parse_data(args.data)  # pyright: ignore[reportAny]  # argparse boundary
    template: str | None = args.template  # pyright: ignore[reportAny]  # argparse boundary
    from_type: str | None = args.from_type  # pyright: ignore[reportAny]  # argparse boundary

    if template is not None:
        rendered = engine.registry.build_quick_template(template, params)
    elif from_type is not None:
        rendered = engine.registry.build_template(from_type, params)
    else:
        title: str | None = args.title  # pyright: ignore[reportAny]  # argparse boundary
        body: str | None = args.body  # pyright: ignore[reportAny]  # argparse boundary
        if not title or not body:
            msg = "Either --title and --body, --template or --from-type is required"
            raise ValueError(msg)
        notification_type: str | None = args.notification_type  # pyright: ignore[reportAny]  # argparse boundary
        return NotificationRequest(
            title=title,
            body=body,
            audience=audience,
            payload=data,
            notification_type=notification_type,
        )

    request = rendered.to_request(audience)
    if data:
        request = NotificationRequest(
            title=request.title,
            body=request.body,
            audience=audience,
            payload={**request.payload, **data},
            notification_type=request.notification_type,
        )
    return request


async def run_command(engine: MassNotificationEngine, args: argparse.Namespace) -> JSONValue:
    """Run the selected subcommand and return its JSON-serialisable result."""
    command: str = args.command  # pyright: ignore[reportAny]  # argparse boundary

    match command:
        case "send-all":
            summary = await engine.dispatch(build_request(engine, args, "all"))
            return summary.to_dict()
        case "send-platform":
            platform: str = args.platform  # pyright: ignore[reportAny]  # argparse boundary
            summary = await engine.dispatch(build_request(engine, args, platform))
            return summary.to_dict()
        case "send-owners":
            owners = parse_owner_ids(args.owner)  # pyright: ignore[reportAny]  # argparse boundary
            summary = await engine.dispatch(build_request(engine, args, CustomAudience.tag, owners))
            return summary.to_dict()
        case "schedule":
            audience_tag: str = args.audience  # pyright: ignore[reportAny]  # argparse boundary
            owners = parse_owner_ids(args.owner)  # pyright: ignore[reportAny]  # argparse boundary
            at = parse_datetime(args.at)  # pyright: ignore[reportAny]  # argparse boundary
            request = build_request(engine, args, audience_tag, owners)
            scheduled_id = await engine.schedule(request, at)
            return {"scheduled_id": scheduled_id, "scheduled_at": at.astimezone(UTC).isoformat()}
        case "cancel":
            scheduled_id: str = args.scheduled_id  # pyright: ignore[reportAny]  # argparse boundary
            return {"scheduled_id": scheduled_id, "cancelled": await engine.cancel(scheduled_id)}
        case "stats":
            limit: int = args.limit  # pyright: ignore[reportAny]  # argparse boundary
            return [record.to_dict() for record in await engine.recent_stats(limit)]
        case "run-due":
            now_arg: str | None = args.now  # pyright: ignore[reportAny]  # argparse boundary
            now = parse_datetime(now_arg) if now_arg else None
            return [
                {"scheduled_id": due.scheduled_id, **due.summary.to_dict()}
                for due in await engine.process_due(now)
            ]
        case _:
            msg = f"Unknown command: {command}"
            raise ValueError(msg)


def load_config(config_path: Path | None) -> MainConfig:
    """Load the configuration file; without one, fall back to defaults.

    An explicitly named file must exist. The default location is optional.
    """
    if config_path is not None:
        return load_main_config(config_path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_main_config(DEFAULT_CONFIG_PATH)
    return MainConfig()


async def async_main(args: argparse.Namespace) -> JSONValue:
    """Load configuration, configure logging and run one command.

    Raises:
        ConfigurationError: If configuration is invalid
        MassNotifyError: If the engine rejects or cannot complete the command
    """
    config_path: Path | None = args.config  # pyright: ignore[reportAny]  # argparse boundary
    config = load_config(config_path)

    if args.dry_run:  # pyright: ignore[reportAny]  # argparse boundary
        config.application.dry_run = True
    log_level: str | None = args.log_level  # pyright: ignore[reportAny]  # argparse boundary
    if log_level is not None:
        config.application.log_level = log_level

    no_syslog: bool = args.no_syslog  # pyright: ignore[reportAny]  # argparse boundary
    configure_logging(
        log_level=config.application.log_level,
        enable_syslog=config.application.syslog_enabled and not no_syslog,
        enable_console=True,
    )

    async with open_engine(config) as engine:
        return await run_command(engine, args)


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Main entry point for mass-notify.

    Exit Codes:
        0: Command completed
        1: Configuration error or runtime error
        2: The request names a disabled notification type
    """
    args = parse_arguments(argv)

    try:
        result = asyncio.run(async_main(args))

    except ConfigurationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except EnvironmentVariableError as exc:
        print(f"Environment variable error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except TypeDisabled as exc:
        print(f"Rejected: {exc}", file=sys.stderr)
        sys.exit(EXIT_TYPE_DISABLED)

    except (MassNotifyError, TemplateError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(EXIT_RUNTIME_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(EXIT_RUNTIME_ERROR)

    except Exception as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        logging.exception("Unexpected error during command execution")
        sys.exit(EXIT_RUNTIME_ERROR)

    print(json.dumps(result, indent=2, ensure_ascii=False))
    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
