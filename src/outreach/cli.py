"""Command-line interface for operating the outreach agent.

Provides an argparse-based tool with two subcommands:

- ``poll`` runs one reply reconciliation pass against the configured
  database (for an external scheduler such as cron) and prints the counts.
- ``issue-token`` prints a session token for a user, for local testing of
  the authenticated endpoints.

Usage::

    python -m outreach.cli poll
    python -m outreach.cli poll --format json
    python -m outreach.cli issue-token --user-id user_123
"""

from __future__ import annotations

import argparse
import json
import sys

import structlog

from outreach.app import configure_logging, initialize_services
from outreach.auth.identity import SessionTokenSigner
from outreach.config import get_settings
from outreach.domain.errors import ConfigurationError, JobAlreadyRunning
from outreach.replies.poller import PollResult

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(description="Outreach agent operations")
    subparsers = parser.add_subparsers(dest="command", required=True)

    poll = subparsers.add_parser("poll", help="Run one reply poller pass")
    poll.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )

    token = subparsers.add_parser("issue-token", help="Print a session token for a user")
    token.add_argument("--user-id", type=str, required=True, help="User ID to sign")

    return parser


def format_result(result: PollResult, output_format: str) -> str:
    """Render a poll result as aligned ``key: value`` lines or JSON."""
    data = result.model_dump()
    if output_format == "json":
        return json.dumps(data, indent=2)
    width = max(len(key) for key in data)
    return "\n".join(f"{key.ljust(width)}  {value}" for key, value in data.items())


def run_poll(output_format: str) -> int:
    """Run the reply poller once.  Returns the process exit code."""
    settings = get_settings()
    configure_logging(production=settings.production)
    services = initialize_services(settings)
    try:
        result = services["reply_poller"].run()
    except JobAlreadyRunning:
        print("Reply poller is already running; nothing to do.", file=sys.stderr)
        return 2
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        services["db_conn"].close()

    print(format_result(result, output_format))
    return 0


def issue_token(user_id: str) -> int:
    """Print a session token for *user_id*.  Returns the process exit code."""
    secret = get_settings().session_secret.get_secret_value()
    if not secret:
        print("Error: SESSION_SECRET is not set", file=sys.stderr)
        return 1
    print(SessionTokenSigner(secret).issue(user_id))
    return 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "poll":
        sys.exit(run_poll(args.output_format))
    sys.exit(issue_token(args.user_id))


if __name__ == "__main__":
    main()
