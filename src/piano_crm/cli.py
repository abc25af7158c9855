"""Command-line interface for Piano CRM.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from piano_crm import __version__
from piano_crm.config import get_settings
from piano_crm.db import check_connection, ensure_core_schema, get_engine
from piano_crm.exceptions import CrmError
from piano_crm.gmail.client import GmailClient, run_local_auth
from piano_crm.sync.inbox import sync_recent
from piano_crm.utils import configure_logging

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="piano-crm", description="Piano CRM")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    subparsers.add_parser("init-db", help="Create database tables if they do not exist")

    subparsers.add_parser(
        "sync",
        help="Run one global inbox sync pass (point system cron at this)",
    )

    subparsers.add_parser(
        "gmail-auth",
        help="Run the browser OAuth consent flow and write the Gmail token file",
    )

    return parser


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "piano_crm.api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


def _cmd_init_db(args: argparse.Namespace) -> int:
    engine = get_engine()
    check_connection(engine)
    ensure_core_schema(engine)
    print("Database schema is up to date.")
    return 0


async def _cmd_sync(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = get_engine()
    processed = await sync_recent(engine, GmailClient(settings), settings)
    print(f"Stored {processed} new message(s).")
    return 0


def _cmd_gmail_auth(args: argparse.Namespace) -> int:
    settings = get_settings()
    creds = run_local_auth(settings)
    print(f"Token written to {settings.gmail_token_path}")
    if creds.refresh_token:
        print("Refresh token present. Copy it into PIANO_CRM_GMAIL_REFRESH_TOKEN for server deployments.")
    else:
        print("No refresh token was issued. Revoke the app's access and run this command again.")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Piano CRM CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("piano_crm_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        if parsed.command == "serve":
            return _cmd_serve(parsed)
        if parsed.command == "init-db":
            return _cmd_init_db(parsed)
        if parsed.command == "sync":
            return asyncio.run(_cmd_sync(parsed))
        if parsed.command == "gmail-auth":
            return _cmd_gmail_auth(parsed)
    except CrmError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
