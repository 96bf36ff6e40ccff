"""Command line entry point.

Usage:
    python -m timesheet_engine serve [--host H] [--port P] [--reload]
    python -m timesheet_engine init-db
    python -m timesheet_engine check-missing-clock-outs --tenant-id X
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from uuid import UUID

import uvicorn

from timesheet_engine.calculators.time_math import shift_date_key
from timesheet_engine.config import Settings, configure_logging, get_settings
from timesheet_engine.database import create_all, get_engine, make_session_factory
from timesheet_engine.events import AsyncEventEmitter, register_audit_log
from timesheet_engine.notifications import NotificationDispatcher, build_mailer
from timesheet_engine.services.repository import TimesheetRepository
from timesheet_engine.services.timesheet_service import TimesheetService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timesheet-engine",
        description="Timesheet engine API server and maintenance jobs",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the API server (default)")
    serve.add_argument("--host", help="Bind address (defaults to HOST)")
    serve.add_argument("--port", type=int, help="Bind port (defaults to PORT)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    subparsers.add_parser("init-db", help="Create database tables")

    check = subparsers.add_parser(
        "check-missing-clock-outs",
        help="Email employees about past days left without a clock-out",
    )
    check.add_argument("--tenant-id", type=UUID, required=True, help="Tenant to check")
    check.add_argument("--date", help="Treat this YYYY-MM-DD as today")
    return parser


async def init_db(settings: Settings) -> None:
    engine = get_engine(settings.database_url)
    try:
        await create_all(engine)
    finally:
        await engine.dispose()


async def check_missing_clock_outs(
    settings: Settings, tenant_id: UUID, today: str | None = None
) -> int:
    """Run the missing clock-out check for one tenant; returns alerts queued."""
    engine = get_engine(settings.database_url)
    emitter = AsyncEventEmitter()
    register_audit_log(emitter)
    NotificationDispatcher(build_mailer(settings), settings.frontend_url).register(emitter)
    try:
        async with make_session_factory(engine)() as session:
            service = TimesheetService(
                TimesheetRepository(session, tenant_id),
                emitter,
                actor_type="system",
                settings=settings,
            )
            if today is not None:
                await service.load(since=shift_date_key(today, -settings.history_days))
            result = await service.check_missing_clock_outs(today)
    finally:
        await engine.dispose()
    for warning in result.warnings:
        logger.warning(warning)
    return len(result.value)


def main(argv: list[str] | None = None) -> int:
    """Run the requested command."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    if args.command == "init-db":
        asyncio.run(init_db(settings))
        logger.info("Database tables created")
        return 0

    if args.command == "check-missing-clock-outs":
        count = asyncio.run(check_missing_clock_outs(settings, args.tenant_id, args.date))
        logger.info("Missing clock-out alerts sent: %d", count)
        return 0

    uvicorn.run(
        "timesheet_engine.api.app:app",
        host=getattr(args, "host", None) or settings.host,
        port=getattr(args, "port", None) or settings.port,
        reload=getattr(args, "reload", False) or settings.debug,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
