"""
Command-line entry point (``attendance-engine``).

Every command prints a one-line JSON summary. Exit status is 0 on success,
including runs that found nothing to do, and 1 when any employee or batch
failed.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses
import json
import logging
import signal
import sys
from collections.abc import Sequence
from datetime import date, timedelta

from attendance_engine.core.config import settings
from attendance_engine.core.log import configure_logging
from attendance_engine.db.session import async_session_factory, engine
from attendance_engine.models.registry import Base
from attendance_engine.services.expiration import ExpirationService
from attendance_engine.services.maintenance import PointMaintenanceService
from attendance_engine.services.reconciliation import ReconciliationService
from attendance_engine.services.scheduler import Scheduler

logger = logging.getLogger("attendance_engine.cli")


def _print(payload: object) -> None:
    if dataclasses.is_dataclass(payload):
        payload = dataclasses.asdict(payload)  # type: ignore[arg-type]
    print(json.dumps(payload, default=str, sort_keys=True))


def _stop_event() -> asyncio.Event:
    """An event set by SIGINT/SIGTERM so batch loops can stop between units."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
    return stop


# ── Commands ────────────────────────────────────────────────────────
async def _init_db(_args: argparse.Namespace) -> int:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    _print({"initialised": True})
    return 0


async def _reconcile(args: argparse.Namespace) -> int:
    service = ReconciliationService(async_session_factory, workers=args.workers)
    report = await service.reconcile_many(args.employee or None, args.start, args.end, cancel_event=_stop_event())
    _print(report)
    return 1 if report.failed else 0


async def _process_expirations(args: argparse.Namespace) -> int:
    service = ExpirationService(async_session_factory)
    report = await service.process_expirations(
        dry_run=args.dry_run,
        notify=not args.no_notify,
        today=args.today,
    )
    _print(report)
    return 1 if report.failed else 0


async def _reset_expired(args: argparse.Namespace) -> int:
    count = await PointMaintenanceService(async_session_factory).reset_expired(args.user or None)
    _print({"reset": count})
    return 0


async def _remove_duplicates(args: argparse.Namespace) -> int:
    count = await PointMaintenanceService(async_session_factory).remove_duplicates(dry_run=args.dry_run)
    _print({"duplicates": count, "dry_run": args.dry_run})
    return 0


async def _stats(_args: argparse.Namespace) -> int:
    _print(await PointMaintenanceService(async_session_factory).statistics())
    return 0


def build_scheduler(expirations: ExpirationService | None = None) -> Scheduler:
    """Default schedule: the expiration run every EXPIRATION_RUN_INTERVAL_HOURS."""
    expirations = expirations or ExpirationService(async_session_factory)
    scheduler = Scheduler()
    scheduler.every(
        timedelta(hours=settings.EXPIRATION_RUN_INTERVAL_HOURS),
        expirations.process_expirations,
        name="process_expirations",
    )
    return scheduler


async def _schedule(args: argparse.Namespace) -> int:
    await build_scheduler().run_forever(_stop_event(), poll_seconds=args.poll_seconds)
    return 0


# ── Parser ──────────────────────────────────────────────────────────
def _date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="attendance-engine", description=__doc__.splitlines()[1])
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="create missing tables")
    p.set_defaults(handler=_init_db)

    p = sub.add_parser("reconcile", help="reconcile scans into attendance rows")
    p.add_argument("--start", type=_date, required=True)
    p.add_argument("--end", type=_date, required=True)
    p.add_argument("--employee", type=int, action="append", help="repeatable; default all active")
    p.add_argument("--workers", type=int, default=None)
    p.set_defaults(handler=_reconcile)

    p = sub.add_parser("process-expirations", help="apply SRO and GBRO")
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--no-notify", action="store_true")
    p.add_argument("--today", type=_date, default=None, help="evaluate as of this date")
    p.set_defaults(handler=_process_expirations)

    p = sub.add_parser("reset-expired", help="un-expire points, restoring their original deadline")
    p.add_argument("--user", type=int, action="append")
    p.set_defaults(handler=_reset_expired)

    p = sub.add_parser("remove-duplicates", help="keep the oldest point per user/date/type")
    p.add_argument("--dry-run", action="store_true")
    p.set_defaults(handler=_remove_duplicates)

    p = sub.add_parser("stats", help="point store statistics")
    p.set_defaults(handler=_stats)

    p = sub.add_parser("schedule", help="run scheduled jobs until interrupted")
    p.add_argument("--poll-seconds", type=float, default=60.0)
    p.set_defaults(handler=_schedule)
    return parser


async def _run(args: argparse.Namespace) -> int:
    try:
        return await args.handler(args)
    finally:
        await engine.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    logger.debug("Running %s", args.command)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
