"""
Command line entry point for FPDS ingestion.

    fpds-ingest                                   daily incremental run
    fpds-ingest --backfill --start-date 2024-01-01 --end-date 2024-01-31
    fpds-ingest --resume                          backfill, resume after latest day
    fpds-ingest --backfill --gap-fill --threads 8
    fpds-ingest --retry-failed                    re-run failed backfill days
    fpds-ingest --schedule                        daily run every SCHEDULE_INTERVAL_HOURS

Exit codes: 0 on success, on ``partial`` and when another instance holds
the job lock; 1 when the run failed.
"""

import argparse
import asyncio
import sys
from datetime import date
from typing import List, Optional

from core.config import settings
from core.database import create_engine, create_session_factory
from core.logging import setup_logging
from ingestion.backfill import BackfillMode, BackfillOrchestrator
from ingestion.runner import DailyIngestionRunner
from ingestion.scheduler import IngestionScheduler
from models.base import JobStatus
import logging

logger = logging.getLogger(__name__)


def parse_date_arg(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fpds-ingest",
        description="Ingest the FPDS ATOM feed into the contract warehouse.",
    )
    parser.add_argument("--backfill", action="store_true", help="Run a day-partitioned historical backfill")
    parser.add_argument("--start-date", type=parse_date_arg, help="First backfill day (YYYY-MM-DD)")
    parser.add_argument("--end-date", type=parse_date_arg, help="Last backfill day (YYYY-MM-DD), default yesterday")

    modes = parser.add_mutually_exclusive_group()
    modes.add_argument("--resume", action="store_true",
                       help="Start after the latest ingested last-modified date (implies --backfill)")
    modes.add_argument("--gap-fill", action="store_true",
                       help="Re-run every day from its page-aligned stored row count (implies --backfill)")
    modes.add_argument("--retry-failed", action="store_true",
                       help="Re-run only the failed days of the previous backfill (implies --backfill)")

    parser.add_argument("--threads", type=int, default=settings.BACKFILL_THREADS,
                        help=f"Concurrent backfill workers (default {settings.BACKFILL_THREADS}, minimum 1)")
    parser.add_argument("--schedule", action="store_true",
                        help="Keep running and start the daily ingestion periodically")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser


def backfill_mode(args: argparse.Namespace) -> Optional[BackfillMode]:
    """Backfill mode selected by ``args``, or None for the daily run."""
    if args.retry_failed:
        return BackfillMode.RETRY_FAILED
    if args.gap_fill:
        return BackfillMode.GAP_FILL
    if args.resume:
        return BackfillMode.RESUME
    if args.backfill:
        return BackfillMode.FULL
    return None


def exit_code(status: str) -> int:
    return 1 if status == JobStatus.FAILED else 0


async def run_daily() -> int:
    engine = create_engine()
    try:
        summary = await DailyIngestionRunner(create_session_factory(engine)).run()
    finally:
        await engine.dispose()

    if summary.skipped_locked:
        logger.warning("Daily ingestion is already running elsewhere; nothing to do")
    elif summary.error:
        logger.error(f"Daily ingestion failed: {summary.error}")
    else:
        logger.info(f"Daily ingestion saved {summary.records_saved} new records")
    return exit_code(summary.status)


async def run_backfill(mode: BackfillMode, start: Optional[date], end: Optional[date], threads: int) -> int:
    threads = max(1, threads)
    # Every worker plus the tracker actor may hold a connection at once
    engine = create_engine(pool_size=threads + 2)
    try:
        orchestrator = BackfillOrchestrator(create_session_factory(engine), threads=threads)
        summary = await orchestrator.run(start, end, mode)
    finally:
        await engine.dispose()

    if summary.skipped_locked:
        logger.warning("A backfill is already running elsewhere; nothing to do")
    elif summary.failed_dates:
        logger.warning(
            f"Backfill finished {summary.status}: {summary.completed_days}/{summary.total_days} days, "
            f"failed: {', '.join(d.isoformat() for d in sorted(summary.failed_dates))}. "
            f"Re-run with --resume or --gap-fill to complete"
        )
    else:
        logger.info(
            f"Backfill finished {summary.status}: {summary.completed_days}/{summary.total_days} days, "
            f"{summary.records_saved} records saved"
        )
    return exit_code(summary.status)


async def run_scheduled():
    scheduler = IngestionScheduler()
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.start_date and args.end_date and args.start_date > args.end_date:
        parser.error("--start-date must not be after --end-date")

    setup_logging(args.log_level)

    if args.schedule:
        try:
            asyncio.run(run_scheduled())
        except KeyboardInterrupt:
            logger.info("Scheduler interrupted")
        return 0

    mode = backfill_mode(args)
    if mode is None:
        return asyncio.run(run_daily())
    return asyncio.run(run_backfill(mode, args.start_date, args.end_date, args.threads))


if __name__ == "__main__":
    sys.exit(main())
