"""
Day-partitioned concurrent backfill.

Each day in the requested range is an independent run of the feed pipeline
over ``LAST_MOD_DATE:[day,day]``. Day tasks flow through an
``asyncio.Queue`` consumed by a fixed number of worker tasks. A single
tracker actor task owns the backfill ``JobTracker`` row and the aggregate
counters; workers only send it messages.

Modes:
    full      every day from offset 0
    resume    start the day after the latest ingested FPDS last-modified
              date when that date falls inside the range
    gap_fill  every day, starting at ``floor(existing_rows / 10) * 10``
    retry     only the failed dates retained on the tracker row
"""

import asyncio
import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.exceptions import JobLockError, JobTrackerError
from core.logging import LoggerLike, bind_logger
from ingestion.extractors.fpds_fetcher import AttemptCallback, FeedFetcher, build_feed_url
from ingestion.job_tracker import JobTrackerStore
from ingestion.loaders.batch_writer import BatchWriter
from ingestion.loaders.dimension_resolver import DimensionCache
from ingestion.lock import JobLock
from ingestion.runner import FeedTraversal, utcnow
from models import ContractAction
from models.base import JobStatus
from schemas.ingestion import BackfillSummary
import logging

logger = logging.getLogger(__name__)


class BackfillMode(str, enum.Enum):
    FULL = "full"
    RESUME = "resume"
    GAP_FILL = "gap_fill"
    RETRY_FAILED = "retry_failed"


@dataclass(frozen=True)
class DayTask:
    day: date
    start_offset: int = 0

    @property
    def url(self) -> str:
        return build_feed_url(self.day, self.day, offset=self.start_offset)


DayRunner = Callable[[DayTask, AttemptCallback], Awaitable[int]]


def gap_offset(existing_rows: int, page_size: Optional[int] = None) -> int:
    """Page-aligned start offset for a day that already has ``existing_rows``."""
    page_size = page_size or settings.FEED_PAGE_SIZE
    return (max(0, existing_rows) // page_size) * page_size


def days_between(start: date, end: date) -> List[date]:
    return [start + timedelta(days=n) for n in range((end - start).days + 1)]


def _as_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """``func.date()`` comes back as a string on SQLite and a date on PostgreSQL."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


async def existing_counts_by_day(session_factory: async_sessionmaker, start: date, end: date) -> Dict[date, int]:
    """Stored fact rows per FPDS last-modified day within ``[start, end]``."""
    day_column = func.date(ContractAction.fpds_last_modified_date)
    stmt = (
        select(day_column, func.count(ContractAction.id))
        .where(ContractAction.fpds_last_modified_date >= _day_start(start))
        .where(ContractAction.fpds_last_modified_date < _day_start(end + timedelta(days=1)))
        .group_by(day_column)
    )
    async with session_factory() as session:
        rows = (await session.execute(stmt)).all()

    counts: Dict[date, int] = {}
    for value, count in rows:
        day = _as_date(value)
        if day is not None:
            counts[day] = counts.get(day, 0) + count
    return counts


async def latest_ingested_day(session_factory: async_sessionmaker) -> Optional[date]:
    async with session_factory() as session:
        value = (await session.execute(select(func.max(ContractAction.fpds_last_modified_date)))).scalar()
    return _as_date(value)


# ============================================================================
# Tracker actor messages
# ============================================================================

@dataclass(frozen=True)
class CursorMoved:
    day: date
    url: str


@dataclass(frozen=True)
class DayCompleted:
    day: date
    records_saved: int


@dataclass(frozen=True)
class DayFailed:
    day: date
    error: str


@dataclass
class BackfillProgress:
    total_days: int
    completed_days: int = 0
    records_saved: int = 0
    failed_dates: Dict[date, str] = field(default_factory=dict)
    completed_through: Optional[date] = None

    def note(self) -> str:
        through = self.completed_through.isoformat() if self.completed_through else "none"
        return (
            f"Completed {self.completed_days}/{self.total_days} days, "
            f"{len(self.failed_dates)} failed, {self.records_saved} records saved; "
            f"latest finished day {through}"
        )


class TrackerActor:
    """
    Sole writer of the backfill tracker row.

    Messages are applied in arrival order, so progress writes never
    interleave. ``completed_through`` is the latest finished day, which is
    advisory only: earlier days may still be running or have failed.
    """

    def __init__(self, tracker: JobTrackerStore, progress: BackfillProgress, logger: LoggerLike):
        self.tracker = tracker
        self.progress = progress
        self.log = logger
        self.inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, message):
        await self.inbox.put(message)

    async def stop(self):
        await self.inbox.put(None)

    async def run(self):
        while True:
            message = await self.inbox.get()
            if message is None:
                return
            await self._apply(message)

    async def _apply(self, message):
        progress = self.progress
        changes = {}

        if isinstance(message, CursorMoved):
            changes["next_page_url"] = message.url
        elif isinstance(message, DayCompleted):
            progress.completed_days += 1
            progress.records_saved += message.records_saved
            if progress.completed_through is None or message.day > progress.completed_through:
                progress.completed_through = message.day
            changes["notes"] = progress.note()
            changes["records_saved"] = progress.records_saved
        elif isinstance(message, DayFailed):
            progress.failed_dates[message.day] = message.error
            changes["notes"] = progress.note()
            changes["failed_dates"] = sorted(d.isoformat() for d in progress.failed_dates)

        try:
            await self.tracker.update(JobStatus.RUNNING, **changes)
        except JobTrackerError as e:
            # Counters stay authoritative in memory; the next message rewrites the row
            self.log.error(f"Tracker progress write failed: {e}")


class BackfillOrchestrator:
    """
    Drive many single-day pipeline runs through a bounded worker pool.

    ``day_runner`` processes one day and returns the records it saved; the
    default runs a ``FeedTraversal`` with a fresh dimension cache per day.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        fetcher: Optional[FeedFetcher] = None,
        threads: Optional[int] = None,
        job_name: Optional[str] = None,
        day_runner: Optional[DayRunner] = None,
        lock_dir: Optional[str] = None,
        logger: Optional[LoggerLike] = None,
    ):
        self.session_factory = session_factory
        self.fetcher = fetcher
        self.threads = max(1, threads if threads is not None else settings.BACKFILL_THREADS)
        self.job_name = job_name or settings.BACKFILL_JOB_NAME
        self.day_runner = day_runner or self.run_day
        self.lock_dir = lock_dir
        self.log = bind_logger(logger or logging.getLogger(__name__), job=self.job_name)
        self.tracker = JobTrackerStore(session_factory, self.job_name, self.log)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def plan(
        self,
        start: date,
        end: date,
        mode: BackfillMode = BackfillMode.FULL,
        retained_failures: Optional[List[str]] = None,
    ) -> List[DayTask]:
        """Day tasks for ``mode`` over ``[start, end]``."""
        if mode is BackfillMode.RETRY_FAILED:
            days = sorted({_as_date(d) for d in retained_failures or []})
            return [DayTask(day) for day in days]

        if end < start:
            return []

        if mode is BackfillMode.RESUME:
            latest = await latest_ingested_day(self.session_factory)
            if latest is not None and start <= latest <= end:
                self.log.info(f"Latest ingested day is {latest.isoformat()}; resuming the day after")
                start = latest + timedelta(days=1)
            return [DayTask(day) for day in days_between(start, end)] if start <= end else []

        if mode is BackfillMode.GAP_FILL:
            counts = await existing_counts_by_day(self.session_factory, start, end)
            tasks = [DayTask(day, gap_offset(counts.get(day, 0))) for day in days_between(start, end)]
            missing = sum(1 for day in days_between(start, end) if not counts.get(day))
            self.log.info(f"Gap-fill: {missing} empty day(s), {len(tasks) - missing} partially ingested")
            return tasks

        return [DayTask(day) for day in days_between(start, end)]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run_day(self, task: DayTask, on_attempt: AttemptCallback) -> int:
        day_log = bind_logger(self.log, day=task.day.isoformat())
        writer = BatchWriter(self.session_factory, DimensionCache(), logger=day_log)
        traversal = FeedTraversal(self.fetcher, writer, on_attempt=on_attempt, logger=day_log)
        result = await traversal.run(task.url)
        day_log.info(f"Day complete: {result.pages} page(s), {result.records_saved} saved")
        return result.records_saved

    async def _worker(self, number: int, queue: asyncio.Queue, actor: TrackerActor):
        while True:
            task = await queue.get()
            try:
                if task is None:
                    return

                async def on_attempt(url: str, day: date = task.day):
                    await actor.send(CursorMoved(day, url))

                try:
                    saved = await self.day_runner(task, on_attempt)
                except Exception as e:
                    self.log.error(f"Worker {number}: day {task.day.isoformat()} failed: {e}")
                    await actor.send(DayFailed(task.day, str(e)))
                else:
                    await actor.send(DayCompleted(task.day, saved))
            finally:
                queue.task_done()

    async def execute(self, tasks: List[DayTask], progress: BackfillProgress):
        """Run ``tasks`` through the worker pool until every worker drains."""
        actor = TrackerActor(self.tracker, progress, self.log)
        actor_task = asyncio.create_task(actor.run())

        queue: asyncio.Queue = asyncio.Queue()
        for task in tasks:
            queue.put_nowait(task)
        workers_count = min(self.threads, max(1, len(tasks)))
        for _ in range(workers_count):
            queue.put_nowait(None)

        workers = [
            asyncio.create_task(self._worker(n + 1, queue, actor))
            for n in range(workers_count)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            await actor.stop()
            await actor_task

    async def run(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        mode: BackfillMode = BackfillMode.FULL,
    ) -> BackfillSummary:
        lock = JobLock(self.job_name, self.lock_dir)
        try:
            lock.acquire()
        except JobLockError as e:
            self.log.warning(f"{e.message}; skipping this invocation")
            return BackfillSummary(status=JobStatus.IDLE, total_days=0, skipped_locked=True)

        owns_fetcher = self.fetcher is None
        if owns_fetcher:
            self.fetcher = FeedFetcher(logger=self.log)
        try:
            return await self._run_locked(start, end, mode)
        finally:
            if owns_fetcher:
                await self.fetcher.aclose()
                self.fetcher = None
            lock.release()

    async def _run_locked(self, start: Optional[date], end: Optional[date], mode: BackfillMode) -> BackfillSummary:
        today = utcnow().date()
        end = end or today - timedelta(days=1)
        start = start or end - timedelta(days=settings.BACKFILL_DEFAULT_DAYS - 1)

        started_at = utcnow()
        previous = await self.tracker.claim(started_at)
        progress = BackfillProgress(total_days=0)

        try:
            tasks = await self.plan(start, end, mode, previous.failed_dates)
            progress.total_days = len(tasks)
            await self.tracker.mark_running(
                notes=f"Backfill ({mode.value}) of {len(tasks)} day(s) from {start} to {end} "
                      f"with {self.threads} worker(s)",
            )
            self.log.info(f"Backfill ({mode.value}): {len(tasks)} day(s), {self.threads} worker(s)")
            await self.execute(tasks, progress)
        except Exception as e:
            self.log.exception(f"Backfill aborted: {e}")
            await self.tracker.fail(f"Error: {e}", records_saved=progress.records_saved)
            return self._summary(JobStatus.FAILED, progress)

        if progress.failed_dates:
            failed = sorted(d.isoformat() for d in progress.failed_dates)
            note = (
                f"{progress.note()}. Failed dates: {', '.join(failed)}. "
                f"Re-run with --resume or --gap-fill (or --retry-failed) to complete them"
            )
            await self.tracker.finish_partial(failed, progress.records_saved, note)
            self.log.warning(note)
            return self._summary(JobStatus.PARTIAL, progress)

        await self.tracker.succeed(
            started_at,
            progress.records_saved,
            notes=f"Backfill completed successfully. {progress.note()}",
        )
        self.log.info(f"Backfill completed successfully: {progress.note()}")
        return self._summary(JobStatus.IDLE, progress)

    @staticmethod
    def _summary(status: JobStatus, progress: BackfillProgress) -> BackfillSummary:
        return BackfillSummary(
            status=status,
            total_days=progress.total_days,
            completed_days=progress.completed_days,
            failed_dates=dict(progress.failed_dates),
            records_saved=progress.records_saved,
            completed_through=progress.completed_through,
        )
