# ============================================================================
# File: ingestion/runner.py
# Description: Feed traversal and the daily incremental ingestion run
# ============================================================================
"""
Feed runners.

``FeedTraversal`` walks a feed from a start URL to its last page:
fetch -> parse -> write batch -> follow ``rel="next"``.

``DailyIngestionRunner`` is the incremental job built on top of it:

- Holds the exclusive job lock for the whole run
- Claims the tracker row and decides where to start (retained cursor,
  missed days since the last success, or a probed start day)
- Bounds the run by ``RUN_TIMEOUT_SECONDS``
- Leaves the tracker ``idle`` on success or ``failed`` with the cursor kept
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.exceptions import FeedParseError, FetchError, JobLockError, RunTimeoutError
from core.logging import LoggerLike, bind_logger
from ingestion.extractors.atom_parser import parse_page
from ingestion.extractors.fpds_fetcher import AttemptCallback, FeedFetcher, build_feed_url
from ingestion.job_tracker import JobTrackerStore, TrackerSnapshot
from ingestion.loaders.batch_writer import BatchWriter
from ingestion.loaders.dimension_resolver import DimensionCache
from ingestion.lock import JobLock
from models.base import JobStatus
from schemas.ingestion import DailyRunSummary, FeedRunResult
import logging

logger = logging.getLogger(__name__)

PageCallback = Callable[[FeedRunResult, Optional[str]], Awaitable[None]]
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedTraversal:
    """Walk one feed to its last page, writing each page as a batch."""

    def __init__(
        self,
        fetcher: FeedFetcher,
        writer: BatchWriter,
        on_attempt: Optional[AttemptCallback] = None,
        on_page: Optional[PageCallback] = None,
        logger: Optional[LoggerLike] = None,
    ):
        self.fetcher = fetcher
        self.writer = writer
        self.on_attempt = on_attempt
        self.on_page = on_page
        self.log = logger or logging.getLogger(__name__)

    async def run(self, start_url: str) -> FeedRunResult:
        """
        Traverse from ``start_url``.

        Raises:
            FetchError: a page could not be retrieved
            FeedParseError: a page held no readable XML
            BatchWriteError: a page batch rolled back
        """
        result = FeedRunResult(start_url=start_url)
        url: Optional[str] = start_url
        visited = set()

        while url:
            visited.add(url)
            page = await self.fetcher.fetch(url, on_attempt=self.on_attempt)
            parsed = await asyncio.to_thread(parse_page, page.body, str(page.url))

            batch = await self.writer.write(parsed.entries)
            result.pages += 1
            result.entries_seen += parsed.entry_count
            result.entries_skipped += len(parsed.skipped)
            result.totals = result.totals + batch

            next_url = page.resolve(parsed.next_href) if parsed.next_href else None
            if next_url in visited:
                self.log.warning(f"Next link from {url} revisits {next_url}; stopping")
                next_url = None

            self.log.info(
                f"Page {result.pages}: {parsed.entry_count} entries, {batch.saved} saved"
                + ("" if next_url else " (last page)")
            )
            if self.on_page is not None:
                await self.on_page(result, next_url)
            url = next_url

        return result


class DailyIngestionRunner:
    """Incremental daily ingestion job."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        fetcher: Optional[FeedFetcher] = None,
        job_name: Optional[str] = None,
        timeout: Optional[float] = None,
        lock_dir: Optional[str] = None,
        clock: Optional[Clock] = None,
        logger: Optional[LoggerLike] = None,
    ):
        self.session_factory = session_factory
        self.fetcher = fetcher
        self.job_name = job_name or settings.DAILY_JOB_NAME
        self.timeout = timeout or settings.RUN_TIMEOUT_SECONDS
        self.lock_dir = lock_dir
        self.clock = clock or utcnow
        self.log = bind_logger(logger or logging.getLogger(__name__), job=self.job_name)
        self.tracker = JobTrackerStore(session_factory, self.job_name, self.log)

    async def run(self) -> DailyRunSummary:
        lock = JobLock(self.job_name, self.lock_dir)
        try:
            lock.acquire()
        except JobLockError as e:
            self.log.warning(f"{e.message}; skipping this invocation")
            return DailyRunSummary(
                job_name=self.job_name,
                status=JobStatus.IDLE,
                started_at=self.clock(),
                skipped_locked=True,
            )

        try:
            return await self._run_locked()
        finally:
            lock.release()

    async def _run_locked(self) -> DailyRunSummary:
        started_at = self.clock()
        previous = await self.tracker.claim(started_at)
        summary = DailyRunSummary(job_name=self.job_name, status=JobStatus.INITIALIZING, started_at=started_at)

        fetcher = self.fetcher or FeedFetcher(logger=self.log)
        try:
            await asyncio.wait_for(self._ingest(fetcher, previous, summary), timeout=self.timeout)
        except asyncio.TimeoutError:
            error = RunTimeoutError(
                f"Run timed out after {self.timeout:g} seconds",
                context={"job_name": self.job_name},
            )
            self.log.error(error.message)
            await self.tracker.fail(error.message, records_saved=summary.records_saved)
            summary.status = JobStatus.FAILED
            summary.error = error.message
        except Exception as e:
            self.log.exception(f"Daily ingestion failed: {e}")
            await self.tracker.fail(f"Error: {e}", records_saved=summary.records_saved)
            summary.status = JobStatus.FAILED
            summary.error = str(e)
        else:
            await self.tracker.succeed(started_at, summary.records_saved)
            summary.status = JobStatus.IDLE
            self.log.info(f"Run completed successfully. Saved {summary.records_saved} new records")
        finally:
            if self.fetcher is None:
                await fetcher.aclose()

        return summary

    async def _ingest(self, fetcher: FeedFetcher, previous: TrackerSnapshot, summary: DailyRunSummary):
        writer = BatchWriter(self.session_factory, DimensionCache(), logger=self.log)

        async def on_page(result: FeedRunResult, next_url: Optional[str]):
            await self.tracker.mark_running(
                notes=f"Page {result.pages} of {result.start_url}: {result.records_saved} saved so far",
            )

        traversal = FeedTraversal(fetcher, writer, on_attempt=self.tracker.set_cursor, on_page=on_page, logger=self.log)

        if previous.crashed_or_failed and previous.next_page_url:
            self.log.info(f"Previous run ended {previous.status.value}; resuming from {previous.next_page_url}")
            summary.resumed_from = previous.next_page_url
            await self.tracker.mark_running(notes="Resuming from retained cursor")
            result = await traversal.run(previous.next_page_url)
            summary.records_saved += result.records_saved
            return

        await self.tracker.mark_running(notes="Resolving start point")
        today = self.clock().date()

        if previous.last_successful_run_start_time is not None:
            for day in missed_days(previous.last_successful_run_start_time.date(), today):
                result = await traversal.run(build_feed_url(day, day))
                summary.records_saved += result.records_saved
                summary.days_caught_up += 1
                await self.tracker.mark_running(
                    notes=f"Caught up {day.isoformat()}: saved {result.records_saved} records",
                )

        start_day = await self.probe_start_day(fetcher, today)
        summary.start_url = build_feed_url(start_day)
        result = await traversal.run(summary.start_url)
        summary.records_saved += result.records_saved

    async def probe_start_day(self, fetcher: FeedFetcher, today: date) -> date:
        """
        Latest day whose open-ended feed query returns entries.

        Walks back from yesterday for at most ``PROBE_MAX_DAYS`` days and
        falls back to ``today - DEFAULT_DAYS_BACK``.
        """
        for back in range(1, settings.PROBE_MAX_DAYS + 1):
            day = today - timedelta(days=back)
            url = build_feed_url(day)
            try:
                page = await fetcher.fetch(url, max_retries=settings.PROBE_MAX_RETRIES)
                parsed = await asyncio.to_thread(parse_page, page.body, url)
            except (FetchError, FeedParseError) as e:
                self.log.warning(f"Probe for {day.isoformat()} failed: {e.message}")
                continue

            if parsed.entry_count:
                self.log.info(f"Starting from {day.isoformat()} ({parsed.entry_count} entries on first page)")
                return day

        fallback = today - timedelta(days=settings.DEFAULT_DAYS_BACK)
        self.log.warning(f"No entries found in the last {settings.PROBE_MAX_DAYS} days; starting from {fallback}")
        return fallback


def missed_days(last_success: date, today: date):
    """Days after ``last_success`` up to and including yesterday."""
    day = last_success + timedelta(days=1)
    while day < today:
        yield day
        day += timedelta(days=1)
