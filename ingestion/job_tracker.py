"""
Persisted job state machine.

Every write runs in its own short transaction so tracker progress survives a
page batch that rolls back. Status changes are validated against
``JobStatus.can_transition_to``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import JobTrackerError
from core.logging import LoggerLike
from ingestion.loaders.statements import insert_rows
from models import JobTracker
from models.base import JobStatus
import logging

logger = logging.getLogger(__name__)

MAX_NOTE_LENGTH = 200


def truncate_note(text: str, limit: int = MAX_NOTE_LENGTH) -> str:
    text = str(text)
    return text if len(text) <= limit else text[:limit - 3] + "..."


class JobTrackerStore:
    """Read and move one named ``JobTracker`` row."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        job_name: str,
        logger: Optional[LoggerLike] = None,
    ):
        self.session_factory = session_factory
        self.job_name = job_name
        self.log = logger or logging.getLogger(__name__)

    async def _load(self, session: AsyncSession) -> JobTracker:
        result = await session.execute(select(JobTracker).where(JobTracker.job_name == self.job_name))
        tracker = result.scalar_one_or_none()
        if tracker is None:
            await insert_rows(
                session, JobTracker,
                [{"job_name": self.job_name, "status": JobStatus.IDLE, "records_saved": 0}],
                1, conflict_column="job_name",
            )
            result = await session.execute(select(JobTracker).where(JobTracker.job_name == self.job_name))
            tracker = result.scalar_one()
        return tracker

    async def get(self) -> JobTracker:
        """Current row, created idle on first use."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    return await self._load(session)
        except SQLAlchemyError as e:
            raise JobTrackerError(
                "Failed to read job tracker",
                context={"job_name": self.job_name},
                original_exception=e,
            )

    async def update(self, status: Optional[JobStatus] = None, **changes: Any) -> JobTracker:
        """
        Apply ``changes`` and optionally move to ``status``.

        Raises:
            JobTrackerError: illegal transition or database failure
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    tracker = await self._load(session)
                    current = JobStatus(tracker.status)

                    if status is not None and not current.can_transition_to(status):
                        raise JobTrackerError(
                            f"Illegal status transition {current.value} -> {status.value}",
                            context={
                                "job_name": self.job_name,
                                "from_status": current.value,
                                "to_status": status.value,
                            },
                        )
                    if status is not None:
                        tracker.status = status
                    for name, value in changes.items():
                        setattr(tracker, name, value)
                    tracker.updated_at = datetime.now(timezone.utc)
                return tracker
        except SQLAlchemyError as e:
            raise JobTrackerError(
                "Failed to update job tracker",
                context={"job_name": self.job_name, "to_status": status.value if status else None},
                original_exception=e,
            )

    async def claim(self, started_at: datetime) -> "TrackerSnapshot":
        """
        Claim the row for a new run.

        Returns the row as it was *before* the claim so the caller can tell
        a crashed or failed previous run from a clean one.
        """
        previous = await self.get()
        snapshot = _snapshot(previous)
        await self.update(
            JobStatus.INITIALIZING,
            last_attempted_run_start_time=started_at,
            notes=f"Run claimed at {started_at.isoformat()}",
        )
        self.log.info(f"Claimed job (previous status: {snapshot.status.value})")
        return snapshot

    async def mark_running(self, notes: Optional[str] = None, next_page_url: Optional[str] = None) -> JobTracker:
        changes: Dict[str, Any] = {}
        if notes is not None:
            changes["notes"] = notes
        if next_page_url is not None:
            changes["next_page_url"] = next_page_url
        return await self.update(JobStatus.RUNNING, **changes)

    async def set_cursor(self, url: str) -> JobTracker:
        """Persist the URL about to be fetched as the resumption cursor."""
        return await self.mark_running(next_page_url=url)

    async def succeed(self, started_at: datetime, records_saved: int, notes: Optional[str] = None) -> JobTracker:
        notes = notes or (
            f"Run completed successfully at {datetime.now(timezone.utc).isoformat()}. "
            f"Saved {records_saved} new records"
        )
        return await self.update(
            JobStatus.IDLE,
            next_page_url=None,
            last_successful_run_start_time=started_at,
            records_saved=records_saved,
            failed_dates=None,
            notes=notes,
        )

    async def fail(self, error: str, records_saved: Optional[int] = None) -> JobTracker:
        """Mark failed, keeping the cursor for the next invocation."""
        changes: Dict[str, Any] = {"notes": truncate_note(error)}
        if records_saved is not None:
            changes["records_saved"] = records_saved
        return await self.update(JobStatus.FAILED, **changes)

    async def finish_partial(self, failed_dates: List[str], records_saved: int, notes: str) -> JobTracker:
        return await self.update(
            JobStatus.PARTIAL,
            failed_dates=list(failed_dates),
            records_saved=records_saved,
            notes=notes,
        )


@dataclass(frozen=True)
class TrackerSnapshot:
    """Copy of a tracker row taken before a run claims it."""
    job_name: str
    status: JobStatus
    last_successful_run_start_time: Optional[datetime] = None
    last_attempted_run_start_time: Optional[datetime] = None
    next_page_url: Optional[str] = None
    notes: Optional[str] = None
    failed_dates: List[str] = field(default_factory=list)
    records_saved: int = 0

    @property
    def crashed_or_failed(self) -> bool:
        return self.status in (JobStatus.FAILED, JobStatus.RUNNING, JobStatus.INITIALIZING)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive timestamps
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _snapshot(tracker: JobTracker) -> TrackerSnapshot:
    return TrackerSnapshot(
        job_name=tracker.job_name,
        status=JobStatus(tracker.status),
        last_successful_run_start_time=_aware(tracker.last_successful_run_start_time),
        last_attempted_run_start_time=_aware(tracker.last_attempted_run_start_time),
        next_page_url=tracker.next_page_url,
        notes=tracker.notes,
        failed_dates=list(tracker.failed_dates or []),
        records_saved=tracker.records_saved or 0,
    )
