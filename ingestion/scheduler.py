import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.database import create_engine, create_session_factory
from ingestion.runner import DailyIngestionRunner
from schemas.ingestion import DailyRunSummary

logger = logging.getLogger(__name__)


class IngestionScheduler:
    """Runs the daily FPDS ingestion periodically inside the event loop."""

    JOB_ID = "fpds_daily_ingestion"

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        interval_hours: Optional[int] = None,
    ):
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self.interval_hours = interval_hours or settings.SCHEDULE_INTERVAL_HOURS
        self._engine = None
        if session_factory is None:
            self._engine = create_engine()
            session_factory = create_session_factory(self._engine)
        self.session_factory = session_factory

    async def run_daily_job(self) -> Optional[DailyRunSummary]:
        """Job to run the daily ingestion"""
        logger.info("Scheduler: Starting daily ingestion")
        try:
            summary = await DailyIngestionRunner(self.session_factory).run()
        except Exception as e:
            logger.error(f"Scheduler: daily ingestion failed - {e}")
            return None

        logger.info(
            f"Scheduler: daily ingestion finished with status {summary.status} "
            f"({summary.records_saved} records saved)"
        )
        return summary

    def start(self, run_now: bool = True):
        """Start the scheduler"""
        options = {}
        if run_now:
            # Passing next_run_time=None would add the job paused
            options["next_run_time"] = datetime.now(timezone.utc)
        self.scheduler.add_job(
            self.run_daily_job,
            trigger=IntervalTrigger(hours=self.interval_hours),
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **options,
        )
        self.scheduler.start()
        logger.info(f"Ingestion scheduler started (every {self.interval_hours}h)")

    async def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        if self._engine is not None:
            await self._engine.dispose()
        logger.info("Ingestion scheduler stopped")
