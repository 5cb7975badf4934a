from sqlalchemy import Column, Integer, String, Enum, DateTime, Text
from datetime import datetime, timezone
from models.base import Base, JobStatus, JSONDocument


class JobTracker(Base):
    """
    Persisted, resumable state for one named ingestion job.

    Purpose:
    - Decide at startup whether to resume, catch up or start fresh
    - Keep the resumption cursor (next_page_url) across crashes
    - Retain failed backfill dates for a targeted retry

    Design:
    - One row per job name ("fpds_daily_ingestion", "fpds_backfill")
    - Mutated only by the ingestion pipeline, read by the status API
    """
    __tablename__ = "job_tracker"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_name = Column(String(100), unique=True, nullable=False)

    status = Column(
        Enum(JobStatus, name="job_status", values_callable=lambda e: [m.value for m in e]),
        default=JobStatus.IDLE,
        nullable=False,
    )
    last_successful_run_start_time = Column(DateTime(timezone=True), nullable=True)
    last_attempted_run_start_time = Column(DateTime(timezone=True), nullable=True)

    # Resumption cursor, cleared only when a full traversal completes
    next_page_url = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Backfill only: ISO dates whose day run failed
    failed_dates = Column(JSONDocument, nullable=True)
    records_saved = Column(Integer, default=0)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
