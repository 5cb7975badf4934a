"""
Pydantic schemas for ingestion results and run summaries
"""

from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import date, datetime
from models.base import JobStatus


class BatchResult(BaseModel):
    """Outcome of writing one feed page batch"""
    saved: int = 0
    skipped_existing: int = 0
    skipped_no_vendor: int = 0
    conflicts: int = 0
    vendor_details: int = 0
    treasury_accounts: int = 0

    def __add__(self, other: "BatchResult") -> "BatchResult":
        return BatchResult(**{
            name: getattr(self, name) + getattr(other, name)
            for name in type(self).model_fields
        })


class FeedRunResult(BaseModel):
    """Outcome of traversing a feed from a start URL to its last page"""
    start_url: str
    pages: int = 0
    entries_seen: int = 0
    entries_skipped: int = 0
    totals: BatchResult = Field(default_factory=BatchResult)

    @property
    def records_saved(self) -> int:
        return self.totals.saved


class DailyRunSummary(BaseModel):
    """Outcome of one daily ingestion invocation"""
    job_name: str
    status: JobStatus
    started_at: datetime
    records_saved: int = 0
    days_caught_up: int = 0
    resumed_from: Optional[str] = None
    start_url: Optional[str] = None
    error: Optional[str] = None
    skipped_locked: bool = False

    class Config:
        use_enum_values = True


class BackfillSummary(BaseModel):
    """
    Outcome of a backfill run.

    ``completed_through`` is the latest day whose worker finished. Days
    finish out of order, so earlier days may still have failed.
    """
    status: JobStatus
    total_days: int
    completed_days: int = 0
    failed_dates: Dict[date, str] = Field(default_factory=dict)
    records_saved: int = 0
    completed_through: Optional[date] = None
    skipped_locked: bool = False

    class Config:
        use_enum_values = True

    @property
    def succeeded(self) -> bool:
        return not self.failed_dates
