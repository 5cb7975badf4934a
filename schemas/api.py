"""
Pydantic schemas for the operational status API
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime, timezone
from models.base import JobStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Health Check Schemas
# ============================================================================

class JobTrackerInfo(BaseModel):
    """Job tracker row as reported by the health check"""
    job_name: str
    status: JobStatus
    last_successful_run_start_time: Optional[datetime] = None
    last_attempted_run_start_time: Optional[datetime] = None
    next_page_url: Optional[str] = None
    notes: Optional[str] = None
    failed_dates: List[str] = Field(default_factory=list)
    records_saved: int = 0
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_utcnow)
    database_connected: bool
    jobs: List[JobTrackerInfo] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "jobs": [
                    {
                        "job_name": "fpds_daily_ingestion",
                        "status": "idle",
                        "last_successful_run_start_time": "2024-01-15T02:00:00Z",
                        "notes": "Run completed successfully at 2024-01-15T02:41:07+00:00. Saved 5321 new records",
                        "records_saved": 5321
                    }
                ]
            }
        }


def overall_status(database_connected: bool, jobs: List[JobTrackerInfo]) -> str:
    """unhealthy without a database, degraded while any job is failed or partial"""
    if not database_connected:
        return "unhealthy"
    if any(job.status in (JobStatus.FAILED, JobStatus.PARTIAL) for job in jobs):
        return "degraded"
    return "healthy"


# ============================================================================
# Statistics Schemas
# ============================================================================

class StatsResponse(BaseModel):
    """Warehouse statistics response model"""
    timestamp: datetime = Field(default_factory=_utcnow)

    total_contract_actions: int
    contract_actions_by_record_type: Dict[str, int]
    dimension_counts: Dict[str, int]
    vendor_details: int
    treasury_accounts: int
    latest_fpds_last_modified: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": "2024-01-15T10:30:00Z",
                "total_contract_actions": 120000,
                "contract_actions_by_record_type": {"award": 110000, "IDV": 10000},
                "dimension_counts": {
                    "vendors": 40000,
                    "agencies": 120,
                    "government_offices": 3100,
                    "product_or_service_codes": 2200,
                    "naics_codes": 900
                },
                "vendor_details": 119000,
                "treasury_accounts": 80000,
                "latest_fpds_last_modified": "2024-01-14T23:59:12Z"
            }
        }


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
