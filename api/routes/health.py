"""
Health check endpoint with database and job tracker status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, JobTrackerInfo, overall_status
from models import JobTracker
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Every job tracker row (status, cursor, notes, failed dates)
    """
    db_connected = False
    jobs = []

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True

        result = await db.execute(select(JobTracker).order_by(JobTracker.job_name))
        for tracker in result.scalars().all():
            jobs.append(JobTrackerInfo(
                job_name=tracker.job_name,
                status=tracker.status,
                last_successful_run_start_time=tracker.last_successful_run_start_time,
                last_attempted_run_start_time=tracker.last_attempted_run_start_time,
                next_page_url=tracker.next_page_url,
                notes=tracker.notes,
                failed_dates=tracker.failed_dates or [],
                records_saved=tracker.records_saved or 0,
                updated_at=tracker.updated_at,
            ))
    except SQLAlchemyError as e:
        logger.error(f"Health check query failed: {str(e)}")

    return HealthCheckResponse(
        status=overall_status(db_connected, jobs),
        database_connected=db_connected,
        jobs=jobs,
    )
