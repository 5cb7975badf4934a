"""
Pydantic schemas for ingestion results and API responses.

Schemas:
    ingestion: per-page, per-traversal, daily and backfill run outcomes
    api: status endpoint response models

Usage:
    from schemas.ingestion import BatchResult, DailyRunSummary
    from schemas.api import HealthCheckResponse, StatsResponse
"""

__all__ = [
    "BatchResult",
    "FeedRunResult",
    "DailyRunSummary",
    "BackfillSummary",
    "HealthCheckResponse",
    "JobTrackerInfo",
    "StatsResponse",
    "ErrorResponse",
]
