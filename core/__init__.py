"""
Core utilities and configuration for the FPDS ingestion system.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session factory construction
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and context-bound logger adapters

Usage:
    from core.config import settings
    from core.database import create_engine, create_session_factory
    from core.exceptions import FetchError, BatchWriteError
    from core.logging import setup_logging, bind_logger

Example:
    setup_logging()

    engine = create_engine(pool_size=6)
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        pass
"""

__all__ = [
    "settings",
    "create_engine",
    "create_session_factory",
    "get_session",
    "setup_logging",
    "bind_logger",
    # Exceptions
    "ETLException",
    "ExtractionError",
    "FetchError",
    "NetworkError",
    "FeedRequestError",
    "FeedParseError",
    "LoadError",
    "BatchWriteError",
    "JobTrackerError",
    "JobLockError",
    "RunTimeoutError",
    "RetryableError",
    "NonRetryableError",
]
