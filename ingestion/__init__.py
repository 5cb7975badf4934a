"""
FPDS feed ingestion pipeline.

This package contains every component between the FPDS ATOM feed and the
warehouse tables:

Modules:
    runner: Feed traversal and the daily incremental job
    backfill: Day-partitioned concurrent backfill with resume and gap-fill
    job_tracker: Persisted job state machine (idle/initializing/running/failed/partial)
    lock: Exclusive per-job process lock
    scheduler: APScheduler integration for periodic daily runs
    cli: ``fpds-ingest`` command line entry point

Subpackages:
    extractors: Feed fetcher with retry/backoff and the Atom page parser
    transformers: Scalar value parsers and the field-group normalizer
    loaders: Dimension resolver/cache and the transactional batch writer

Architecture:
    fetch page -> parse entries -> resolve dimensions -> write batch
    (dimensions, facts, child rows in one transaction) -> record cursor
    -> follow rel="next" until the feed is exhausted.

    The backfill drives many single-day runs of the same pipeline through a
    bounded pool of asyncio worker tasks.

Usage:
    from ingestion.runner import DailyIngestionRunner
    from ingestion.backfill import BackfillOrchestrator, BackfillMode

Example:
    session_factory = create_session_factory(create_engine(pool_size=6))

    summary = await BackfillOrchestrator(session_factory, threads=4).run(
        date(2024, 1, 1), date(2024, 1, 31), BackfillMode.GAP_FILL
    )
    print(summary.status, summary.failed_dates)

Error Handling:
    Fatal conditions raise exceptions from core.exceptions and leave the
    job tracker resumable. Per-entry problems are reported as skipped
    entries and never abort a page.
"""

__all__ = [
    "DailyIngestionRunner",
    "FeedTraversal",
    "BackfillOrchestrator",
    "BackfillMode",
    "JobTrackerStore",
    "JobLock",
    "IngestionScheduler",
]
