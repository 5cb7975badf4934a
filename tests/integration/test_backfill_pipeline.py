# ============================================================================
# File: tests/integration/test_backfill_pipeline.py
# ============================================================================

from datetime import date

import httpx
import pytest
from sqlalchemy import func, select

from ingestion.backfill import (
    BackfillMode,
    BackfillOrchestrator,
    existing_counts_by_day,
    latest_ingested_day,
)
from ingestion.extractors.atom_parser import parse_page
from ingestion.loaders.batch_writer import BatchWriter
from models import ContractAction
from models.base import JobStatus


async def seed_day(session_factory, feed_factory, day: date, rows: int):
    """Store ``rows`` awards last modified on ``day``."""
    entries = [
        feed_factory.entry(
            title=f"Award {day.isoformat()} #{n}",
            content=feed_factory.award(piid=f"P{n}", last_modified=f"{day.isoformat()} 12:00:00"),
        )
        for n in range(rows)
    ]
    await BatchWriter(session_factory).write(parse_page(feed_factory.page(entries)).entries)


@pytest.mark.asyncio
async def test_existing_counts_group_by_last_modified_day(session_factory, feed_factory):
    await seed_day(session_factory, feed_factory, date(2024, 1, 2), 12)
    await seed_day(session_factory, feed_factory, date(2024, 1, 3), 3)
    await seed_day(session_factory, feed_factory, date(2024, 2, 1), 1)

    counts = await existing_counts_by_day(session_factory, date(2024, 1, 1), date(2024, 1, 31))

    assert counts == {date(2024, 1, 2): 12, date(2024, 1, 3): 3}
    assert await latest_ingested_day(session_factory) == date(2024, 2, 1)


@pytest.mark.asyncio
async def test_gap_fill_starts_each_day_at_its_page_boundary(session_factory, feed_factory):
    await seed_day(session_factory, feed_factory, date(2024, 1, 2), 12)
    await seed_day(session_factory, feed_factory, date(2024, 1, 3), 3)

    tasks = await BackfillOrchestrator(session_factory).plan(
        date(2024, 1, 1), date(2024, 1, 4), BackfillMode.GAP_FILL
    )

    assert [(t.day, t.start_offset) for t in tasks] == [
        (date(2024, 1, 1), 0),
        (date(2024, 1, 2), 10),
        (date(2024, 1, 3), 0),
        (date(2024, 1, 4), 0),
    ]


@pytest.mark.asyncio
async def test_resume_starts_after_latest_ingested_day(session_factory, feed_factory):
    await seed_day(session_factory, feed_factory, date(2024, 1, 3), 1)

    tasks = await BackfillOrchestrator(session_factory).plan(
        date(2024, 1, 1), date(2024, 1, 5), BackfillMode.RESUME
    )

    assert [t.day for t in tasks] == [date(2024, 1, 4), date(2024, 1, 5)]


@pytest.mark.asyncio
async def test_backfill_runs_the_feed_pipeline_per_day(
    session_factory, feed_factory, mock_fetcher_factory, tmp_path
):
    def handler(request: httpx.Request) -> httpx.Response:
        query = request.url.params["q"]
        if "2024/01/02" in query:
            return httpx.Response(503, content=b"Service Unavailable")
        body = feed_factory.page([feed_factory.entry(title=f"Award {query}")])
        return httpx.Response(200, content=body.encode("utf-8"))

    orchestrator = BackfillOrchestrator(
        session_factory,
        fetcher=mock_fetcher_factory(handler),
        threads=1,
        job_name="backfill_test",
        lock_dir=str(tmp_path),
    )

    summary = await orchestrator.run(date(2024, 1, 1), date(2024, 1, 3))

    assert summary.status == JobStatus.PARTIAL
    assert summary.records_saved == 2
    assert list(summary.failed_dates) == [date(2024, 1, 2)]
    async with session_factory() as session:
        stored = (await session.execute(select(func.count(ContractAction.id)))).scalar()
    assert stored == 2
