"""
API endpoint tests
"""

from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio

from api.dependencies import get_db
from api.main import app
from ingestion.extractors.atom_parser import parse_page
from ingestion.job_tracker import JobTrackerStore
from ingestion.loaders.batch_writer import BatchWriter


@pytest_asyncio.fixture
async def client(session_factory):
    """Create test client with database override"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health_endpoint_database_connected(client):
    """Test health endpoint returns database status"""
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()

    assert data["status"] == "healthy"
    assert data["database_connected"] is True
    assert data["jobs"] == []


@pytest.mark.asyncio
async def test_health_reports_failed_job_as_degraded(client, session_factory):
    store = JobTrackerStore(session_factory, "fpds_daily_ingestion")
    await store.claim(datetime(2024, 1, 16, 2, 0, tzinfo=timezone.utc))
    await store.set_cursor("https://www.fpds.gov/ezsearch/FEEDS/ATOM?start=20")
    await store.fail("Error: feed unavailable")

    response = await client.get("/health")

    data = response.json()
    assert data["status"] == "degraded"
    assert len(data["jobs"]) == 1
    job = data["jobs"][0]
    assert job["job_name"] == "fpds_daily_ingestion"
    assert job["status"] == "failed"
    assert job["next_page_url"].endswith("start=20")
    assert job["notes"] == "Error: feed unavailable"


@pytest.mark.asyncio
async def test_stats_endpoint(client, session_factory, feed_factory):
    page = feed_factory.page([
        feed_factory.entry(title="Award A", content=feed_factory.award(piid="A1")),
        feed_factory.entry(title="IDV B", content=feed_factory.idv()),
    ])
    await BatchWriter(session_factory).write(parse_page(page).entries)

    response = await client.get("/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["total_contract_actions"] == 2
    assert data["contract_actions_by_record_type"] == {"award": 1, "IDV": 1}
    assert data["dimension_counts"]["vendors"] == 2
    assert data["vendor_details"] == 2
    assert data["treasury_accounts"] == 1
    assert data["latest_fpds_last_modified"].startswith("2024-01-15T11:00:00")


@pytest.mark.asyncio
async def test_root_lists_endpoints(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert set(response.json()["endpoints"]) == {"health", "stats"}
