"""
Unit tests for the job tracker state machine
"""

from datetime import datetime, timezone

import pytest

from core.exceptions import JobTrackerError
from ingestion.job_tracker import MAX_NOTE_LENGTH, JobTrackerStore, truncate_note
from models.base import JobStatus

STARTED = datetime(2024, 1, 16, 2, 0, tzinfo=timezone.utc)
CURSOR = "https://www.fpds.gov/ezsearch/FEEDS/ATOM?FEEDNAME=PUBLIC&start=40"


class TestTransitions:
    @pytest.mark.parametrize("source", [JobStatus.IDLE, JobStatus.FAILED, JobStatus.PARTIAL])
    def test_settled_states_only_move_to_initializing(self, source):
        assert source.can_transition_to(JobStatus.INITIALIZING)
        assert not source.can_transition_to(JobStatus.RUNNING)
        assert not source.can_transition_to(JobStatus.IDLE)

    def test_running_can_finish_any_way(self):
        for target in (JobStatus.IDLE, JobStatus.FAILED, JobStatus.PARTIAL, JobStatus.RUNNING):
            assert JobStatus.RUNNING.can_transition_to(target)

    def test_initializing_cannot_finish_partial(self):
        assert JobStatus.INITIALIZING.can_transition_to(JobStatus.FAILED)
        assert not JobStatus.INITIALIZING.can_transition_to(JobStatus.PARTIAL)


def test_truncate_note():
    assert truncate_note("short") == "short"

    long = truncate_note("x" * 500)
    assert len(long) == MAX_NOTE_LENGTH
    assert long.endswith("...")


class TestJobTrackerStore:
    """Persisted tracker row"""

    @pytest.mark.asyncio
    async def test_row_is_created_idle(self, session_factory):
        tracker = await JobTrackerStore(session_factory, "daily").get()

        assert tracker.job_name == "daily"
        assert JobStatus(tracker.status) == JobStatus.IDLE
        assert tracker.records_saved == 0

    @pytest.mark.asyncio
    async def test_claim_returns_previous_state(self, session_factory):
        store = JobTrackerStore(session_factory, "daily")
        await store.claim(STARTED)
        await store.mark_running(next_page_url=CURSOR)
        await store.fail("Error: boom")

        previous = await store.claim(STARTED)

        assert previous.status == JobStatus.FAILED
        assert previous.crashed_or_failed
        assert previous.next_page_url == CURSOR
        current = await store.get()
        assert JobStatus(current.status) == JobStatus.INITIALIZING
        assert current.last_attempted_run_start_time.replace(tzinfo=timezone.utc) == STARTED

    @pytest.mark.asyncio
    async def test_crashed_running_row_counts_as_failed(self, session_factory):
        store = JobTrackerStore(session_factory, "daily")
        await store.claim(STARTED)
        await store.mark_running()

        previous = await store.claim(STARTED)

        assert previous.status == JobStatus.RUNNING
        assert previous.crashed_or_failed

    @pytest.mark.asyncio
    async def test_illegal_transition_raises(self, session_factory):
        store = JobTrackerStore(session_factory, "daily")

        with pytest.raises(JobTrackerError) as exc_info:
            await store.mark_running()

        assert exc_info.value.context["from_status"] == "idle"
        assert exc_info.value.context["to_status"] == "running"

    @pytest.mark.asyncio
    async def test_failure_keeps_cursor_and_truncates_note(self, session_factory):
        store = JobTrackerStore(session_factory, "daily")
        await store.claim(STARTED)
        await store.set_cursor(CURSOR)

        tracker = await store.fail("Error: " + "x" * 1000, records_saved=7)

        assert JobStatus(tracker.status) == JobStatus.FAILED
        assert tracker.next_page_url == CURSOR
        assert len(tracker.notes) == MAX_NOTE_LENGTH
        assert tracker.records_saved == 7

    @pytest.mark.asyncio
    async def test_success_clears_cursor(self, session_factory):
        store = JobTrackerStore(session_factory, "daily")
        await store.claim(STARTED)
        await store.set_cursor(CURSOR)

        tracker = await store.succeed(STARTED, records_saved=12)

        assert JobStatus(tracker.status) == JobStatus.IDLE
        assert tracker.next_page_url is None
        assert tracker.records_saved == 12
        assert "Saved 12 new records" in tracker.notes

        previous = await store.claim(STARTED)
        assert not previous.crashed_or_failed
        assert previous.last_successful_run_start_time == STARTED

    @pytest.mark.asyncio
    async def test_partial_keeps_failed_dates(self, session_factory):
        store = JobTrackerStore(session_factory, "backfill")
        await store.claim(STARTED)
        await store.mark_running()

        await store.finish_partial(["2024-01-03", "2024-01-05"], 40, "2 days failed")

        previous = await store.claim(STARTED)
        assert previous.status == JobStatus.PARTIAL
        assert previous.failed_dates == ["2024-01-03", "2024-01-05"]
