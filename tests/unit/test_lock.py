"""
Unit tests for the per-job process lock
"""

import os

import pytest

from core.exceptions import JobLockError
from ingestion.lock import JobLock


def test_lock_file_holds_pid(tmp_path):
    with JobLock("daily", lock_dir=str(tmp_path)) as lock:
        assert lock.locked
        assert lock.path == tmp_path / "daily.lock"
        assert lock.path.read_text() == str(os.getpid())
    assert not lock.locked


def test_second_holder_is_rejected(tmp_path):
    first = JobLock("daily", lock_dir=str(tmp_path))
    second = JobLock("daily", lock_dir=str(tmp_path))
    first.acquire()
    try:
        with pytest.raises(JobLockError):
            second.acquire()
        assert not second.locked
    finally:
        first.release()


def test_lock_is_reusable_after_release(tmp_path):
    lock = JobLock("daily", lock_dir=str(tmp_path))
    lock.acquire()
    lock.release()

    again = JobLock("daily", lock_dir=str(tmp_path))
    again.acquire()
    again.release()


def test_jobs_lock_independently(tmp_path):
    with JobLock("daily", lock_dir=str(tmp_path)):
        with JobLock("backfill", lock_dir=str(tmp_path)) as other:
            assert other.locked
