"""
Exclusive per-job process lock (``<LOCK_DIR>/<job_name>.lock``).
"""

import fcntl
import os
import tempfile
from pathlib import Path
from typing import Optional

from core.config import settings
from core.exceptions import JobLockError
import logging

logger = logging.getLogger(__name__)


class JobLock:
    """
    Non-blocking ``flock`` held for the lifetime of one run.

    The kernel drops the lock when the process dies, so a crashed run never
    leaves a stale lock behind; recovery is driven by the tracker row.
    """

    def __init__(self, job_name: str, lock_dir: Optional[str] = None):
        directory = Path(lock_dir or settings.LOCK_DIR or tempfile.gettempdir())
        self.path = directory / f"{job_name}.lock"
        self.job_name = job_name
        self._handle = None

    @property
    def locked(self) -> bool:
        return self._handle is not None

    def acquire(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.path, "a+")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            handle.close()
            raise JobLockError(
                f"Job {self.job_name} is already running",
                context={"job_name": self.job_name, "lock_file": str(self.path)},
                original_exception=e,
            )

        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()))
        handle.flush()
        self._handle = handle
        logger.debug(f"Acquired lock {self.path}")

    def release(self):
        if self._handle is None:
            return
        fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        self._handle.close()
        self._handle = None
        logger.debug(f"Released lock {self.path}")

    def __enter__(self) -> "JobLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
