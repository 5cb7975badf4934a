"""
Custom exceptions for the FPDS ingestion pipeline with structured error context.

Every exception carries a human-readable message plus a context dict so the
job tracker notes and log lines can say which URL, page or day failed.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   ├── FetchError
    │   │   ├── NetworkError (retryable)
    │   │   └── FeedRequestError (non-retryable)
    │   └── FeedParseError
    ├── LoadError
    │   └── BatchWriteError
    ├── JobTrackerError
    ├── JobLockError
    ├── RunTimeoutError
    └── RetryableError / NonRetryableError (mixins)

Per-entry problems (malformed entry XML, missing title, unresolvable vendor)
are reported through result objects by the parser and writer, not raised.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all ingestion errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (url, day, job name, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        visible = {k: v for k, v in self.context.items() if k != "error_timestamp"}
        if visible:
            context_str = ", ".join(f"{k}={v}" for k, v in visible.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts and connection resets
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 5xx)
    """
    pass


class NonRetryableError(ETLException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Rejected requests (HTTP 4xx)
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for feed retrieval and parsing failures."""
    pass


class FetchError(ExtractionError):
    """
    Terminal failure to retrieve a feed page.

    Context should include:
        - url: The feed URL that failed
        - attempts: Number of attempts made
        - status_code: HTTP status code (if applicable)
    """
    pass


class NetworkError(RetryableError, FetchError):
    """Transient network or server failure for a single attempt."""
    pass


class FeedRequestError(NonRetryableError, FetchError):
    """The feed rejected the request (HTTP 4xx other than 408/429)."""
    pass


class FeedParseError(ExtractionError):
    """
    Raised when a feed page cannot be read as XML at all.

    Context should include:
        - url: URL of the page (if known)
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for data loading failures."""
    pass


class BatchWriteError(LoadError):
    """
    A page batch could not be persisted; its transaction was rolled back.

    Context should include:
        - stage: Writer stage that failed (dimensions, facts, children)
        - entries: Number of entries in the batch
        - table_name: Table being written (if known)
    """
    pass


# ============================================================================
# Job Control Errors
# ============================================================================

class JobTrackerError(ETLException):
    """
    Raised when the job tracker row cannot be read or moved to a new state.

    Context should include:
        - job_name: Tracker row name
        - from_status / to_status: Attempted transition
    """
    pass


class JobLockError(ETLException):
    """Another process already holds the exclusive lock for this job."""
    pass


class RunTimeoutError(ETLException):
    """The overall run exceeded its time budget."""
    pass
