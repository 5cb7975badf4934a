"""
Logging configuration
"""

import logging
import sys
from typing import Any, MutableMapping, Optional, Tuple, Union

from core.config import settings

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


def setup_logging(level: Optional[str] = None):
    """Configure application logging"""
    
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    
    # Set SQLAlchemy and httpx logging to WARNING to reduce noise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    
    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {level_name} level")


class ContextAdapter(logging.LoggerAdapter):
    """Prefixes every message with the bound ``[key=value ...]`` context."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        if not self.extra:
            return msg, kwargs
        prefix = " ".join(f"{k}={v}" for k, v in self.extra.items())
        return f"[{prefix}] {msg}", kwargs


def bind_logger(logger: LoggerLike, **context: Any) -> ContextAdapter:
    """
    Return an adapter carrying ``context``.

    Binding onto an existing adapter merges the contexts so a backfill day
    logger keeps the job name it was derived from.
    """
    if isinstance(logger, logging.LoggerAdapter):
        merged = dict(logger.extra or {})
        merged.update(context)
        return ContextAdapter(logger.logger, merged)
    return ContextAdapter(logger, dict(context))
