"""
Scalar value parsers for FPDS feed text.

Every parser returns ``None`` for "absent": empty input and input that
cannot be parsed are treated the same way and never raise. Callers drop
``None`` values instead of defaulting them to zero or the epoch.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional
import math
import re

_CURRENCY_CHARS = re.compile(r"[$,]")

TRUE_VALUES = frozenset({"true", "t", "yes", "y", "1"})
FALSE_VALUES = frozenset({"false", "f", "no", "n", "0"})


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 style timestamp.

    Accepts ``T`` or space separators, a trailing ``Z`` and bare dates.
    Naive values are taken as UTC so the result is always timezone-aware.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = _clean(value)
        if text is None:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Any) -> Optional[date]:
    """Parse the calendar date of a timestamp or date string."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


def parse_float(value: Any) -> Optional[float]:
    """Parse a dollar amount: ``"$1,234.50"`` -> ``1234.5``."""
    text = _clean(value)
    if text is None:
        return None
    try:
        number = float(_CURRENCY_CHARS.sub("", text))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_int(value: Any) -> Optional[int]:
    """Parse a whole count such as ``numberOfOffersReceived``."""
    number = parse_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def parse_bool(value: Any) -> Optional[bool]:
    """Tri-state boolean: true/t/yes/y/1, false/f/no/n/0, otherwise None."""
    if isinstance(value, bool):
        return value
    text = _clean(value)
    if text is None:
        return None
    lowered = text.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


def iso8601_millis(value: datetime) -> str:
    """Render ``2024-01-15T10:00:00.000+00:00`` (millisecond precision)."""
    return value.isoformat(timespec="milliseconds")
