"""
Time-related utilities for the application.

All timestamps are generated in UTC and serialized using
ISO-8601 format with timezone information so they compare
correctly as strings in DynamoDB.
"""

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Return current UTC time in ISO-8601 format.

    Example:
        2024-01-15T10:42:31.123456+00:00
    """
    return utc_now().isoformat()


def unix_millis() -> int:
    """Return milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def seconds_since(timestamp: str) -> float:
    """Return seconds elapsed since an ISO-8601 timestamp."""
    then = datetime.fromisoformat(timestamp)
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    return (utc_now() - then).total_seconds()
