"""
Time helpers.

All timestamps are timezone-aware UTC so they compare cleanly with the
timestamptz values PostgREST returns.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
