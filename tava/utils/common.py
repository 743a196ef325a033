"""
Common utility functions for Tava.

Time is always read through a ``Clock`` so expiry logic can be driven by a fake
clock in tests.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)
