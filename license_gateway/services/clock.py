"""Request clock.

The API layer reads the clock exactly once per request and passes that
instant down, so every rule evaluated within one request sees the same
``now`` and a subscription cannot cross the refund boundary mid-request.
"""

from datetime import datetime, timezone
from typing import Optional


class Clock:
    """Wall clock returning timezone-aware UTC instants."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock pinned to one instant. Used for tests and replaying incidents."""

    def __init__(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._instant = instant

    def now(self) -> datetime:
        return self._instant


_clock: Optional[Clock] = None


def get_clock() -> Clock:
    """Get the global clock instance."""
    global _clock
    if _clock is None:
        _clock = Clock()
    return _clock
