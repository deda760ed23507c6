"""
Injectable clocks.

All timestamps in the referral engine are naive UTC, matching how the
DateTime columns are stored.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Clock:
    """Source of the current time."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return utcnow()


class FixedClock(Clock):
    """Clock pinned to one instant. Used by tests and previews."""

    def __init__(self, instant: datetime):
        self.instant = as_naive_utc(instant)

    def now(self) -> datetime:
        return self.instant

    def __repr__(self):
        return f'<FixedClock {self.instant.isoformat()}>'
