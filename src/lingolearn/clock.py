"""Clock providers and study-day arithmetic."""
from datetime import UTC, date, datetime, time, timedelta
from typing import Optional, Protocol, Tuple

from lingolearn.config import settings


class Clock(Protocol):
    """Anything that can tell the current moment."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock that only moves when told to. Used for time travel in tests."""

    def __init__(self, now: datetime):
        self._now = ensure_utc(now)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta built from kwargs (days=, hours=, ...)."""
        self._now = self._now + timedelta(**kwargs)
        return self._now


def ensure_utc(moment: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def study_day(moment: datetime, day_start_hour: Optional[int] = None) -> date:
    """Calendar day a moment belongs to, in the configured time zone.

    A day starts at ``day_start_hour`` local time, so late-night study before
    that hour still counts toward the previous day.
    """
    if day_start_hour is None:
        day_start_hour = settings.calendar.day_start_hour
    local = ensure_utc(moment).astimezone(settings.calendar.tzinfo)
    return (local - timedelta(hours=day_start_hour)).date()


def day_start(day: date, day_start_hour: Optional[int] = None) -> datetime:
    """First UTC moment belonging to the given study day."""
    if day_start_hour is None:
        day_start_hour = settings.calendar.day_start_hour
    local = datetime.combine(day, time(hour=day_start_hour), tzinfo=settings.calendar.tzinfo)
    return local.astimezone(UTC)


def day_bounds(day: date, day_start_hour: Optional[int] = None) -> Tuple[datetime, datetime]:
    """Half-open [start, end) UTC bounds of a study day."""
    return day_start(day, day_start_hour), day_start(day + timedelta(days=1), day_start_hour)
