"""US equity market calendar helpers.

The tracked instruments list on a US exchange, so "today" and "is this a
trading day" are always answered in US/Eastern time. Exchange holidays are
not modelled; a holiday simply shows up as a weekday the providers never
return a bar for.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

EASTERN = ZoneInfo("America/New_York")


def now_eastern() -> datetime:
    """Current wall-clock time on the exchange."""
    return datetime.now(EASTERN)


def today_eastern(now: datetime | None = None) -> date:
    """Exchange-local calendar date for ``now`` (default: current time)."""
    if now is None:
        return now_eastern().date()
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(EASTERN).date()


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def eastern_date_from_timestamp(ts: int | float) -> date:
    """Convert a Unix timestamp to the exchange-local calendar date."""
    return datetime.fromtimestamp(ts, tz=EASTERN).date()


def weekdays_between(start: date, end: date) -> list[date]:
    """All Monday-Friday dates in [start, end], ascending."""
    days: list[date] = []
    current = start
    while current <= end:
        if not is_weekend(current):
            days.append(current)
        current += timedelta(days=1)
    return days
