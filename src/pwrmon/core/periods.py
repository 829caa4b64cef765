"""Resolution of named statistics periods into concrete time windows."""

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

PERIODS = ("today", "week", "month", "year")

Granularity = Literal["hour", "day", "month"]
GRANULARITIES: tuple[Granularity, ...] = ("hour", "day", "month")


@dataclass(frozen=True)
class DateRange:
    """Half-open time window ``[start, end)``."""

    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, datetime]:
        return {"start": self.start, "end": self.end}


def local_midnight(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def today_range(now: datetime | None = None) -> DateRange:
    """The current local day, midnight to next midnight."""
    start = local_midnight(now or datetime.now())
    return DateRange(start=start, end=start + timedelta(days=1))


def subtract_months(moment: datetime, months: int) -> datetime:
    """Move back whole calendar months, clamping the day to the target month's length."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def resolve_period(period: str | None, now: datetime | None = None) -> DateRange:
    """Turn a period name into a window ending now.

    Unrecognized names fall back to ``today``.

    Args:
        period: One of today, week, month, year.
        now: Reference time, defaults to the current local time.

    Returns:
        The resolved window.
    """
    now = now or datetime.now()

    if period == "week":
        start = now - timedelta(days=7)
    elif period == "month":
        start = subtract_months(now, 1)
    elif period == "year":
        start = subtract_months(now, 12)
    else:
        start = local_midnight(now)

    return DateRange(start=start, end=now)
