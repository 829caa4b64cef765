"""Aggregate statistics over a device's readings.

Sums, averages and extremes are computed by the database over the half-open
window ``[start, end)``. Every aggregate of an empty window is 0 so callers
can render an idle device without special cases.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from pwrmon.core.periods import GRANULARITIES, Granularity, today_range
from pwrmon.db.models.reading import PowerReading
from pwrmon.db.repositories.reading import ReadingRepository
from pwrmon.utils.exceptions import StoreUnavailableError


@dataclass
class WindowStats:
    """Energy and power summary of one time window."""

    total_energy: float = 0.0
    avg_power: float = 0.0
    peak_power: float = 0.0
    min_power: float = 0.0
    reading_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TodayStats(WindowStats):
    """Window stats for the current local day plus electrical averages."""

    avg_voltage: float = 0.0
    avg_current: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        # Legacy dashboards read the count under this key
        data["readings_count"] = data.pop("reading_count")
        return data


@dataclass
class LifetimeStats(WindowStats):
    """Stats over every stored reading of a device."""

    first_reading: datetime | None = None
    last_reading: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_readings"] = data.pop("reading_count")
        return data


@dataclass
class PeriodBucket:
    """Averages for one hour, day or month bucket."""

    period: str
    avg_voltage: float
    avg_current: float
    avg_power: float
    total_energy: float
    reading_count: int
    period_start: datetime
    period_end: datetime


def _number(value: Any) -> float:
    return float(value) if value is not None else 0.0


def _aggregate(session: Session, device_id: str, *columns: Any, start=None, end=None) -> Any:
    stmt = select(*columns).where(PowerReading.device_id == device_id)
    if start is not None:
        stmt = stmt.where(PowerReading.timestamp >= start)
    if end is not None:
        stmt = stmt.where(PowerReading.timestamp < end)
    try:
        return session.execute(stmt).one()
    except OperationalError as e:
        raise StoreUnavailableError("Database unavailable") from e


_BASE_COLUMNS = (
    func.count(PowerReading.id),
    func.coalesce(func.sum(PowerReading.energy), 0),
    func.coalesce(func.avg(PowerReading.power), 0),
    func.coalesce(func.max(PowerReading.power), 0),
    func.coalesce(func.min(PowerReading.power), 0),
)


def window_stats(session: Session, device_id: str, start: datetime, end: datetime) -> WindowStats:
    """Summarize a device's readings in ``[start, end)``.

    Args:
        session: Database session.
        device_id: External device identifier.
        start: Inclusive window start.
        end: Exclusive window end.

    Returns:
        Window statistics, all zero when there are no readings.
    """
    count, energy, avg_power, peak, low = _aggregate(
        session, device_id, *_BASE_COLUMNS, start=start, end=end
    )
    return WindowStats(
        total_energy=_number(energy),
        avg_power=_number(avg_power),
        peak_power=_number(peak),
        min_power=_number(low),
        reading_count=int(count or 0),
    )


def today_stats(session: Session, device_id: str, now: datetime | None = None) -> TodayStats:
    """Summarize the current local day, including average voltage and current."""
    window = today_range(now)
    count, energy, avg_power, peak, low, avg_voltage, avg_current = _aggregate(
        session,
        device_id,
        *_BASE_COLUMNS,
        func.coalesce(func.avg(PowerReading.voltage), 0),
        func.coalesce(func.avg(PowerReading.current), 0),
        start=window.start,
        end=window.end,
    )
    return TodayStats(
        total_energy=_number(energy),
        avg_power=_number(avg_power),
        peak_power=_number(peak),
        min_power=_number(low),
        reading_count=int(count or 0),
        avg_voltage=_number(avg_voltage),
        avg_current=_number(avg_current),
    )


def lifetime_stats(session: Session, device_id: str) -> LifetimeStats:
    """Summarize every reading a device ever submitted."""
    count, energy, avg_power, peak, low, first, last = _aggregate(
        session,
        device_id,
        *_BASE_COLUMNS,
        func.min(PowerReading.timestamp),
        func.max(PowerReading.timestamp),
    )
    return LifetimeStats(
        total_energy=_number(energy),
        avg_power=_number(avg_power),
        peak_power=_number(peak),
        min_power=_number(low),
        reading_count=int(count or 0),
        first_reading=first,
        last_reading=last,
    )


def _bucket_key(timestamp: datetime, granularity: Granularity) -> str:
    if granularity == "hour":
        return timestamp.strftime("%Y-%m-%d %H:00:00")
    if granularity == "day":
        return timestamp.strftime("%Y-%m-%d")
    if granularity == "month":
        return timestamp.strftime("%Y-%m-01")
    raise ValueError(f"Invalid period: {granularity}")


def grouped_averages(
    session: Session,
    device_id: str,
    granularity: Granularity,
    start: datetime,
    end: datetime,
) -> list[PeriodBucket]:
    """Group readings in ``[start, end)`` into hour, day or month buckets.

    Bucketing runs over the ordered range scan so it behaves the same on
    every database backend.

    Args:
        session: Database session.
        device_id: External device identifier.
        granularity: Bucket size.
        start: Inclusive window start.
        end: Exclusive window end.

    Returns:
        Buckets in chronological order.

    Raises:
        ValueError: If the granularity is unknown.
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Invalid period: {granularity}")

    readings = ReadingRepository(session).get_by_device(device_id, start, end)

    groups: dict[str, list[PowerReading]] = {}
    for reading in readings:
        groups.setdefault(_bucket_key(reading.timestamp, granularity), []).append(reading)

    buckets = []
    for key, rows in groups.items():
        count = len(rows)
        buckets.append(
            PeriodBucket(
                period=key,
                avg_voltage=sum(r.voltage for r in rows) / count,
                avg_current=sum(r.current for r in rows) / count,
                avg_power=sum(r.power for r in rows) / count,
                total_energy=sum(r.energy for r in rows),
                reading_count=count,
                period_start=rows[0].timestamp,
                period_end=rows[-1].timestamp,
            )
        )
    return buckets
