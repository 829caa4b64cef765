"""Power reading repository."""

from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pwrmon.core.normalizer import ReadingValues
from pwrmon.db.models.device import Device
from pwrmon.db.models.reading import PowerReading
from pwrmon.db.repositories.base import BaseRepository
from pwrmon.utils.exceptions import NotFoundError


class ReadingRepository(BaseRepository[PowerReading]):
    """Append-only store of power readings keyed by device identifier."""

    model = PowerReading

    def __init__(self, session: Session, clock: Callable[[], datetime] = datetime.now) -> None:
        """Initialize repository.

        Args:
            session: SQLAlchemy session.
            clock: Source of server timestamps for new readings.
        """
        super().__init__(session)
        self.clock = clock

    def create(self, device_id: str, reading: ReadingValues) -> PowerReading:
        """Append one normalized reading for a device.

        Args:
            device_id: External device identifier.
            reading: Normalized reading values.

        Returns:
            The stored reading with its id and timestamp assigned.

        Raises:
            NotFoundError: If the device does not exist.
        """
        with self.translate_errors():
            exists = self.session.scalar(select(Device.id).where(Device.device_id == device_id))
        if exists is None:
            raise NotFoundError(f"Device {device_id} not found")

        row = PowerReading(
            device_id=device_id,
            voltage=reading.voltage,
            current=reading.current,
            power=reading.power,
            energy=reading.energy,
            power_factor=reading.power_factor,
            frequency=reading.frequency,
            temperature=reading.temperature,
            humidity=reading.humidity,
            timestamp=self.clock(),
        )
        with self.translate_errors():
            try:
                self.session.add(row)
                self.session.flush()
            except IntegrityError as e:
                # Device deleted between the check and the insert
                self.session.rollback()
                raise NotFoundError(f"Device {device_id} not found") from e
        return row

    def get_by_device(
        self,
        device_id: str,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[PowerReading]:
        """Get readings for a device in ascending time order.

        Args:
            device_id: External device identifier.
            start_time: Optional inclusive lower bound.
            end_time: Optional exclusive upper bound.

        Returns:
            List of readings, empty if none match.
        """
        stmt = select(PowerReading).where(PowerReading.device_id == device_id)

        if start_time is not None:
            stmt = stmt.where(PowerReading.timestamp >= start_time)
        if end_time is not None:
            stmt = stmt.where(PowerReading.timestamp < end_time)

        stmt = stmt.order_by(PowerReading.timestamp, PowerReading.id)
        with self.translate_errors():
            return list(self.session.scalars(stmt).all())

    def get_latest(self, device_id: str) -> PowerReading | None:
        """Get the latest reading for a device.

        Args:
            device_id: External device identifier.

        Returns:
            Latest reading or None.
        """
        stmt = (
            select(PowerReading)
            .where(PowerReading.device_id == device_id)
            .order_by(PowerReading.timestamp.desc(), PowerReading.id.desc())
            .limit(1)
        )
        with self.translate_errors():
            return self.session.scalar(stmt)

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete readings of all devices older than a cutoff.

        Args:
            cutoff: Readings strictly before this time are removed.

        Returns:
            Number of readings deleted.
        """
        stmt = delete(PowerReading).where(PowerReading.timestamp < cutoff)
        with self.translate_errors():
            result = self.session.execute(stmt)
            self.session.flush()
        return result.rowcount or 0

    def prune(self, older_than_days: int = 365) -> int:
        """Apply the retention policy relative to the repository clock."""
        return self.delete_older_than(self.clock() - timedelta(days=older_than_days))
