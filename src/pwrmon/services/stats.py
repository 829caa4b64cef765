"""Status and statistics views composed from the reading store and aggregator."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from pwrmon.config.settings import Settings
from pwrmon.core.aggregator import lifetime_stats, today_stats, window_stats
from pwrmon.core.cost import estimate_cost
from pwrmon.core.periods import resolve_period
from pwrmon.db.models.device import Device
from pwrmon.db.repositories.device import DeviceRepository
from pwrmon.db.repositories.reading import ReadingRepository


def device_summary(device: Device) -> dict[str, Any]:
    return {
        "id": device.device_id,
        "name": device.name,
        "location": device.location,
        "is_active": device.is_active,
    }


def device_record(device: Device, include_api_key: bool = True) -> dict[str, Any]:
    """Full device row as returned by the management API."""
    data = {
        "id": device.id,
        "device_id": device.device_id,
        "name": device.name,
        "description": device.description,
        "location": device.location,
        "is_active": device.is_active,
        "created_at": device.created_at,
        "updated_at": device.updated_at,
    }
    if include_api_key:
        data["api_key"] = device.api_key
    return data


class StatsService:
    """Builds status and statistics payloads for devices."""

    def __init__(
        self,
        session: Session,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.session = session
        self.settings = settings
        self.clock = clock
        self.devices = DeviceRepository(session)
        self.readings = ReadingRepository(session, clock=clock)

    def _today_with_cost(self, device_id: str, now: datetime) -> dict[str, Any]:
        stats = today_stats(self.session, device_id, now=now)
        return {
            **stats.to_dict(),
            "estimated_cost": estimate_cost(stats.total_energy, self.settings.energy_tariff),
        }

    def device_status(self, device: Device) -> dict[str, Any]:
        """Status payload for a device asking about itself."""
        now = self.clock()
        latest = self.readings.get_latest(device.device_id)
        return {
            "device": device_summary(device),
            "latest_reading": latest.to_dict() if latest else None,
            "today_stats": self._today_with_cost(device.device_id, now),
            "server_time": now,
        }

    def device_detail(self, id: int) -> dict[str, Any]:
        """Device record with lifetime and today statistics.

        Raises:
            NotFoundError: If the device does not exist.
        """
        device = self.devices.get_by_id(id)
        now = self.clock()
        return {
            **device_record(device),
            "stats": {
                **lifetime_stats(self.session, device.device_id).to_dict(),
                "today": self._today_with_cost(device.device_id, now),
            },
        }

    def device_stats(self, id: int, period: str = "today") -> dict[str, Any]:
        """Statistics for a named period alongside the today snapshot.

        Raises:
            NotFoundError: If the device does not exist.
        """
        device = self.devices.get_by_id(id)
        now = self.clock()
        window = resolve_period(period, now)
        stats = window_stats(self.session, device.device_id, window.start, window.end)
        return {
            "device_id": device.device_id,
            "device_name": device.name,
            "period": period,
            "date_range": window.to_dict(),
            "stats": {
                **stats.to_dict(),
                "estimated_cost": estimate_cost(stats.total_energy, self.settings.energy_tariff),
            },
            "today": self._today_with_cost(device.device_id, now),
        }

    def device_readings(self, id: int, period: str = "today") -> dict[str, Any]:
        """Raw readings of a device over a named period, oldest first.

        Raises:
            NotFoundError: If the device does not exist.
        """
        device = self.devices.get_by_id(id)
        window = resolve_period(period, self.clock())
        readings = self.readings.get_by_device(device.device_id, window.start, window.end)
        return {
            "device_id": device.device_id,
            "device_name": device.name,
            "period": period,
            "date_range": window.to_dict(),
            "readings": [reading.to_dict() for reading in readings],
        }
