"""Device repository."""

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import aliased

from pwrmon.db.models.device import Device
from pwrmon.db.models.reading import PowerReading
from pwrmon.db.repositories.base import BaseRepository
from pwrmon.utils.exceptions import DuplicateKeyError, NotFoundError, ValidationError
from pwrmon.utils.validators import generate_api_key, is_valid_device_id, sanitize_string

logger = structlog.get_logger(__name__)


class _Unset:
    """Marker for a patch field that was not supplied."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass
class DevicePatch:
    """Partial update of a device's descriptive fields.

    A field left as UNSET is not touched. ``description`` and ``location``
    accept None (or an empty string) to clear the stored value; ``name`` can
    only be replaced by a non-empty value.
    """

    name: Any = UNSET
    description: Any = UNSET
    location: Any = UNSET

    def is_empty(self) -> bool:
        return all(value is UNSET for value in (self.name, self.description, self.location))


def _clean_optional(value: str | None) -> str | None:
    return sanitize_string(value) if value else None


class DeviceRepository(BaseRepository[Device]):
    """Repository for Device operations."""

    model = Device

    def create(
        self,
        device_id: str,
        name: str,
        description: str | None = None,
        location: str | None = None,
    ) -> Device:
        """Register a new device with a freshly generated API key.

        Args:
            device_id: External identifier, 8-32 alphanumeric characters.
            name: Display name.
            description: Optional free text.
            location: Optional free text.

        Returns:
            The created device.

        Raises:
            ValidationError: If the identifier or name is invalid.
            DuplicateKeyError: If the identifier is already registered.
        """
        if not device_id or not name:
            raise ValidationError("Device ID and name are required")
        if not is_valid_device_id(device_id):
            raise ValidationError(
                "Device ID must be alphanumeric and 8-32 characters long", field="device_id"
            )
        if self.find_by_device_id(device_id) is not None:
            raise DuplicateKeyError("Device ID already exists")

        device = Device(
            device_id=device_id,
            name=sanitize_string(name),
            description=_clean_optional(description),
            location=_clean_optional(location),
            api_key=generate_api_key(),
            is_active=True,
        )
        self.add(device)
        logger.info("Device created", device_id=device_id)
        return device

    def find_by_device_id(self, device_id: str) -> Device | None:
        """Get a device by its external identifier."""
        stmt = select(Device).where(Device.device_id == device_id)
        with self.translate_errors():
            return self.session.scalar(stmt)

    def find_by_api_key(self, api_key: str) -> Device | None:
        """Get a device by its API key, active or not."""
        stmt = select(Device).where(Device.api_key == api_key)
        with self.translate_errors():
            return self.session.scalar(stmt)

    def count(self) -> int:
        with self.translate_errors():
            return self.session.scalar(select(func.count(Device.id))) or 0

    def list_with_latest_readings(
        self, limit: int = 50, offset: int = 0
    ) -> list[tuple[Device, PowerReading | None]]:
        """Get devices ordered by name, each paired with its newest reading.

        "Newest" uses the same (timestamp, id) ordering as
        ``ReadingRepository.get_latest``.
        """
        candidate = aliased(PowerReading)
        latest_id = (
            select(candidate.id)
            .where(candidate.device_id == Device.device_id)
            .order_by(candidate.timestamp.desc(), candidate.id.desc())
            .limit(1)
            .correlate(Device)
            .scalar_subquery()
        )
        stmt = (
            select(Device, PowerReading)
            .outerjoin(PowerReading, PowerReading.id == latest_id)
            .order_by(Device.name, Device.id)
            .limit(limit)
            .offset(offset)
        )
        with self.translate_errors():
            return [(device, reading) for device, reading in self.session.execute(stmt).all()]

    def apply_patch(self, id: int, patch: DevicePatch) -> Device:
        """Merge a partial update into a device field by field.

        Args:
            id: Device primary key.
            patch: Fields to change.

        Returns:
            The updated device.

        Raises:
            ValidationError: If the patch changes nothing.
            NotFoundError: If the device does not exist.
        """
        if patch.is_empty() or (
            not patch.name and patch.description is UNSET and patch.location is UNSET
        ):
            raise ValidationError("No valid fields to update")

        device = self.get_by_id(id)
        if patch.name is not UNSET and patch.name:
            device.name = sanitize_string(patch.name)
        if patch.description is not UNSET:
            device.description = _clean_optional(patch.description)
        if patch.location is not UNSET:
            device.location = _clean_optional(patch.location)

        with self.translate_errors():
            self.session.flush()
        return device

    def toggle_active(self, id: int) -> Device:
        """Flip the active flag that gates ingestion."""
        device = self.get_by_id(id)
        device.is_active = not device.is_active
        with self.translate_errors():
            self.session.flush()
        logger.info("Device status toggled", device_id=device.device_id, is_active=device.is_active)
        return device

    def regenerate_api_key(self, id: int) -> Device:
        """Replace a device's API key; the old key stops working immediately."""
        device = self.get_by_id(id)
        device.api_key = generate_api_key()
        with self.translate_errors():
            self.session.flush()
        logger.info("Device API key regenerated", device_id=device.device_id)
        return device

    def delete_by_id(self, id: int) -> None:
        """Delete a device and, by cascade, all of its readings.

        Raises:
            NotFoundError: If the device does not exist.
        """
        device = self.find(id)
        if device is None:
            raise NotFoundError("Device not found")
        self.delete(device)
        logger.info("Device deleted", device_id=device.device_id)
