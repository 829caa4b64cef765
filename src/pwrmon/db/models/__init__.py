"""ORM models for Power Monitor."""

from pwrmon.db.models.device import Device
from pwrmon.db.models.reading import PowerReading
from pwrmon.db.models.user import User

__all__ = [
    "Device",
    "PowerReading",
    "User",
]
