"""Repository classes for database operations."""

from pwrmon.db.repositories.device import DevicePatch, DeviceRepository
from pwrmon.db.repositories.reading import ReadingRepository
from pwrmon.db.repositories.user import UserRepository

__all__ = [
    "DevicePatch",
    "DeviceRepository",
    "ReadingRepository",
    "UserRepository",
]
