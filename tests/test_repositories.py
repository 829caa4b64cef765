"""Tests for repository classes."""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from pwrmon.core.normalizer import ReadingValues
from pwrmon.db.models import PowerReading
from pwrmon.db.repositories import DevicePatch, DeviceRepository, ReadingRepository, UserRepository
from pwrmon.utils.exceptions import DuplicateKeyError, NotFoundError, ValidationError

from conftest import FakeClock

VALUES = ReadingValues(voltage=230.0, current=5.2, power=1196.0, energy=12.345)


class TestDeviceRepository:
    """Test DeviceRepository."""

    def test_create_generates_api_key(self, test_session):
        """Test a new device is active and gets a 32 character key."""
        device = DeviceRepository(test_session).create("ESP32LIVING01", "Living Room")

        assert device.id is not None
        assert device.is_active is True
        assert len(device.api_key) == 32
        assert device.api_key.isalnum()

    def test_create_sanitizes_text(self, test_session):
        device = DeviceRepository(test_session).create(
            "ESP32LIVING01", "  <b>Living</b> ", location=" Lounge ", description=""
        )

        assert device.name == "bLiving/b"
        assert device.location == "Lounge"
        assert device.description is None

    @pytest.mark.parametrize("device_id", ["short", "has-dash-1234", "x" * 33, ""])
    def test_create_rejects_bad_identifier(self, test_session, device_id):
        with pytest.raises(ValidationError):
            DeviceRepository(test_session).create(device_id, "Name")

    def test_create_duplicate(self, test_session, sample_device):
        with pytest.raises(DuplicateKeyError, match="Device ID already exists"):
            DeviceRepository(test_session).create(sample_device.device_id, "Copy")

    def test_find_by_device_id(self, test_session, sample_device):
        repo = DeviceRepository(test_session)

        assert repo.find_by_device_id(sample_device.device_id).id == sample_device.id
        assert repo.find_by_device_id("UNKNOWN00000") is None

    def test_find_by_api_key(self, test_session, sample_device):
        repo = DeviceRepository(test_session)

        assert repo.find_by_api_key(sample_device.api_key).id == sample_device.id
        assert repo.find_by_api_key("nope") is None

    def test_get_by_id_not_found(self, test_session):
        with pytest.raises(NotFoundError):
            DeviceRepository(test_session).get_by_id(9999)

    def test_list_and_count(self, test_session):
        repo = DeviceRepository(test_session)
        for i in range(3):
            repo.create(f"ESP32DEVICE{i:02d}", f"Device {i}")

        first_page = repo.list_with_latest_readings(limit=2)
        last_page = repo.list_with_latest_readings(limit=2, offset=2)

        assert repo.count() == 3
        assert [device.name for device, _ in first_page] == ["Device 0", "Device 1"]
        assert [device.name for device, _ in last_page] == ["Device 2"]

    def test_list_with_latest_readings(self, test_session, sample_device):
        """Test each device is paired with its newest reading or None."""
        repo = DeviceRepository(test_session)
        idle = repo.create("ESP32IDLE0001", "Attic")
        readings = ReadingRepository(test_session, clock=FakeClock(datetime(2024, 6, 15, 8)))
        readings.create(sample_device.device_id, VALUES)
        newest = readings.create(sample_device.device_id, VALUES)

        rows = {
            device.device_id: reading for device, reading in repo.list_with_latest_readings()
        }

        assert rows[idle.device_id] is None
        assert rows[sample_device.device_id].id == newest.id

    def test_latest_reading_follows_timestamp(self, test_session, sample_device):
        """Test the listed reading matches get_latest when ids and times disagree."""
        clock = FakeClock(datetime(2024, 6, 15, 9))
        readings = ReadingRepository(test_session, clock=clock)
        later = readings.create(sample_device.device_id, VALUES)
        clock.now = datetime(2024, 6, 15, 8)
        readings.create(sample_device.device_id, VALUES)

        [(_, listed)] = DeviceRepository(test_session).list_with_latest_readings()

        assert listed.id == later.id
        assert readings.get_latest(sample_device.device_id).id == later.id

    def test_apply_patch_merges_fields(self, test_session, sample_device):
        repo = DeviceRepository(test_session)

        device = repo.apply_patch(sample_device.id, DevicePatch(location="Basement"))

        assert device.location == "Basement"
        assert device.name == "Kitchen Meter"
        assert device.description == "Main panel"

    def test_apply_patch_clears_optional(self, test_session, sample_device):
        device = DeviceRepository(test_session).apply_patch(
            sample_device.id, DevicePatch(description=None)
        )
        assert device.description is None

    @pytest.mark.parametrize("patch", [DevicePatch(), DevicePatch(name="")])
    def test_apply_patch_nothing_to_update(self, test_session, sample_device, patch):
        with pytest.raises(ValidationError, match="No valid fields to update"):
            DeviceRepository(test_session).apply_patch(sample_device.id, patch)

    def test_apply_patch_not_found(self, test_session):
        with pytest.raises(NotFoundError):
            DeviceRepository(test_session).apply_patch(404, DevicePatch(name="Ghost"))

    def test_toggle_active(self, test_session, sample_device):
        repo = DeviceRepository(test_session)

        assert repo.toggle_active(sample_device.id).is_active is False
        assert repo.toggle_active(sample_device.id).is_active is True

    def test_regenerate_api_key(self, test_session, sample_device):
        repo = DeviceRepository(test_session)
        old_key = sample_device.api_key

        device = repo.regenerate_api_key(sample_device.id)

        assert device.api_key != old_key
        assert repo.find_by_api_key(old_key) is None

    def test_delete_cascades_readings(self, test_session, sample_device):
        """Test deleting a device removes its readings."""
        ReadingRepository(test_session).create(sample_device.device_id, VALUES)
        repo = DeviceRepository(test_session)

        repo.delete_by_id(sample_device.id)
        repo.commit()

        assert repo.find(sample_device.id) is None
        assert test_session.scalar(select(func.count(PowerReading.id))) == 0

    def test_delete_not_found(self, test_session):
        with pytest.raises(NotFoundError):
            DeviceRepository(test_session).delete_by_id(12345)


class TestReadingRepository:
    """Test ReadingRepository."""

    def test_create_assigns_server_timestamp(self, test_session, sample_device):
        clock = FakeClock(datetime(2024, 6, 15, 12, 30))

        row = ReadingRepository(test_session, clock=clock).create(sample_device.device_id, VALUES)

        assert row.id is not None
        assert row.timestamp == datetime(2024, 6, 15, 12, 30)
        assert row.power == 1196.0

    def test_create_unknown_device(self, test_session):
        with pytest.raises(NotFoundError):
            ReadingRepository(test_session).create("UNKNOWN00000", VALUES)

    def test_get_by_device_ascending_half_open(self, test_session, sample_device):
        clock = FakeClock(datetime(2024, 6, 15, 10))
        repo = ReadingRepository(test_session, clock=clock)
        device_id = sample_device.device_id
        for _ in range(4):
            repo.create(device_id, VALUES)
            clock.advance(minutes=30)

        readings = repo.get_by_device(
            device_id, datetime(2024, 6, 15, 10, 30), datetime(2024, 6, 15, 11, 30)
        )

        assert [r.timestamp for r in readings] == [
            datetime(2024, 6, 15, 10, 30),
            datetime(2024, 6, 15, 11, 0),
        ]

    def test_get_by_device_without_bounds(self, test_session, sample_device):
        repo = ReadingRepository(test_session)
        repo.create(sample_device.device_id, VALUES)

        assert len(repo.get_by_device(sample_device.device_id)) == 1
        assert repo.get_by_device("UNKNOWN00000") == []

    def test_get_latest(self, test_session, sample_device):
        clock = FakeClock(datetime(2024, 6, 15, 10))
        repo = ReadingRepository(test_session, clock=clock)
        assert repo.get_latest(sample_device.device_id) is None

        repo.create(sample_device.device_id, VALUES)
        clock.advance(seconds=30)
        latest = repo.create(sample_device.device_id, VALUES)

        assert repo.get_latest(sample_device.device_id).id == latest.id

    def test_prune(self, test_session, sample_device):
        """Test readings older than the retention window are deleted."""
        clock = FakeClock(datetime(2023, 1, 1))
        repo = ReadingRepository(test_session, clock=clock)
        repo.create(sample_device.device_id, VALUES)
        clock.now = datetime(2024, 6, 1)
        kept = repo.create(sample_device.device_id, VALUES)

        deleted = repo.prune(older_than_days=365)

        assert deleted == 1
        assert [r.id for r in repo.get_by_device(sample_device.device_id)] == [kept.id]


class TestUserRepository:
    """Test UserRepository."""

    def test_create_and_find(self, test_session):
        repo = UserRepository(test_session)
        user = repo.create("alice", "alice@example.com", "hash")

        assert user.role == "user"
        assert repo.find_by_email("alice@example.com").id == user.id
        assert repo.find_by_username("alice").id == user.id
        assert repo.find_by_email("bob@example.com") is None

    def test_duplicate_email(self, test_session):
        repo = UserRepository(test_session)
        repo.create("alice", "alice@example.com", "hash")

        with pytest.raises(DuplicateKeyError, match="Email already registered"):
            repo.create("alice2", "alice@example.com", "hash")

    def test_duplicate_username(self, test_session):
        repo = UserRepository(test_session)
        repo.create("alice", "alice@example.com", "hash")

        with pytest.raises(DuplicateKeyError, match="Username already taken"):
            repo.create("alice", "other@example.com", "hash")

    def test_taken_excludes_own_record(self, test_session):
        repo = UserRepository(test_session)
        alice = repo.create("alice", "alice@example.com", "hash")

        assert repo.email_taken("alice@example.com")
        assert not repo.email_taken("alice@example.com", exclude_id=alice.id)
        assert repo.username_taken("alice", exclude_id=alice.id + 1)
        assert not repo.username_taken("bob")
