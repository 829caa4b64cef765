"""Tests for the ingestion service."""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from pwrmon.db.models import PowerReading
from pwrmon.services.ingestion import IngestionService
from pwrmon.utils.exceptions import ValidationError

from conftest import fail_store_on_call


def reading_count(session) -> int:
    return session.scalar(select(func.count(PowerReading.id)))


@pytest.fixture
def service(test_session, test_settings, clock):
    return IngestionService(test_session, test_settings, clock=clock)


class TestSubmit:
    """Test single reading submission."""

    def test_normal_reading(self, service, test_session, sample_device, sample_reading):
        """Test a normal reading is stored as sent and raises no alerts."""
        result = service.submit(sample_device, sample_reading)

        assert result.alerts == []
        assert result.timestamp == datetime(2024, 6, 15, 12, 0, 0)
        assert "alerts" not in result.to_dict()

        row = test_session.get(PowerReading, result.reading_id)
        assert row.device_id == sample_device.device_id
        assert row.voltage == 230.0
        assert row.current == pytest.approx(5.2)
        assert row.power == 1196.0
        assert row.energy == pytest.approx(12.345)

    def test_voltage_anomaly(self, service, sample_device, sample_reading):
        result = service.submit(sample_device, {**sample_reading, "voltage": 260})

        assert [alert.type for alert in result.alerts] == ["voltage_anomaly"]
        assert result.to_dict()["alerts"][0]["severity"] == "medium"

    def test_high_power(self, service, sample_device, sample_reading):
        result = service.submit(sample_device, {**sample_reading, "power": 6000})

        assert [alert.to_dict() for alert in result.alerts] == [
            {
                "type": "high_power",
                "message": "High power consumption detected: 6000W",
                "severity": "high",
            }
        ]

    def test_values_normalized_before_storage(
        self, service, test_session, sample_device, sample_reading
    ):
        result = service.submit(sample_device, {**sample_reading, "voltage": 230.456})

        assert test_session.get(PowerReading, result.reading_id).voltage == pytest.approx(230.46)

    def test_zero_optional_stored_as_absent(
        self, service, test_session, sample_device, sample_reading
    ):
        result = service.submit(sample_device, {**sample_reading, "temperature": 0})

        assert test_session.get(PowerReading, result.reading_id).temperature is None

    def test_zero_optional_kept_when_configured(
        self, test_session, test_settings, clock, sample_device, sample_reading
    ):
        settings = test_settings.model_copy(update={"zero_optional_is_absent": False})
        service = IngestionService(test_session, settings, clock=clock)

        result = service.submit(sample_device, {**sample_reading, "temperature": 0})

        assert test_session.get(PowerReading, result.reading_id).temperature == 0.0

    def test_invalid_reading_not_persisted(
        self, service, test_session, sample_device, sample_reading
    ):
        """Test a rejected reading leaves the store untouched."""
        with pytest.raises(ValidationError, match=r"Invalid power value \(0-50000W\)"):
            service.submit(sample_device, {**sample_reading, "power": 60000})

        assert reading_count(test_session) == 0


class TestSubmitBulk:
    """Test bulk submission."""

    def test_all_valid(self, service, test_session, sample_device, sample_reading):
        result = service.submit_bulk(sample_device, [sample_reading] * 3)

        assert result.success is True
        assert result.submitted_count == 3
        assert result.error_count == 0
        assert [item["index"] for item in result.submitted] == [0, 1, 2]
        assert "errors" not in result.to_dict()
        assert reading_count(test_session) == 3

    def test_partial_failure(self, service, test_session, sample_device, sample_reading):
        """Test a bad element is reported by index and does not stop its siblings."""
        payloads = [
            sample_reading,
            sample_reading,
            {**sample_reading, "voltage": 900},
            sample_reading,
        ]

        result = service.submit_bulk(sample_device, payloads)

        assert result.success is False
        assert result.submitted_count == 3
        assert result.errors == [{"index": 2, "error": "Invalid voltage value (0-500V)"}]
        assert [item["index"] for item in result.submitted] == [0, 1, 3]
        assert result.submitted_count + result.error_count == len(payloads)
        assert reading_count(test_session) == 3

    def test_store_failure_isolated(
        self, service, test_session, sample_device, sample_reading, monkeypatch
    ):
        """Test a database outage on one element keeps the others stored."""
        fail_store_on_call(monkeypatch, failing_call=2)

        result = service.submit_bulk(sample_device, [sample_reading] * 3)

        assert result.success is False
        assert result.errors == [{"index": 1, "error": "Database unavailable"}]
        assert [item["index"] for item in result.submitted] == [0, 2]
        assert reading_count(test_session) == 2

    def test_all_invalid(self, service, test_session, sample_device):
        result = service.submit_bulk(sample_device, [{"voltage": "x"}, "junk"])

        assert result.success is False
        assert result.submitted_count == 0
        assert [error["index"] for error in result.errors] == [0, 1]
        assert result.errors[1]["error"] == "Invalid reading data format"
        assert reading_count(test_session) == 0

    @pytest.mark.parametrize("payloads", [[], None, {"voltage": 230}, "readings"])
    def test_requires_non_empty_list(self, service, test_session, sample_device, payloads):
        with pytest.raises(ValidationError, match="Readings array is required"):
            service.submit_bulk(sample_device, payloads)

        assert reading_count(test_session) == 0

    def test_too_many_readings(self, service, test_session, sample_device, sample_reading):
        """Test an oversized batch is rejected before anything is stored."""
        with pytest.raises(ValidationError, match="Maximum 100 readings per bulk submission"):
            service.submit_bulk(sample_device, [sample_reading] * 101)

        assert reading_count(test_session) == 0

    def test_limit_is_inclusive(self, service, test_session, sample_device, sample_reading):
        result = service.submit_bulk(sample_device, [sample_reading] * 100)

        assert result.submitted_count == 100
        assert reading_count(test_session) == 100
