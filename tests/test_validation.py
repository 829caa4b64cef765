"""Tests for reading payload validation."""

import pytest

from pwrmon.core.validation import INVALID_FORMAT, validate_reading
from pwrmon.utils.exceptions import ValidationError


class TestValidateReading:
    """Test validate_reading."""

    def test_valid_reading(self, sample_reading):
        """Test a complete in-range reading is accepted unchanged."""
        values = validate_reading(sample_reading)

        assert values.voltage == 230.0
        assert values.current == 5.2
        assert values.power == 1196.0
        assert values.energy == 12.345
        assert values.temperature == 25.5

    def test_integers_accepted(self):
        """Test JSON integers count as numbers."""
        values = validate_reading({"voltage": 230, "current": 5, "power": 1150, "energy": 0})

        assert values.voltage == 230.0
        assert isinstance(values.voltage, float)
        assert values.power_factor is None

    @pytest.mark.parametrize(
        "field,value,message",
        [
            ("voltage", 600, "Invalid voltage value (0-500V)"),
            ("voltage", -1, "Invalid voltage value (0-500V)"),
            ("current", 150, "Invalid current value (0-100A)"),
            ("power", 50001, "Invalid power value (0-50000W)"),
            ("energy", -0.1, "Invalid energy value (must be >= 0)"),
        ],
    )
    def test_out_of_range(self, sample_reading, field, value, message):
        """Test each range violation names its field and constraint."""
        payload = {**sample_reading, field: value}

        with pytest.raises(ValidationError) as exc_info:
            validate_reading(payload)

        assert str(exc_info.value) == message
        assert exc_info.value.field == field

    @pytest.mark.parametrize(
        "field,value",
        [("voltage", 0), ("voltage", 500), ("current", 100), ("power", 50000), ("energy", 0)],
    )
    def test_bounds_inclusive(self, sample_reading, field, value):
        """Test range bounds themselves are valid."""
        validate_reading({**sample_reading, field: value})

    def test_missing_required_field(self, sample_reading):
        """Test a missing required field is reported by name."""
        payload = dict(sample_reading)
        del payload["current"]

        with pytest.raises(ValidationError, match="current"):
            validate_reading(payload)

    @pytest.mark.parametrize("value", ["230", True, None, [230]])
    def test_non_numeric_rejected(self, sample_reading, value):
        """Test strings, booleans, null and lists are not numbers."""
        with pytest.raises(ValidationError, match="voltage"):
            validate_reading({**sample_reading, "voltage": value})

    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_rejected(self, sample_reading, value):
        """Test NaN and infinity are rejected."""
        with pytest.raises(ValidationError):
            validate_reading({**sample_reading, "power": value})

    @pytest.mark.parametrize("field", ["energy", "power_factor"])
    def test_overflowing_scaled_value_rejected(self, sample_reading, field):
        """Test a value whose three-decimal rounding overflows is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_reading({**sample_reading, field: 1e306})

        assert exc_info.value.field == field

    def test_overflow_message_for_energy(self, sample_reading):
        """Test an overflowing energy reports the energy constraint."""
        with pytest.raises(ValidationError, match=r"Invalid energy value \(must be >= 0\)"):
            validate_reading({**sample_reading, "energy": 1e306})

    def test_large_finite_energy_accepted(self, sample_reading):
        """Test energy stays unbounded while its rounding is finite."""
        assert validate_reading({**sample_reading, "energy": 1e12}).energy == 1e12

    def test_invalid_optional_field(self, sample_reading):
        """Test a non-numeric optional field is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_reading({**sample_reading, "humidity": "wet"})

        assert exc_info.value.field == "humidity"

    def test_first_violation_reported(self, sample_reading):
        """Test that with several bad fields the earliest one is reported."""
        payload = {**sample_reading, "voltage": 999, "power": -5}

        with pytest.raises(ValidationError, match="voltage"):
            validate_reading(payload)

    @pytest.mark.parametrize("payload", [None, [], "reading", 42])
    def test_non_object_payload(self, payload):
        """Test anything other than a JSON object is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_reading(payload)

        assert str(exc_info.value) == INVALID_FORMAT

    def test_unknown_fields_ignored(self, sample_reading):
        """Test extra keys sent by newer firmware are ignored."""
        values = validate_reading({**sample_reading, "rssi": -60})
        assert values.voltage == 230.0
