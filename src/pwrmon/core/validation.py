"""Validation of raw reading payloads submitted by devices."""

import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from pwrmon.core.normalizer import ReadingValues, round_three
from pwrmon.utils.exceptions import ValidationError

FIELD_MESSAGES = {
    "voltage": "Invalid voltage value (0-500V)",
    "current": "Invalid current value (0-100A)",
    "power": "Invalid power value (0-50000W)",
    "energy": "Invalid energy value (must be >= 0)",
}

INVALID_FORMAT = "Invalid reading data format"

# Unbounded fields scaled by 1000 during normalization
SCALED_FIELDS = ("energy", "power_factor")


class ReadingPayload(BaseModel):
    """Wire shape of one reading. Field order is the order errors are reported in."""

    # Strict: booleans and numeric strings are not numbers
    model_config = ConfigDict(strict=True, extra="ignore")

    voltage: float = Field(ge=0, le=500, allow_inf_nan=False)
    current: float = Field(ge=0, le=100, allow_inf_nan=False)
    power: float = Field(ge=0, le=50000, allow_inf_nan=False)
    energy: float = Field(ge=0, allow_inf_nan=False)
    power_factor: float | None = Field(default=None, allow_inf_nan=False)
    frequency: float | None = Field(default=None, allow_inf_nan=False)
    temperature: float | None = Field(default=None, allow_inf_nan=False)
    humidity: float | None = Field(default=None, allow_inf_nan=False)


def _first_error_message(error: PydanticValidationError) -> tuple[str, str | None]:
    first = error.errors()[0]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else None
    if field is None:
        return INVALID_FORMAT, None
    return FIELD_MESSAGES.get(field, f"Invalid {field} value"), field


def validate_reading(payload: Any) -> ReadingValues:
    """Check a raw payload's types and ranges.

    Args:
        payload: Decoded JSON object from the device.

    Returns:
        The validated values, not yet rounded.

    Raises:
        ValidationError: Naming the first offending field and its constraint.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError(INVALID_FORMAT)

    try:
        parsed = ReadingPayload.model_validate(dict(payload))
    except PydanticValidationError as e:
        message, field = _first_error_message(e)
        raise ValidationError(message, field=field) from None

    for name in SCALED_FIELDS:
        value = getattr(parsed, name)
        if value is not None and not math.isfinite(round_three(value)):
            raise ValidationError(FIELD_MESSAGES.get(name, f"Invalid {name} value"), field=name)

    return ReadingValues(
        voltage=float(parsed.voltage),
        current=float(parsed.current),
        power=float(parsed.power),
        energy=float(parsed.energy),
        power_factor=None if parsed.power_factor is None else float(parsed.power_factor),
        frequency=None if parsed.frequency is None else float(parsed.frequency),
        temperature=None if parsed.temperature is None else float(parsed.temperature),
        humidity=None if parsed.humidity is None else float(parsed.humidity),
    )
