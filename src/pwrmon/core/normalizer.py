"""Decimal normalization of raw telemetry values.

Rounding happens exactly once, at ingestion, before a reading is stored.
Voltage, frequency, temperature and humidity keep two decimals. Current,
power, energy and power factor go through the legacy "three-decimal" step,
which applies the two-decimal rounding to ``value * 1000`` and divides the
result by 1000, leaving up to five decimals. Stored history depends on this
exact composition, so it is reproduced as is rather than replaced by a direct
three-decimal round.
"""

import math
import sys
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

EPSILON = sys.float_info.epsilon


@dataclass(frozen=True)
class ReadingValues:
    """The eight telemetry fields of one sample."""

    voltage: float
    current: float
    power: float
    energy: float
    power_factor: float | None = None
    frequency: float | None = None
    temperature: float | None = None
    humidity: float | None = None


def round_two(value: float) -> float:
    """Round to two decimals, halves away from zero.

    Args:
        value: Raw value.

    Returns:
        The rounded value.
    """
    scaled_float = (value + EPSILON) * 100
    if not math.isfinite(scaled_float):
        return value
    scaled = Decimal(scaled_float)
    return float(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP)) / 100


def round_three(value: float) -> float:
    """Legacy three-decimal rounding built on round_two."""
    return round_two(value * 1000) / 1000


def _optional(value: float | None, rounder, zero_is_absent: bool) -> float | None:
    if value is None:
        return None
    if zero_is_absent and not value:
        return None
    return rounder(value)


def normalize_reading(raw: ReadingValues, *, zero_optional_is_absent: bool = True) -> ReadingValues:
    """Normalize a validated reading to its stored precision.

    Args:
        raw: Validated reading values.
        zero_optional_is_absent: Treat an optional field equal to 0 as not
            reported, as the legacy firmware protocol did.

    Returns:
        A new ReadingValues with every field rounded.
    """
    return replace(
        raw,
        voltage=round_two(raw.voltage),
        current=round_three(raw.current),
        power=round_three(raw.power),
        energy=round_three(raw.energy),
        power_factor=_optional(raw.power_factor, round_three, zero_optional_is_absent),
        frequency=_optional(raw.frequency, round_two, zero_optional_is_absent),
        temperature=_optional(raw.temperature, round_two, zero_optional_is_absent),
        humidity=_optional(raw.humidity, round_two, zero_optional_is_absent),
    )
