"""Threshold-based alerts derived from a single normalized reading."""

from dataclasses import asdict, dataclass

from pwrmon.core.normalizer import ReadingValues


@dataclass(frozen=True)
class AlertThresholds:
    """Limits that turn a reading into alerts."""

    high_power: float = 5000.0
    low_voltage: float = 200.0
    high_voltage: float = 250.0
    high_temperature: float = 60.0


DEFAULT_THRESHOLDS = AlertThresholds()


@dataclass(frozen=True)
class Alert:
    """An alert returned to the submitting device. Never persisted."""

    type: str
    message: str
    severity: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def format_number(value: float) -> str:
    """Render a number the way devices expect it in alert messages (no trailing .0)."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def evaluate_alerts(
    reading: ReadingValues,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> list[Alert]:
    """Derive alerts from a normalized reading.

    Checks run in a fixed order: power, then voltage, then temperature.

    Args:
        reading: Normalized reading values.
        thresholds: Alert limits.

    Returns:
        Alerts in evaluation order, possibly empty.
    """
    alerts: list[Alert] = []

    if reading.power > thresholds.high_power:
        alerts.append(
            Alert(
                type="high_power",
                message=f"High power consumption detected: {format_number(reading.power)}W",
                severity="high",
            )
        )

    if reading.voltage < thresholds.low_voltage or reading.voltage > thresholds.high_voltage:
        alerts.append(
            Alert(
                type="voltage_anomaly",
                message=f"Voltage out of normal range: {format_number(reading.voltage)}V",
                severity="medium",
            )
        )

    if reading.temperature is not None and reading.temperature > thresholds.high_temperature:
        alerts.append(
            Alert(
                type="high_temperature",
                message=f"High temperature detected: {format_number(reading.temperature)}°C",
                severity="high",
            )
        )

    return alerts
