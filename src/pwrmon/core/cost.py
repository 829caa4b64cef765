"""Energy cost estimation."""

DEFAULT_TARIFF = 0.12  # currency units per kWh


def estimate_cost(total_energy_kwh: float, tariff: float = DEFAULT_TARIFF) -> float:
    """Estimate the cost of consumed energy.

    The result is not rounded; presentation decides precision.

    Args:
        total_energy_kwh: Accumulated energy in kWh.
        tariff: Price per kWh.

    Returns:
        Estimated cost.
    """
    return total_energy_kwh * tariff
