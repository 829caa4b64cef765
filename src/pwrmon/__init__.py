"""Power Monitor - telemetry backend for ESP32 power meters."""

__version__ = "0.1.0"
