"""Endpoints called by devices, authenticated with their API key."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from pwrmon.api.deps import get_app_settings, get_clock, get_db, require_device
from pwrmon.api.responses import envelope
from pwrmon.config.logging import bind_device
from pwrmon.config.settings import Settings
from pwrmon.core.thresholds import DEFAULT_THRESHOLDS
from pwrmon.db.models.device import Device
from pwrmon.services.ingestion import IngestionService
from pwrmon.services.stats import StatsService
from pwrmon.utils.exceptions import ValidationError

router = APIRouter(prefix="/iot", tags=["Devices"])


@router.post("/readings", status_code=status.HTTP_201_CREATED)
def submit_reading(
    payload: Any = Body(...),
    device: Device = Depends(require_device),
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    """Store one reading and return any alerts it raised."""
    bind_device(device.device_id)
    result = IngestionService(session, settings, clock=clock).submit(device, payload)
    return envelope("Reading submitted successfully", result.to_dict())


@router.post("/readings/bulk", status_code=status.HTTP_201_CREATED)
def submit_bulk_readings(
    response: Response,
    body: Any = Body(...),
    device: Device = Depends(require_device),
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    """Store up to ``bulk_max_readings`` readings; failures are reported per index."""
    bind_device(device.device_id)
    if not isinstance(body, dict):
        raise ValidationError("Readings array is required and must not be empty", "readings")

    result = IngestionService(session, settings, clock=clock).submit_bulk(
        device, body.get("readings")
    )
    if not result.success:
        response.status_code = status.HTTP_207_MULTI_STATUS

    return envelope(
        f"Bulk submission completed. {result.submitted_count} readings submitted successfully.",
        result.to_dict(),
        success=result.success,
    )


@router.get("/status")
def device_status(
    device: Device = Depends(require_device),
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    data = StatsService(session, settings, clock=clock).device_status(device)
    return envelope("Device status retrieved successfully", data)


@router.get("/config")
def device_configuration(
    device: Device = Depends(require_device),
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    """Runtime configuration pulled by the firmware."""
    thresholds = DEFAULT_THRESHOLDS
    prefix = settings.api_prefix.rstrip("/")
    config = {
        "reading_interval": settings.reading_interval_seconds,
        "max_voltage": thresholds.high_voltage,
        "min_voltage": thresholds.low_voltage,
        "max_current": 50,
        "max_power": 10000,
        "temperature_threshold": thresholds.high_temperature,
        "humidity_threshold": 90,
        "server_endpoints": {
            "submit_reading": f"{prefix}/iot/readings",
            "get_status": f"{prefix}/iot/status",
            "get_config": f"{prefix}/iot/config",
        },
        "alerts": {
            "high_power_threshold": thresholds.high_power,
            "low_voltage_threshold": thresholds.low_voltage,
            "high_voltage_threshold": thresholds.high_voltage,
            "high_temperature_threshold": thresholds.high_temperature,
        },
    }
    return envelope(
        "Configuration retrieved successfully",
        {"device_id": device.device_id, "config": config, "last_updated": clock()},
    )


@router.post("/health")
def device_health(
    device: Device = Depends(require_device),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    return envelope(
        "Device health check successful",
        {
            "device_id": device.device_id,
            "status": "online",
            "timestamp": clock(),
            "server_status": "operational",
        },
    )
