"""Device management and statistics for authenticated users."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from pwrmon.api.deps import (
    device_pk,
    get_app_settings,
    get_clock,
    get_db,
    require_admin,
    require_user,
)
from pwrmon.api.responses import envelope
from pwrmon.config.settings import Settings
from pwrmon.db.repositories.device import DevicePatch, DeviceRepository
from pwrmon.services.stats import StatsService, device_record

router = APIRouter(
    prefix="/devices",
    tags=["Device Management"],
    dependencies=[Depends(require_user)],
)


class DeviceCreate(BaseModel):
    device_id: str = ""
    name: str = ""
    description: str | None = None
    location: str | None = None


class DeviceUpdate(BaseModel):
    """Fields absent from the request body are left unchanged."""

    name: str | None = None
    description: str | None = None
    location: str | None = None

    def to_patch(self) -> DevicePatch:
        patch = DevicePatch()
        if "name" in self.model_fields_set:
            patch.name = self.name
        if "description" in self.model_fields_set:
            patch.description = self.description
        if "location" in self.model_fields_set:
            patch.location = self.location
        return patch


@router.get("")
def list_devices(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_db),
) -> dict[str, Any]:
    """Devices with their latest reading, ordered by name."""
    repo = DeviceRepository(session)
    rows = repo.list_with_latest_readings(limit=limit, offset=offset)
    total = repo.count()

    devices = []
    for device, reading in rows:
        entry = device_record(device, include_api_key=False)
        entry.update(
            {
                "voltage": reading.voltage if reading else None,
                "current": reading.current if reading else None,
                "power": reading.power if reading else None,
                "energy": reading.energy if reading else None,
                "last_reading_time": reading.timestamp if reading else None,
            }
        )
        devices.append(entry)

    return envelope(
        "Devices retrieved successfully",
        {
            "devices": devices,
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "hasMore": offset + limit < total,
            },
        },
    )


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def create_device(body: DeviceCreate, session: Session = Depends(get_db)) -> dict[str, Any]:
    repo = DeviceRepository(session)
    device = repo.create(body.device_id, body.name, body.description, body.location)
    repo.commit()
    return envelope("Device created successfully", device_record(device))


@router.get("/{id}")
def get_device(
    id: int = Depends(device_pk),
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    data = StatsService(session, settings, clock=clock).device_detail(id)
    return envelope("Device retrieved successfully", data)


@router.put("/{id}", dependencies=[Depends(require_admin)])
def update_device(
    body: DeviceUpdate,
    id: int = Depends(device_pk),
    session: Session = Depends(get_db),
) -> dict[str, Any]:
    repo = DeviceRepository(session)
    device = repo.apply_patch(id, body.to_patch())
    repo.commit()
    return envelope("Device updated successfully", device_record(device))


@router.delete("/{id}", dependencies=[Depends(require_admin)])
def delete_device(
    id: int = Depends(device_pk), session: Session = Depends(get_db)
) -> dict[str, Any]:
    repo = DeviceRepository(session)
    repo.delete_by_id(id)
    repo.commit()
    return envelope("Device deleted successfully")


@router.patch("/{id}/toggle-status", dependencies=[Depends(require_admin)])
def toggle_device_status(
    id: int = Depends(device_pk), session: Session = Depends(get_db)
) -> dict[str, Any]:
    repo = DeviceRepository(session)
    device = repo.toggle_active(id)
    repo.commit()
    state = "activated" if device.is_active else "deactivated"
    return envelope(f"Device {state} successfully", device_record(device))


@router.post("/{id}/regenerate-api-key", dependencies=[Depends(require_admin)])
def regenerate_api_key(
    id: int = Depends(device_pk), session: Session = Depends(get_db)
) -> dict[str, Any]:
    repo = DeviceRepository(session)
    device = repo.regenerate_api_key(id)
    repo.commit()
    return envelope(
        "API key regenerated successfully",
        {"device_id": device.device_id, "api_key": device.api_key},
    )


@router.get("/{id}/readings")
def get_device_readings(
    id: int = Depends(device_pk),
    period: str = Query(default="today"),
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    data = StatsService(session, settings, clock=clock).device_readings(id, period)
    return envelope("Device readings retrieved successfully", data)


@router.get("/{id}/stats")
def get_device_stats(
    id: int = Depends(device_pk),
    period: str = Query(default="today"),
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    data = StatsService(session, settings, clock=clock).device_stats(id, period)
    return envelope("Device statistics retrieved successfully", data)
