"""Ingestion of device telemetry: validate, normalize, persist, alert."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.orm import Session

from pwrmon.config.settings import Settings
from pwrmon.core.normalizer import normalize_reading
from pwrmon.core.thresholds import DEFAULT_THRESHOLDS, Alert, AlertThresholds, evaluate_alerts
from pwrmon.core.validation import validate_reading
from pwrmon.db.models.device import Device
from pwrmon.db.repositories.reading import ReadingRepository
from pwrmon.utils.exceptions import PwrmonError, ValidationError

logger = structlog.get_logger(__name__)


@dataclass
class IngestionResult:
    """Outcome of one accepted reading."""

    reading_id: int
    timestamp: datetime
    alerts: list[Alert] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"reading_id": self.reading_id, "timestamp": self.timestamp}
        if self.alerts:
            data["alerts"] = [alert.to_dict() for alert in self.alerts]
        return data


@dataclass
class BulkResult:
    """Per-element outcome of a bulk submission, in submission order."""

    submitted: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def submitted_count(self) -> int:
        return len(self.submitted)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "submitted_count": self.submitted_count,
            "error_count": self.error_count,
            "submitted_readings": self.submitted,
        }
        if self.errors:
            data["errors"] = self.errors
        return data


class IngestionService:
    """Runs the ingestion pipeline for an already authenticated device."""

    def __init__(
        self,
        session: Session,
        settings: Settings,
        thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the service.

        Args:
            session: Database session.
            settings: Application settings.
            thresholds: Alert limits.
            clock: Source of server timestamps.
        """
        self.session = session
        self.settings = settings
        self.thresholds = thresholds
        self.readings = ReadingRepository(session, clock=clock)

    def submit(self, device: Device, payload: Any) -> IngestionResult:
        """Validate, normalize and store one reading, then derive its alerts.

        Args:
            device: Authenticated device.
            payload: Raw decoded JSON object.

        Returns:
            Stored reading id, timestamp and alerts.

        Raises:
            ValidationError: If a field is missing, non-numeric or out of range.
                Nothing is written in that case.
        """
        raw = validate_reading(payload)
        reading = normalize_reading(
            raw, zero_optional_is_absent=self.settings.zero_optional_is_absent
        )

        row = self.readings.create(device.device_id, reading)
        self.readings.commit()

        alerts = evaluate_alerts(reading, self.thresholds)
        if alerts:
            logger.info(
                "Reading raised alerts",
                reading_id=row.id,
                alerts=[alert.type for alert in alerts],
            )
        return IngestionResult(reading_id=row.id, timestamp=row.timestamp, alerts=alerts)

    def submit_bulk(self, device: Device, payloads: Any) -> BulkResult:
        """Store a batch of readings, isolating failures per element.

        Each element is committed on its own, so a bad element never undoes
        the elements stored before it.

        Args:
            device: Authenticated device.
            payloads: List of raw reading objects.

        Returns:
            Submitted readings and per-index errors.

        Raises:
            ValidationError: If the batch is not a list, is empty or is too
                large. No element is processed in that case.
        """
        if not isinstance(payloads, list) or not payloads:
            raise ValidationError("Readings array is required and must not be empty", "readings")
        if len(payloads) > self.settings.bulk_max_readings:
            raise ValidationError(
                f"Maximum {self.settings.bulk_max_readings} readings per bulk submission",
                "readings",
            )

        result = BulkResult()
        for index, payload in enumerate(payloads):
            try:
                accepted = self.submit(device, payload)
            except PwrmonError as e:
                result.errors.append({"index": index, "error": str(e)})
                continue
            result.submitted.append(
                {"index": index, "reading_id": accepted.reading_id, "timestamp": accepted.timestamp}
            )

        logger.info(
            "Bulk submission processed",
            submitted=result.submitted_count,
            errors=result.error_count,
        )
        return result
