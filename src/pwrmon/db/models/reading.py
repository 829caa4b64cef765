"""Power reading ORM model."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pwrmon.db.base import Base


class PowerReading(Base):
    """One normalized telemetry sample. Rows are never updated."""

    __tablename__ = "power_readings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("devices.device_id", ondelete="CASCADE"), nullable=False
    )
    voltage: Mapped[float] = mapped_column(Float, nullable=False)
    current: Mapped[float] = mapped_column(Float, nullable=False)
    power: Mapped[float] = mapped_column(Float, nullable=False)
    energy: Mapped[float] = mapped_column(Float, nullable=False)
    power_factor: Mapped[float | None] = mapped_column(Float, nullable=True)
    frequency: Mapped[float | None] = mapped_column(Float, nullable=True)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    humidity: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Server local time, assigned by the repository clock
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    # Relationship
    device: Mapped["Device"] = relationship("Device", back_populates="readings")  # type: ignore[name-defined] # noqa: F821

    __table_args__ = (
        Index("idx_device_timestamp", "device_id", "timestamp"),
    )

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        return {
            "id": self.id,
            "device_id": self.device_id,
            "voltage": self.voltage,
            "current": self.current,
            "power": self.power,
            "energy": self.energy,
            "power_factor": self.power_factor,
            "frequency": self.frequency,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"<PowerReading(device={self.device_id}, ts={self.timestamp}, w={self.power})>"
