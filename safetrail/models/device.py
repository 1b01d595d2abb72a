"""IoT wearable device model."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from safetrail.db.base import Base


class DeviceAlertFlag(str, enum.Enum):
    """Device-level conditions; each maps to a boolean column on Device."""

    battery_low = "batteryLow"
    signal_weak = "signalWeak"
    heart_rate_abnormal = "heartRateAbnormal"
    temperature_abnormal = "temperatureAbnormal"
    fall_detected = "fallDetected"
    panic_button_pressed = "panicButtonPressed"
    geofence_violation = "geofenceViolation"

    @property
    def column(self) -> str:
        return f"flag_{self.name}"


class Device(Base):
    """Wearable/tracker bound to at most one tourist."""

    __tablename__ = "devices"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    device_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)  # SM-123-26
    tourist_id: Mapped[int | None] = mapped_column(ForeignKey("tourists.id", ondelete="SET NULL"), index=True, nullable=True)
    device_type: Mapped[str] = mapped_column(String(20), nullable=False)  # smartband | tracker | phone | watch | beacon
    manufacturer: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    serial_number: Mapped[str] = mapped_column(String(60), unique=True, nullable=False)
    firmware_version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0.0")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")  # active | inactive | warning | offline | maintenance
    battery_level: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    signal_strength: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    # vitals
    heart_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    oxygen_saturation: Mapped[int | None] = mapped_column(Integer, nullable=True)
    steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # location
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)
    altitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    speed: Mapped[float | None] = mapped_column(Float, nullable=True)
    heading: Mapped[float | None] = mapped_column(Float, nullable=True)

    # condition flags, cleared only explicitly
    flag_battery_low: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_signal_weak: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_heart_rate_abnormal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_temperature_abnormal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_fall_detected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_panic_button_pressed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_geofence_violation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    alerts_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_update: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def set_flag(self, flag: DeviceAlertFlag, value: bool = True) -> None:
        setattr(self, flag.column, value)

    def has_flag(self, flag: DeviceAlertFlag) -> bool:
        return bool(getattr(self, flag.column))

    @property
    def active_flags(self) -> list[str]:
        return [flag.value for flag in DeviceAlertFlag if self.has_flag(flag)]

    @property
    def health_score(self) -> int:
        """0-100 from battery, signal, status and raised flags."""
        score = 100
        if self.battery_level < 20:
            score -= 30
        elif self.battery_level < 50:
            score -= 15
        if self.signal_strength < 30:
            score -= 25
        elif self.signal_strength < 60:
            score -= 10
        score -= {"offline": 50, "warning": 20, "maintenance": 10}.get(self.status, 0)
        score -= len(self.active_flags) * 5
        return max(0, min(100, score))
