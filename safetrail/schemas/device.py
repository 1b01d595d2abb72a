"""Device schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from safetrail.models.device import DeviceAlertFlag
from safetrail.schemas.alert import AlertResponse


class DeviceCreate(BaseModel):
    device_type: str = Field(..., pattern="^(smartband|tracker|phone|watch|beacon)$")
    manufacturer: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    serial_number: str = Field(..., min_length=1, max_length=60)
    firmware_version: str = Field(default="1.0.0", max_length=20)
    tourist_id: int | None = None


class DeviceUpdate(BaseModel):
    firmware_version: str | None = Field(default=None, max_length=20)
    status: str | None = Field(default=None, pattern="^(active|inactive|warning|offline|maintenance)$")
    battery_level: int | None = Field(default=None, ge=0, le=100)
    signal_strength: int | None = Field(default=None, ge=0, le=100)


class VitalsIngest(BaseModel):
    heart_rate: int | None = Field(default=None, ge=30, le=200)
    temperature: float | None = Field(default=None, ge=30, le=45)
    oxygen_saturation: int | None = Field(default=None, ge=0, le=100)
    steps: int | None = Field(default=None, ge=0)


class DeviceLocationIngest(BaseModel):
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)
    address: str = Field(..., min_length=1, max_length=255)
    accuracy: float | None = Field(default=None, ge=0)
    altitude: float | None = None
    speed: float | None = Field(default=None, ge=0)
    heading: float | None = Field(default=None, ge=0, lt=360)


class DeviceAlertTrigger(BaseModel):
    alert_type: DeviceAlertFlag
    data: dict[str, Any] | None = None


class DeviceResponse(BaseModel):
    id: int
    device_code: str
    tourist_id: int | None
    device_type: str
    manufacturer: str
    model: str
    serial_number: str
    firmware_version: str
    status: str
    battery_level: int
    signal_strength: int
    heart_rate: int | None
    temperature: float | None
    oxygen_saturation: int | None
    steps: int
    longitude: float | None
    latitude: float | None
    address: str | None
    active_flags: list[str]
    health_score: int
    alerts_generated: int
    last_update: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class IngestResponse(BaseModel):
    """Device state after ingestion plus the alerts it raised."""

    device: DeviceResponse
    alerts: list[AlertResponse]
