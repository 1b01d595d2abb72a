"""Tourist schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"


class TouristProfileCreate(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    nationality: str = Field(..., min_length=2, max_length=60)
    passport_number: str = Field(..., min_length=3, max_length=30)
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)


class TouristProfileUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)


class LocationUpdate(BaseModel):
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)
    address: str = Field(..., min_length=1, max_length=255)
    accuracy: float | None = Field(default=None, ge=0)


class EmergencyRequest(BaseModel):
    type: str = Field(..., pattern="^(panic|medical|security|other)$")
    description: str | None = Field(default=None, max_length=500)


class TouristStatusUpdate(BaseModel):
    """Staff change of status and/or risk level."""

    status: str | None = Field(default=None, pattern="^(active|inactive|missing|emergency|safe)$")
    risk_level: str | None = Field(default=None, pattern="^(low|medium|high|critical)$")


class TouristResponse(BaseModel):
    id: int
    user_id: int
    tourist_code: str
    first_name: str
    last_name: str
    nationality: str
    passport_number: str
    phone_number: str | None
    longitude: float | None
    latitude: float | None
    address: str | None
    location_updated_at: datetime | None
    safety_score: int
    status: str
    risk_level: str
    alerts_triggered: int
    is_placeholder: bool
    last_seen: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class LocationHistoryItem(BaseModel):
    longitude: float
    latitude: float
    address: str | None
    accuracy: float | None
    recorded_at: datetime

    model_config = {"from_attributes": True}


class NearbyTouristResponse(BaseModel):
    tourist: TouristResponse
    distance_m: float
