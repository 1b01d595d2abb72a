"""Digital ID schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class DigitalIdIssueRequest(BaseModel):
    document_type: str = Field(..., pattern="^(passport|aadhaar|driving_license|visa|other)$")
    document_number: str = Field(..., min_length=3, max_length=60)
    photo_ref: str | None = Field(default=None, max_length=255)
    valid_days: int | None = Field(default=None, ge=1, le=365)


class DigitalIdAmendRequest(BaseModel):
    """Accepted so the request is well-formed; issued cards are never changed."""

    document_type: str | None = None
    document_number: str | None = None
    photo_ref: str | None = None
    expires_at: datetime | None = None


class DigitalIdResponse(BaseModel):
    serial: str
    version: int
    tourist_id: int
    document_type: str
    document_number: str
    photo_ref: str | None
    qr_payload: str
    qr_payload_hash: str
    issued_at: datetime
    expires_at: datetime
    status: str


class DigitalIdVerification(BaseModel):
    serial: str
    valid: bool
    status: str
    reason: str | None = None
    tourist_code: str | None = None
    name: str | None = None
    expires_at: datetime | None = None
