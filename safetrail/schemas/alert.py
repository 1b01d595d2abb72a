"""Alert schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ---- Requests ----


class AcknowledgeRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=500)


class ResolveRequest(BaseModel):
    resolution: str = Field(..., min_length=1, max_length=500)
    notes: str | None = Field(default=None, max_length=500)


class FalseAlarmRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class ActionRequest(BaseModel):
    action: str = Field(..., min_length=1, max_length=200)
    notes: str | None = Field(default=None, max_length=500)


class EscalateRequest(BaseModel):
    escalated_to: list[int] = Field(..., min_length=1)
    reason: str | None = Field(default=None, max_length=500)


# ---- Responses ----


class AlertLocationOut(BaseModel):
    longitude: float | None
    latitude: float | None
    address: str | None
    accuracy: float | None


class AlertDataOut(BaseModel):
    heart_rate: int | None
    temperature: float | None
    device_flag: str | None
    device_code: str | None
    emergency_type: str | None
    triggered_by: str | None


class AlertMetadataOut(BaseModel):
    source: str
    confidence: int
    priority: int


class AlertActionOut(BaseModel):
    action: str
    performed_by: int
    performed_at: datetime
    notes: str | None

    model_config = {"from_attributes": True}


class AlertResponseInfo(BaseModel):
    acknowledged_by: int | None
    acknowledged_at: datetime | None
    resolved_by: int | None
    resolved_at: datetime | None
    resolution: str | None
    actions: list[AlertActionOut]


class AlertEscalationOut(BaseModel):
    level: int
    escalated_at: datetime | None
    escalated_to: list[int]


class TimelineEntryOut(BaseModel):
    timestamp: datetime
    event: str
    description: str | None
    actor_id: int | None
    data: dict[str, Any] | None

    model_config = {"from_attributes": True}


class AlertResponse(BaseModel):
    alert_id: str
    tourist_id: int
    device_id: int | None
    type: str
    severity: str
    status: str
    title: str
    description: str
    location: AlertLocationOut
    data: AlertDataOut
    metadata: AlertMetadataOut
    response: AlertResponseInfo
    escalation: AlertEscalationOut
    timeline: list[TimelineEntryOut]
    created_at: datetime
    updated_at: datetime


def build_alert_response(alert) -> AlertResponse:
    """Group the flat alert row into its nested API shape."""
    return AlertResponse(
        alert_id=alert.alert_id,
        tourist_id=alert.tourist_id,
        device_id=alert.device_id,
        type=alert.type,
        severity=alert.severity,
        status=alert.status,
        title=alert.title,
        description=alert.description,
        location=AlertLocationOut(
            longitude=alert.longitude,
            latitude=alert.latitude,
            address=alert.address,
            accuracy=alert.accuracy,
        ),
        data=AlertDataOut(
            heart_rate=alert.heart_rate,
            temperature=alert.temperature,
            device_flag=alert.device_flag,
            device_code=alert.device_code,
            emergency_type=alert.emergency_type,
            triggered_by=alert.triggered_by,
        ),
        metadata=AlertMetadataOut(source=alert.source, confidence=alert.confidence, priority=alert.priority),
        response=AlertResponseInfo(
            acknowledged_by=alert.acknowledged_by,
            acknowledged_at=alert.acknowledged_at,
            resolved_by=alert.resolved_by,
            resolved_at=alert.resolved_at,
            resolution=alert.resolution,
            actions=[AlertActionOut.model_validate(a) for a in alert.actions],
        ),
        escalation=AlertEscalationOut(
            level=alert.escalation_level,
            escalated_at=alert.escalated_at,
            escalated_to=list(alert.escalated_to or []),
        ),
        timeline=[TimelineEntryOut.model_validate(e) for e in alert.timeline],
        created_at=alert.created_at,
        updated_at=alert.updated_at,
    )
