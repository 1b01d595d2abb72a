"""Devices and telemetry ingestion API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from safetrail.core.deps import Principal, get_principal, require_staff
from safetrail.db.session import get_db
from safetrail.models.device import DeviceAlertFlag
from safetrail.schemas.alert import build_alert_response
from safetrail.schemas.device import (
    DeviceAlertTrigger,
    DeviceCreate,
    DeviceLocationIngest,
    DeviceResponse,
    DeviceUpdate,
    IngestResponse,
    VitalsIngest,
)
from safetrail.services.device_service import (
    IngestResult,
    clear_device_flag,
    get_device,
    ingest_location,
    ingest_vitals,
    list_devices,
    register_device,
    soft_delete_device,
    trigger_device_alert,
    update_device,
)
from safetrail.services.telemetry import VitalsSample

router = APIRouter(prefix="/devices", tags=["devices"])


def _ingest_response(result: IngestResult) -> IngestResponse:
    return IngestResponse(
        device=DeviceResponse.model_validate(result.device),
        alerts=[build_alert_response(a) for a in result.alerts],
    )


@router.get("", response_model=list[DeviceResponse])
def list_all(
    status_filter: str | None = Query(default=None, alias="status"),
    device_type: str | None = None,
    tourist_id: int | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """List devices. Staff only."""
    return list_devices(
        db, status=status_filter, device_type=device_type, tourist_id=tourist_id, limit=limit, offset=offset
    )


@router.post("", response_model=DeviceResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: DeviceCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Register a device. Tourists register for themselves."""
    return register_device(db, principal, data)


@router.get("/{device_id}", response_model=DeviceResponse)
def get_one(
    device_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return get_device(db, device_id, principal)


@router.put("/{device_id}", response_model=DeviceResponse)
def update(
    device_id: int,
    data: DeviceUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Update firmware, status, battery or signal."""
    return update_device(db, device_id, principal, data)


@router.post("/{device_id}/vitals", response_model=IngestResponse)
def vitals(
    device_id: int,
    data: VitalsIngest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Ingest a vitals sample. Breached thresholds raise alerts."""
    result = ingest_vitals(
        db,
        device_id,
        principal,
        VitalsSample(heart_rate=data.heart_rate, temperature=data.temperature),
        oxygen_saturation=data.oxygen_saturation,
        steps=data.steps,
    )
    return _ingest_response(result)


@router.post("/{device_id}/location", response_model=DeviceResponse)
def location(
    device_id: int,
    data: DeviceLocationIngest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Ingest a device position; the owning tourist moves with it."""
    return ingest_location(
        db,
        device_id,
        principal,
        data.longitude,
        data.latitude,
        data.address,
        data.accuracy,
        data.altitude,
        data.speed,
        data.heading,
    )


@router.post("/{device_id}/alert", response_model=IngestResponse, status_code=status.HTTP_201_CREATED)
def device_alert(
    device_id: int,
    data: DeviceAlertTrigger,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Alert raised by the device itself (panic button, fall detection, ...)."""
    return _ingest_response(trigger_device_alert(db, device_id, principal, data.alert_type, data.data))


@router.delete("/{device_id}/flags/{flag}", response_model=DeviceResponse)
def clear_flag(
    device_id: int,
    flag: DeviceAlertFlag,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Clear a raised condition flag."""
    return clear_device_flag(db, device_id, principal, flag)


@router.delete("/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    device_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Deactivate a device. Owner tourist or staff."""
    soft_delete_device(db, device_id, principal)
