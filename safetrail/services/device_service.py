"""Device registration and telemetry ingestion.

Telemetry for one device is processed under a per-device lock: the sample
is stored, breached thresholds raise device flags and each breach becomes an
alert for the owning tourist in the same commit. Writes that touch the
tourist row also hold that tourist's lock, taken after the device lock.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from safetrail.core.alert_policies import MAX_ID_ATTEMPTS, STAFF_ROOM, tourist_room
from safetrail.core.clock import utcnow
from safetrail.core.deps import Principal
from safetrail.core.errors import DuplicateKeyError, ForbiddenError, NotFoundError, ValidationFailedError
from safetrail.core.fanout import fanout
from safetrail.core.locks import device_locks, tourist_locks
from safetrail.db.session import insert_unique
from safetrail.models.alert import Alert
from safetrail.models.device import Device, DeviceAlertFlag
from safetrail.models.tourist import Tourist
from safetrail.schemas.device import DeviceCreate, DeviceUpdate
from safetrail.services.alert_service import AlertLocation, create_alert, publish_alert_event
from safetrail.services.telemetry import ThresholdBreach, VitalsSample, evaluate_device_alert, evaluate_vitals
from safetrail.services.tourist_service import apply_location, get_tourist_for_user

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Device state after ingestion plus any alerts raised."""

    device: Device
    alerts: list[Alert] = field(default_factory=list)


# ---------- Identifiers ----------


def generate_device_code(device_type: str) -> str:
    """<type code>-<3 digits>-<2-digit year>, e.g. SM-482-26."""
    type_code = device_type[:2].upper()
    return f"{type_code}-{secrets.randbelow(900) + 100}-{utcnow().strftime('%y')}"


def _device_code_taken(db: Session, code: str) -> bool:
    return db.execute(select(exists().where(Device.device_code == code))).scalar()


def allocate_device_code(db: Session, device_type: str) -> str:
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = generate_device_code(device_type)
        if not _device_code_taken(db, candidate):
            return candidate
    raise DuplicateKeyError("device_code", MAX_ID_ATTEMPTS)


# ---------- Access ----------


def _owner_tourist(db: Session, device: Device) -> Tourist | None:
    return db.get(Tourist, device.tourist_id) if device.tourist_id else None


def _require_device_access(db: Session, device: Device, principal: Principal) -> None:
    if principal.is_privileged:
        return
    tourist = _owner_tourist(db, device)
    if tourist is None or tourist.user_id != principal.actor_id:
        raise ForbiddenError("Access denied to this device", device_id=device.id)


def _load_device(db: Session, device_id: int) -> Device:
    device = db.execute(
        select(Device)
        .where(Device.id == device_id, Device.is_active.is_(True))
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not device:
        raise NotFoundError("Device", device_id=device_id)
    return device


def get_device(db: Session, device_id: int, principal: Principal) -> Device:
    """Get a device. Only the owning tourist or staff can view."""
    device = _load_device(db, device_id)
    _require_device_access(db, device, principal)
    return device


def list_devices(
    db: Session,
    *,
    status: str | None = None,
    device_type: str | None = None,
    tourist_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Device]:
    stmt = select(Device).where(Device.is_active.is_(True))
    if status:
        stmt = stmt.where(Device.status == status)
    if device_type:
        stmt = stmt.where(Device.device_type == device_type)
    if tourist_id is not None:
        stmt = stmt.where(Device.tourist_id == tourist_id)
    stmt = stmt.order_by(Device.created_at.desc(), Device.id.desc()).limit(limit).offset(offset)
    return list(db.execute(stmt).scalars().all())


# ---------- Registration ----------


def register_device(db: Session, principal: Principal, data: DeviceCreate) -> Device:
    """Register a device, bound to a tourist when one is given or implied.

    Staff may bind to any tourist; a tourist always registers for their own
    profile.
    """
    tourist: Tourist | None = None
    if data.tourist_id is not None and principal.is_privileged:
        tourist = db.get(Tourist, data.tourist_id)
        if not tourist or not tourist.is_active:
            raise NotFoundError("Tourist", tourist_id=data.tourist_id)
    elif not principal.is_privileged:
        tourist = get_tourist_for_user(db, principal.actor_id)
        if not tourist:
            raise NotFoundError("Tourist profile", user_id=principal.actor_id)

    if db.execute(select(exists().where(Device.serial_number == data.serial_number))).scalar():
        raise ValidationFailedError("Serial number already registered", serial_number=data.serial_number)

    def build() -> Device:
        return Device(
            device_code=allocate_device_code(db, data.device_type),
            tourist_id=tourist.id if tourist else None,
            device_type=data.device_type,
            manufacturer=data.manufacturer,
            model=data.model,
            serial_number=data.serial_number,
            firmware_version=data.firmware_version,
            status="active",
            battery_level=100,
            signal_strength=100,
            steps=0,
            alerts_generated=0,
            is_active=True,
        )

    device = insert_unique(db, build, lambda d: _device_code_taken(db, d.device_code), "device_code", MAX_ID_ATTEMPTS)
    db.commit()
    db.refresh(device)
    logger.info("Device %s registered (tourist=%s)", device.device_code, device.tourist_id)
    return device


def update_device(db: Session, device_id: int, principal: Principal, data: DeviceUpdate) -> Device:
    with device_locks.hold(device_id):
        device = get_device(db, device_id, principal)
        for field_name, value in data.model_dump(exclude_unset=True).items():
            setattr(device, field_name, value)
        device.last_update = utcnow()
        db.commit()
        db.refresh(device)
    return device


def soft_delete_device(db: Session, device_id: int, principal: Principal) -> None:
    with device_locks.hold(device_id):
        device = get_device(db, device_id, principal)
        device.is_active = False
        device.status = "inactive"
        db.commit()
    logger.info("Device %s deactivated by user %s", device_id, principal.actor_id)


# ---------- Telemetry ----------


def _raise_breach(db: Session, device: Device, tourist: Tourist | None, breach: ThresholdBreach, description: str) -> Alert | None:
    """Set the device flag and, for a bound device, create the alert. Caller commits."""
    device.set_flag(breach.flag)
    device.alerts_generated = (device.alerts_generated or 0) + 1
    if tourist is None:
        logger.warning("Device %s breached %s but is not bound to a tourist", device.device_code, breach.flag.value)
        return None
    return create_alert(
        db,
        tourist,
        alert_type=breach.alert_type,
        severity=breach.severity,
        title=breach.title,
        description=description,
        source="device",
        confidence=breach.confidence,
        location=AlertLocation(device.longitude, device.latitude, device.address, device.accuracy),
        device=device,
        data=breach.data,
        commit=False,
    )


@contextmanager
def _tourist_held(db: Session, tourist: Tourist | None) -> Iterator[None]:
    """Hold the owning tourist's lock with a freshly loaded row. No-op when unbound."""
    if tourist is None:
        yield
        return
    with tourist_locks.hold(tourist.id):
        db.refresh(tourist)
        yield


def _publish_device_event(device: Device, event: str, data: dict[str, Any]) -> None:
    payload = {"device_id": device.id, "device_code": device.device_code, "tourist_id": device.tourist_id, **data}
    if device.tourist_id:
        fanout.publish(tourist_room(device.tourist_id), event, payload)
    fanout.publish(STAFF_ROOM, event, payload)


def ingest_vitals(
    db: Session,
    device_id: int,
    principal: Principal,
    sample: VitalsSample,
    oxygen_saturation: int | None = None,
    steps: int | None = None,
) -> IngestResult:
    """Store a vitals sample and alert on every breached threshold."""
    with device_locks.hold(device_id):
        device = get_device(db, device_id, principal)
        tourist = _owner_tourist(db, device)
        now = utcnow()

        if sample.heart_rate is not None:
            device.heart_rate = sample.heart_rate
        if sample.temperature is not None:
            device.temperature = sample.temperature
        if oxygen_saturation is not None:
            device.oxygen_saturation = oxygen_saturation
        if steps is not None:
            device.steps = steps
        device.last_update = now

        breaches = evaluate_vitals(sample)
        alerts = []
        with _tourist_held(db, tourist):
            for breach in breaches:
                if breach.flag is DeviceAlertFlag.heart_rate_abnormal:
                    description = f"Heart rate of {sample.heart_rate} BPM detected on device {device.device_code}"
                else:
                    description = f"Temperature of {sample.temperature}°C detected on device {device.device_code}"
                alert = _raise_breach(db, device, tourist, breach, description)
                if alert is not None:
                    alerts.append(alert)
            db.commit()
        db.refresh(device)

    for alert in alerts:
        logger.info("Vitals breach on %s raised %s (%s)", device.device_code, alert.alert_id, alert.severity)
        publish_alert_event(alert, "alert.created")
    for breach in breaches:
        _publish_device_event(device, "device.vitals_breach", {"flag": breach.flag.value, "severity": breach.severity, **breach.data})
    return IngestResult(device=device, alerts=alerts)


def trigger_device_alert(
    db: Session,
    device_id: int,
    principal: Principal,
    flag: DeviceAlertFlag,
    data: dict[str, Any] | None = None,
) -> IngestResult:
    """Explicit alert raised by the device (panic button, fall, ...)."""
    with device_locks.hold(device_id):
        device = get_device(db, device_id, principal)
        tourist = _owner_tourist(db, device)
        device.last_update = utcnow()

        breach = evaluate_device_alert(flag)
        with _tourist_held(db, tourist):
            alert = _raise_breach(
                db,
                device,
                tourist,
                breach,
                f"Alert triggered on device {device.device_code}: {flag.value}",
            )
            db.commit()
        db.refresh(device)

    alerts = [alert] if alert is not None else []
    for a in alerts:
        logger.info("Device %s raised %s (%s)", device.device_code, a.alert_id, a.severity)
        publish_alert_event(a, "alert.created")
    _publish_device_event(device, "device.alert", {"flag": flag.value, "severity": breach.severity, **(data or {})})
    return IngestResult(device=device, alerts=alerts)


def clear_device_flag(db: Session, device_id: int, principal: Principal, flag: DeviceAlertFlag) -> Device:
    """Flags stay raised until cleared here."""
    with device_locks.hold(device_id):
        device = get_device(db, device_id, principal)
        device.set_flag(flag, False)
        device.last_update = utcnow()
        db.commit()
        db.refresh(device)
    logger.info("Flag %s cleared on device %s", flag.value, device.device_code)
    return device


def ingest_location(
    db: Session,
    device_id: int,
    principal: Principal,
    longitude: float,
    latitude: float,
    address: str | None = None,
    accuracy: float | None = None,
    altitude: float | None = None,
    speed: float | None = None,
    heading: float | None = None,
) -> Device:
    """Store the device position and move the owning tourist there."""
    with device_locks.hold(device_id):
        device = get_device(db, device_id, principal)
        now = utcnow()
        device.longitude = longitude
        device.latitude = latitude
        device.address = address
        device.accuracy = accuracy
        device.altitude = altitude
        device.speed = speed
        device.heading = heading
        device.last_update = now

        tourist = _owner_tourist(db, device)
        with _tourist_held(db, tourist):
            if tourist is not None:
                previous = apply_location(tourist, longitude, latitude, address, accuracy, now)
                if previous is not None:
                    db.add(previous)
            db.commit()
        db.refresh(device)

    _publish_device_event(
        device,
        "device.location",
        {"longitude": longitude, "latitude": latitude, "address": address, "timestamp": now.isoformat()},
    )
    return device
