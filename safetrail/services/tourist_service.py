"""Tourist profile service."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime

from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from safetrail.core.alert_policies import MANUAL_CONFIDENCE, MAX_ID_ATTEMPTS
from safetrail.core.clock import utcnow
from safetrail.core.errors import DuplicateKeyError, NotFoundError, ValidationFailedError
from safetrail.core.locks import tourist_locks
from safetrail.db.session import insert_unique
from safetrail.models.alert import Alert
from safetrail.models.tourist import Tourist, TouristLocation
from safetrail.models.user import User
from safetrail.schemas.tourist import TouristProfileCreate, TouristProfileUpdate
from safetrail.services.alert_service import AlertLocation, create_alert, publish_alert_event

logger = logging.getLogger(__name__)


# ---------- Identifiers ----------


def generate_tourist_code(nationality: str, now: datetime | None = None) -> str:
    """TST-<year>-<first 3 letters of nationality>-<4 digits>."""
    now = now or utcnow()
    prefix = (nationality or "UNK")[:3].upper()
    return f"TST-{now.year}-{prefix}-{secrets.randbelow(9000) + 1000}"


def _tourist_code_taken(db: Session, code: str) -> bool:
    return db.execute(select(exists().where(Tourist.tourist_code == code))).scalar()


def passport_taken(db: Session, passport_number: str) -> bool:
    return db.execute(select(exists().where(Tourist.passport_number == passport_number))).scalar()


def allocate_tourist_code(db: Session, nationality: str) -> str:
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = generate_tourist_code(nationality)
        if not _tourist_code_taken(db, candidate):
            return candidate
    raise DuplicateKeyError("tourist_code", MAX_ID_ATTEMPTS)


def _allocate_temporary_passport(db: Session, user_id: int) -> str:
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = f"TEMP-{user_id}-{secrets.token_hex(3).upper()}"
        if not passport_taken(db, candidate):
            return candidate
    raise DuplicateKeyError("passport_number", MAX_ID_ATTEMPTS)


# ---------- Lookup ----------


def get_tourist_for_user(db: Session, user_id: int) -> Tourist | None:
    """Tourist profile owned by a user, if any."""
    return db.execute(select(Tourist).where(Tourist.user_id == user_id)).scalar_one_or_none()


def get_my_profile(db: Session, user: User) -> Tourist:
    tourist = get_tourist_for_user(db, user.id)
    if not tourist or not tourist.is_active:
        raise NotFoundError("Tourist profile", user_id=user.id)
    return tourist


def get_tourist(db: Session, tourist_id: int) -> Tourist:
    tourist = db.get(Tourist, tourist_id)
    if not tourist or not tourist.is_active:
        raise NotFoundError("Tourist", tourist_id=tourist_id)
    return tourist


def list_tourists(
    db: Session,
    *,
    status: str | None = None,
    risk_level: str | None = None,
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Tourist]:
    """List active tourists, newest first."""
    stmt = select(Tourist).where(Tourist.is_active.is_(True))
    if status:
        stmt = stmt.where(Tourist.status == status)
    if risk_level:
        stmt = stmt.where(Tourist.risk_level == risk_level)
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(
            func.lower(Tourist.first_name).like(pattern)
            | func.lower(Tourist.last_name).like(pattern)
            | func.lower(Tourist.tourist_code).like(pattern)
            | func.lower(Tourist.nationality).like(pattern)
        )
    stmt = stmt.order_by(Tourist.created_at.desc(), Tourist.id.desc()).limit(limit).offset(offset)
    return list(db.execute(stmt).scalars().all())


# ---------- Profile ----------


def create_profile(db: Session, user: User, data: TouristProfileCreate) -> Tourist:
    """Set up the tourist profile for a user.

    A placeholder profile created during digital ID issuance is completed in
    place; its tourist code is kept so issued cards stay linked to it.
    """
    with tourist_locks.hold(f"user:{user.id}"):
        tourist = get_tourist_for_user(db, user.id)
        if tourist and not tourist.is_placeholder:
            raise ValidationFailedError("Tourist profile already exists", tourist_id=tourist.id)
        if passport_taken(db, data.passport_number):
            raise ValidationFailedError("Passport number already registered")

        fields = {
            "first_name": data.first_name,
            "last_name": data.last_name,
            "nationality": data.nationality,
            "passport_number": data.passport_number,
            "phone_number": data.phone_number,
            "is_placeholder": False,
            "last_seen": utcnow(),
        }
        if tourist is None:
            try:
                tourist = insert_unique(
                    db,
                    lambda: Tourist(
                        user_id=user.id,
                        tourist_code=allocate_tourist_code(db, data.nationality),
                        status="active",
                        risk_level="low",
                        alerts_triggered=0,
                        **fields,
                    ),
                    lambda t: _tourist_code_taken(db, t.tourist_code),
                    "tourist_code",
                    MAX_ID_ATTEMPTS,
                )
            except IntegrityError:
                if passport_taken(db, data.passport_number):
                    raise ValidationFailedError("Passport number already registered") from None
                raise
        else:
            for name, value in fields.items():
                setattr(tourist, name, value)
        db.commit()
        db.refresh(tourist)

    logger.info("Tourist profile %s set up for user %s", tourist.tourist_code, user.id)
    return tourist


def get_or_create_placeholder(db: Session, user: User) -> Tourist:
    """Tourist profile for a user, synthesizing a placeholder when missing.

    The caller commits. Names come from the account's full name; nationality
    and passport get temporary values until the profile is set up.
    """
    tourist = get_tourist_for_user(db, user.id)
    if tourist:
        return tourist

    first, _, last = (user.full_name or "").strip().partition(" ")
    tourist = insert_unique(
        db,
        lambda: Tourist(
            user_id=user.id,
            tourist_code=allocate_tourist_code(db, "Unknown"),
            first_name=(first or "Tourist")[:50],
            last_name=(last.strip() or "User")[:50],
            nationality="Unknown",
            passport_number=_allocate_temporary_passport(db, user.id),
            status="active",
            risk_level="low",
            alerts_triggered=0,
            is_placeholder=True,
        ),
        lambda t: _tourist_code_taken(db, t.tourist_code) or passport_taken(db, t.passport_number),
        "tourist_code",
        MAX_ID_ATTEMPTS,
    )
    logger.info("Placeholder tourist profile %s created for user %s", tourist.tourist_code, user.id)
    return tourist


def update_profile(db: Session, tourist: Tourist, data: TouristProfileUpdate) -> Tourist:
    for field_name, value in data.model_dump(exclude_unset=True).items():
        setattr(tourist, field_name, value)
    db.commit()
    db.refresh(tourist)
    return tourist


# ---------- Location ----------


def apply_location(
    tourist: Tourist,
    longitude: float,
    latitude: float,
    address: str | None = None,
    accuracy: float | None = None,
    now: datetime | None = None,
) -> TouristLocation | None:
    """Move the current location into history and set the new one. Caller commits."""
    now = now or utcnow()
    previous = None
    if tourist.longitude is not None and tourist.latitude is not None:
        previous = TouristLocation(
            tourist_id=tourist.id,
            longitude=tourist.longitude,
            latitude=tourist.latitude,
            address=tourist.address,
            accuracy=tourist.accuracy,
            recorded_at=tourist.location_updated_at or now,
        )
    tourist.longitude = longitude
    tourist.latitude = latitude
    tourist.address = address
    tourist.accuracy = accuracy
    tourist.location_updated_at = now
    tourist.last_seen = now
    return previous


def update_location(
    db: Session,
    tourist: Tourist,
    longitude: float,
    latitude: float,
    address: str | None = None,
    accuracy: float | None = None,
) -> Tourist:
    with tourist_locks.hold(tourist.id):
        db.refresh(tourist)
        previous = apply_location(tourist, longitude, latitude, address, accuracy)
        if previous is not None:
            db.add(previous)
        db.commit()
        db.refresh(tourist)
    return tourist


def location_history(db: Session, tourist_id: int, limit: int = 50) -> list[TouristLocation]:
    result = db.execute(
        select(TouristLocation)
        .where(TouristLocation.tourist_id == tourist_id)
        .order_by(TouristLocation.recorded_at.desc(), TouristLocation.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# ---------- Emergency ----------


def trigger_emergency(db: Session, user: User, emergency_type: str, description: str | None = None) -> Alert:
    """Manual emergency: critical alert at the tourist's last known location."""
    tourist = get_my_profile(db, user)
    with tourist_locks.hold(tourist.id):
        db.refresh(tourist)
        alert = create_alert(
            db,
            tourist,
            alert_type="emergency",
            severity="critical",
            title=f"Emergency Alert - {emergency_type}",
            description=description or f"Emergency alert triggered by {tourist.full_name}",
            source="manual",
            confidence=MANUAL_CONFIDENCE,
            priority=10,
            location=AlertLocation(tourist.longitude, tourist.latitude, tourist.address, tourist.accuracy),
            data={"emergency_type": emergency_type, "triggered_by": "tourist"},
            actor_id=user.id,
            commit=False,
        )
        tourist.status = "emergency"
        db.commit()
        db.refresh(alert)

    logger.warning("Emergency %s (%s) triggered by tourist %s", alert.alert_id, emergency_type, tourist.id)
    publish_alert_event(alert, "alert.created")
    return alert


# ---------- Staff operations ----------


def update_tourist_status(
    db: Session,
    tourist_id: int,
    status: str | None = None,
    risk_level: str | None = None,
) -> Tourist:
    """Change status and/or risk level; the safety score follows on flush."""
    with tourist_locks.hold(tourist_id):
        tourist = get_tourist(db, tourist_id)
        db.refresh(tourist)
        if status is not None:
            tourist.status = status
        if risk_level is not None:
            tourist.risk_level = risk_level
        db.commit()
        db.refresh(tourist)
    logger.info("Tourist %s now status=%s risk=%s", tourist_id, tourist.status, tourist.risk_level)
    return tourist


def deactivate_tourist(db: Session, tourist_id: int) -> None:
    with tourist_locks.hold(tourist_id):
        tourist = get_tourist(db, tourist_id)
        tourist.is_active = False
        tourist.status = "inactive"
        db.commit()
    logger.info("Tourist %s deactivated", tourist_id)
