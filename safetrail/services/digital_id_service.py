"""Digital ID issuance.

Issued cards are never modified. Each issuance appends a new card with its
own serial and the next version number for the tourist; the QR payload is
stored as canonical JSON next to a SHA-256 over serial + payload so a
scanned card can be checked against the store.
"""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from safetrail.core.alert_policies import MAX_ID_ATTEMPTS, STAFF_ROOM, tourist_room
from safetrail.core.clock import as_utc, utcnow
from safetrail.core.config import settings
from safetrail.core.deps import Principal
from safetrail.core.errors import CardImmutableError, DuplicateKeyError, NotFoundError, ValidationFailedError
from safetrail.core.fanout import fanout
from safetrail.core.locks import tourist_locks
from safetrail.db.session import insert_unique
from safetrail.models.digital_id import DigitalIdCard
from safetrail.models.user import User
from safetrail.services.tourist_service import get_or_create_placeholder, get_tourist_for_user

logger = logging.getLogger(__name__)


@dataclass
class CardVerification:
    serial: str
    valid: bool
    status: str
    reason: str | None = None
    card: DigitalIdCard | None = None


def generate_serial(tourist_code: str, now: datetime | None = None) -> str:
    """DID-<year>-<last 4 of tourist code>-<6 digits>."""
    now = now or utcnow()
    return f"DID-{now.year}-{tourist_code[-4:]}-{secrets.randbelow(900000) + 100000}"


def canonical_payload(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def payload_hash(serial: str, payload_json: str) -> str:
    return hashlib.sha256((serial + payload_json).encode("utf-8")).hexdigest()


def _serial_taken(db: Session, serial: str) -> bool:
    return db.execute(select(exists().where(DigitalIdCard.serial == serial))).scalar()


def _allocate_serial(db: Session, tourist_code: str, now: datetime) -> str:
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = generate_serial(tourist_code, now)
        if not _serial_taken(db, candidate):
            return candidate
    raise DuplicateKeyError("serial", MAX_ID_ATTEMPTS)


def _cards_for(db: Session, tourist_id: int) -> list[DigitalIdCard]:
    result = db.execute(
        select(DigitalIdCard)
        .where(DigitalIdCard.tourist_id == tourist_id)
        .order_by(DigitalIdCard.version)
    )
    return list(result.scalars().all())


def issue_digital_id(
    db: Session,
    user: User,
    document_type: str,
    document_number: str,
    photo_ref: str | None = None,
    valid_days: int | None = None,
) -> DigitalIdCard:
    """Append a new card for the user's tourist profile.

    A user without a profile gets a placeholder one first. Previously issued
    cards are left untouched.
    """
    valid_days = valid_days if valid_days is not None else settings.digital_id_default_valid_days
    if valid_days < 1:
        raise ValidationFailedError("valid_days must be at least 1", valid_days=valid_days)

    # user lock covers placeholder creation, tourist lock the version count
    with tourist_locks.hold(f"user:{user.id}"):
        tourist = get_or_create_placeholder(db, user)
        with tourist_locks.hold(tourist.id):
            now = utcnow()
            version = len(_cards_for(db, tourist.id)) + 1
            expires_at = now + timedelta(days=valid_days)

            def build() -> DigitalIdCard:
                serial = _allocate_serial(db, tourist.tourist_code, now)
                payload_json = canonical_payload(
                    {
                        "serial": serial,
                        "touristId": tourist.tourist_code,
                        "name": tourist.full_name,
                        "expiresAt": expires_at.isoformat(),
                    }
                )
                return DigitalIdCard(
                    tourist_id=tourist.id,
                    serial=serial,
                    version=version,
                    document_type=document_type,
                    document_number=document_number,
                    photo_ref=photo_ref,
                    qr_payload=payload_json,
                    qr_payload_hash=payload_hash(serial, payload_json),
                    issued_at=now,
                    expires_at=expires_at,
                    status="active",
                )

            card = insert_unique(db, build, lambda c: _serial_taken(db, c.serial), "serial", MAX_ID_ATTEMPTS)
            db.commit()
            db.refresh(card)

    logger.info("Digital ID %s (v%s) issued to tourist %s", card.serial, card.version, tourist.id)
    event_data = {"serial": card.serial, "tourist_id": tourist.id, "version": card.version, "expires_at": expires_at.isoformat()}
    fanout.publish(tourist_room(tourist.id), "digital_id.issued", event_data)
    fanout.publish(STAFF_ROOM, "digital_id.issued", event_data)
    return card


def get_current_digital_id(db: Session, user: User, now: datetime | None = None) -> DigitalIdCard:
    """Latest card for the user that has not expired."""
    now = now or utcnow()
    tourist = get_tourist_for_user(db, user.id)
    if tourist:
        for card in reversed(_cards_for(db, tourist.id)):
            if card.effective_status(now) == "active":
                return card
    raise NotFoundError("Digital ID", user_id=user.id)


def list_digital_id_history(db: Session, user: User) -> list[DigitalIdCard]:
    """Every card issued to the user, newest first."""
    tourist = get_tourist_for_user(db, user.id)
    if not tourist:
        return []
    return list(reversed(_cards_for(db, tourist.id)))


def get_card(db: Session, serial: str) -> DigitalIdCard:
    card = db.execute(select(DigitalIdCard).where(DigitalIdCard.serial == serial)).scalar_one_or_none()
    if not card:
        raise NotFoundError("Digital ID", serial=serial)
    return card


def verify_digital_id(db: Session, serial: str, now: datetime | None = None) -> CardVerification:
    """Recompute the payload hash and check expiry for a scanned serial."""
    now = now or utcnow()
    card = db.execute(select(DigitalIdCard).where(DigitalIdCard.serial == serial)).scalar_one_or_none()
    if not card:
        return CardVerification(serial=serial, valid=False, status="unknown", reason="Serial not found")
    if payload_hash(card.serial, card.qr_payload) != card.qr_payload_hash:
        logger.warning("Digital ID %s failed hash verification", serial)
        return CardVerification(serial=serial, valid=False, status=card.status, reason="Payload hash mismatch", card=card)
    status = card.effective_status(now)
    if status == "expired":
        return CardVerification(serial=serial, valid=False, status=status, reason=f"Expired at {as_utc(card.expires_at).isoformat()}", card=card)
    if status != "active":
        return CardVerification(serial=serial, valid=False, status=status, reason=f"Card is {status}", card=card)
    return CardVerification(serial=serial, valid=True, status=status, card=card)


def amend_digital_id(db: Session, serial: str, principal: Principal, **changes: Any) -> DigitalIdCard:
    """Issued cards cannot be changed; issue a new one instead.

    Tourists get the same 404 for a card that is not theirs as for an
    unknown serial.
    """
    card = db.execute(select(DigitalIdCard).where(DigitalIdCard.serial == serial)).scalar_one_or_none()
    if card is None or not (principal.is_privileged or card.tourist.user_id == principal.actor_id):
        raise NotFoundError("Digital ID", serial=serial)
    logger.info("Rejected amendment of digital ID %s (%s)", serial, ", ".join(sorted(changes)) or "no fields")
    raise CardImmutableError(card.serial)
