"""Digital ID API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from safetrail.core.deps import Principal, get_current_user, get_principal, require_staff, require_tourist
from safetrail.db.session import get_db
from safetrail.models.digital_id import DigitalIdCard
from safetrail.models.tourist import Tourist
from safetrail.models.user import User
from safetrail.schemas.digital_id import (
    DigitalIdAmendRequest,
    DigitalIdIssueRequest,
    DigitalIdResponse,
    DigitalIdVerification,
)
from safetrail.services.digital_id_service import (
    amend_digital_id,
    get_card,
    get_current_digital_id,
    issue_digital_id,
    list_digital_id_history,
    verify_digital_id,
)

router = APIRouter(tags=["digital-id"])


def _card_response(card: DigitalIdCard) -> DigitalIdResponse:
    return DigitalIdResponse(
        serial=card.serial,
        version=card.version,
        tourist_id=card.tourist_id,
        document_type=card.document_type,
        document_number=card.document_number,
        photo_ref=card.photo_ref,
        qr_payload=card.qr_payload,
        qr_payload_hash=card.qr_payload_hash,
        issued_at=card.issued_at,
        expires_at=card.expires_at,
        status=card.effective_status(),
    )


# ---- Current tourist ----


@router.post("/tourists/me/digital-id", response_model=DigitalIdResponse, status_code=status.HTTP_201_CREATED)
def issue(
    data: DigitalIdIssueRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_tourist),
):
    """Issue a new card. Earlier cards stay valid until they expire."""
    card = issue_digital_id(
        db,
        current_user,
        data.document_type,
        data.document_number,
        photo_ref=data.photo_ref,
        valid_days=data.valid_days,
    )
    return _card_response(card)


@router.get("/tourists/me/digital-id", response_model=DigitalIdResponse)
def current(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Latest unexpired card."""
    return _card_response(get_current_digital_id(db, current_user))


@router.get("/tourists/me/digital-id/history", response_model=list[DigitalIdResponse])
def history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Every issued card, newest first."""
    return [_card_response(c) for c in list_digital_id_history(db, current_user)]


# ---- By serial ----


@router.get("/digital-id/{serial}", response_model=DigitalIdResponse)
def get_by_serial(
    serial: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """Look up a card by serial. Staff only."""
    return _card_response(get_card(db, serial))


@router.get("/digital-id/{serial}/verify", response_model=DigitalIdVerification)
def verify(
    serial: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """Check a scanned card: payload hash, expiry and status."""
    result = verify_digital_id(db, serial)
    verification = DigitalIdVerification(
        serial=result.serial,
        valid=result.valid,
        status=result.status,
        reason=result.reason,
    )
    if result.card is not None:
        tourist = db.get(Tourist, result.card.tourist_id)
        verification.tourist_code = tourist.tourist_code if tourist else None
        verification.name = tourist.full_name if tourist else None
        verification.expires_at = result.card.expires_at
    return verification


@router.patch("/digital-id/{serial}", response_model=DigitalIdResponse)
def amend(
    serial: str,
    data: DigitalIdAmendRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Always rejected: 403 for a card the caller may see, 404 otherwise."""
    return _card_response(amend_digital_id(db, serial, principal, **data.model_dump(exclude_unset=True)))
