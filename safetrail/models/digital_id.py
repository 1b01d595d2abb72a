"""Digital ID card model.

Cards are append-only: once a row is flushed it is never updated or
deleted. Corrections are made by issuing a new card with a new serial and
the next version number.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safetrail.core.clock import as_utc, utcnow
from safetrail.core.errors import CardImmutableError
from safetrail.db.base import Base

if TYPE_CHECKING:
    from safetrail.models.tourist import Tourist


class DigitalIdCard(Base):
    __tablename__ = "digital_id_cards"
    __table_args__ = (
        UniqueConstraint("tourist_id", "version", name="uq_digital_id_cards_tourist_version"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tourist_id: Mapped[int] = mapped_column(ForeignKey("tourists.id", ondelete="CASCADE"), index=True, nullable=False)
    serial: Mapped[str] = mapped_column(String(40), unique=True, index=True, nullable=False)  # DID-2026-1234-123456
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    document_type: Mapped[str] = mapped_column(String(30), nullable=False)
    document_number: Mapped[str] = mapped_column(String(60), nullable=False)
    photo_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    qr_payload: Mapped[str] = mapped_column(Text, nullable=False)
    qr_payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    tourist: Mapped["Tourist"] = relationship(back_populates="digital_id_cards")

    def effective_status(self, now: datetime | None = None) -> str:
        """Stored status, or ``expired`` once past ``expires_at``."""
        now = now or utcnow()
        if now > as_utc(self.expires_at):
            return "expired"
        return self.status


@event.listens_for(DigitalIdCard, "before_update")
@event.listens_for(DigitalIdCard, "before_delete")
def _reject_card_rewrite(mapper, connection, target: DigitalIdCard) -> None:
    raise CardImmutableError(target.serial)
