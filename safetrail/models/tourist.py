"""Tourist profile and location history models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, event, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safetrail.db.base import Base
from safetrail.services.safety_score import calculate_safety_score

if TYPE_CHECKING:
    from safetrail.models.digital_id import DigitalIdCard


class Tourist(Base):
    """Monitored traveler, linked 1:1 to a user account."""

    __tablename__ = "tourists"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    tourist_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)  # TST-2026-IND-1234

    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    nationality: Mapped[str] = mapped_column(String(60), nullable=False)
    passport_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(20), nullable=True)

    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    safety_score: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")  # active | inactive | missing | emergency | safe
    risk_level: Mapped[str] = mapped_column(String(20), nullable=False, default="low")  # low | medium | high | critical
    alerts_triggered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_placeholder: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_seen: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    digital_id_cards: Mapped[list["DigitalIdCard"]] = relationship(
        back_populates="tourist",
        order_by="DigitalIdCard.version",
        lazy="selectin",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class TouristLocation(Base):
    """Previous location of a tourist. Rows are only ever appended."""

    __tablename__ = "tourist_locations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tourist_id: Mapped[int] = mapped_column(ForeignKey("tourists.id", ondelete="CASCADE"), index=True, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


@event.listens_for(Tourist, "before_insert")
@event.listens_for(Tourist, "before_update")
def _recompute_safety_score(mapper, connection, target: Tourist) -> None:
    """Single recompute point: every flush of a tourist refreshes its score."""
    target.safety_score = calculate_safety_score(
        target.risk_level or "low",
        target.status or "active",
        target.alerts_triggered or 0,
    )
