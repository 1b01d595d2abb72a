"""Alert model with its append-only timeline and response actions."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, event, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safetrail.core.errors import TimelineImmutableError
from safetrail.db.base import Base


class AlertType(str, enum.Enum):
    emergency = "emergency"
    panic = "panic"
    medical = "medical"
    location = "location"
    device = "device"
    geofence = "geofence"
    weather = "weather"
    security = "security"
    system = "system"
    maintenance = "maintenance"


class AlertSeverity(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class AlertStatus(str, enum.Enum):
    active = "active"
    acknowledged = "acknowledged"
    resolved = "resolved"
    false_alarm = "false_alarm"
    escalated = "escalated"


class Alert(Base):
    """Safety event raised for a tourist."""

    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    alert_id: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)  # ALT-2026-123456
    tourist_id: Mapped[int] = mapped_column(ForeignKey("tourists.id", ondelete="CASCADE"), index=True, nullable=False)
    device_id: Mapped[int | None] = mapped_column(ForeignKey("devices.id", ondelete="SET NULL"), index=True, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    # location at time of alert
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)

    # trigger data
    heart_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    device_flag: Mapped[str | None] = mapped_column(String(30), nullable=True)
    device_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    emergency_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    triggered_by: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # metadata
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # device | manual | system | api | admin
    confidence: Mapped[int] = mapped_column(Integer, nullable=False, default=80)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    # response
    acknowledged_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # escalation
    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    escalated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    escalated_to: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    timeline: Mapped[list["AlertTimelineEntry"]] = relationship(
        order_by="AlertTimelineEntry.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    actions: Mapped[list["AlertAction"]] = relationship(
        order_by="AlertAction.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in (AlertStatus.resolved.value, AlertStatus.false_alarm.value)


class AlertTimelineEntry(Base):
    """One recorded transition of an alert."""

    __tablename__ = "alert_timeline"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    alert_pk: Mapped[int] = mapped_column(ForeignKey("alerts.id", ondelete="CASCADE"), index=True, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    event: Mapped[str] = mapped_column(String(32), nullable=False)  # created | acknowledged | resolved | false_alarm | action_taken | escalated
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class AlertAction(Base):
    """Response action recorded against an alert."""

    __tablename__ = "alert_actions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    alert_pk: Mapped[int] = mapped_column(ForeignKey("alerts.id", ondelete="CASCADE"), index=True, nullable=False)
    action: Mapped[str] = mapped_column(String(200), nullable=False)
    performed_by: Mapped[int] = mapped_column(Integer, nullable=False)
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)


@event.listens_for(AlertTimelineEntry, "before_update")
@event.listens_for(AlertTimelineEntry, "before_delete")
def _reject_timeline_rewrite(mapper, connection, target: AlertTimelineEntry) -> None:
    raise TimelineImmutableError(target.id, target.alert_pk)
