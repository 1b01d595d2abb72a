"""Alert lifecycle service.

States: active -> acknowledged -> resolved | false_alarm, with active also
allowed to go straight to resolved or false_alarm. Escalations and response
actions are recorded on any non-terminal alert without changing its status.

Every transition runs under a per-alert lock, reloads the row, appends to the
timeline and commits. The ``version`` column on Alert rejects writers from
other processes that loaded an older copy.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from safetrail.core.alert_policies import MAX_ID_ATTEMPTS, STAFF_ROOM, tourist_room
from safetrail.core.clock import utcnow
from safetrail.core.deps import Principal
from safetrail.core.errors import (
    DuplicateKeyError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from safetrail.core.fanout import fanout
from safetrail.core.locks import alert_locks
from safetrail.db.session import insert_unique
from safetrail.models.alert import Alert, AlertAction, AlertStatus, AlertTimelineEntry
from safetrail.models.device import Device
from safetrail.models.tourist import Tourist
from safetrail.services.safety_score import calculate_safety_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertLocation:
    longitude: float | None = None
    latitude: float | None = None
    address: str | None = None
    accuracy: float | None = None


# ---------- Identifiers ----------


def _generate_alert_id(now: datetime) -> str:
    return f"ALT-{now.year}-{secrets.randbelow(900000) + 100000}"


def _alert_id_taken(db: Session, alert_id: str) -> bool:
    return db.execute(select(exists().where(Alert.alert_id == alert_id))).scalar()


def allocate_alert_id(db: Session, now: datetime | None = None) -> str:
    """Random ALT-<year>-<6 digits> id not yet present in the store."""
    now = now or utcnow()
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = _generate_alert_id(now)
        if not _alert_id_taken(db, candidate):
            return candidate
    raise DuplicateKeyError("alert_id", MAX_ID_ATTEMPTS)


# ---------- Creation ----------


def _count_alert(db: Session, tourist: Tourist) -> None:
    """Increment ``alerts_triggered`` in the store and rescore the tourist.

    The increment runs as one UPDATE in the store, never as a read-modify-write
    in Python; the new count is read back before scoring.
    """
    db.execute(
        update(Tourist)
        .where(Tourist.id == tourist.id)
        .values(alerts_triggered=Tourist.alerts_triggered + 1)
        .execution_options(synchronize_session=False)
    )
    db.refresh(tourist, attribute_names=["alerts_triggered"])
    tourist.safety_score = calculate_safety_score(tourist.risk_level, tourist.status, tourist.alerts_triggered)


def create_alert(
    db: Session,
    tourist: Tourist,
    *,
    alert_type: str,
    severity: str,
    title: str,
    description: str,
    source: str,
    confidence: int = 80,
    priority: int = 5,
    location: AlertLocation | None = None,
    device: Device | None = None,
    data: dict[str, Any] | None = None,
    actor_id: int | None = None,
    commit: bool = True,
) -> Alert:
    """Create an active alert for a tourist and count it against their score.

    With ``commit=False`` the caller owns the transaction and must publish
    the ``alert.created`` event itself once committed.
    """
    now = utcnow()
    loc = location or AlertLocation()
    data = data or {}

    def build() -> Alert:
        alert = Alert(
            alert_id=allocate_alert_id(db, now),
            tourist_id=tourist.id,
            device_id=device.id if device else None,
            type=alert_type,
            severity=severity,
            status=AlertStatus.active.value,
            title=title[:200],
            description=description[:1000],
            longitude=loc.longitude,
            latitude=loc.latitude,
            address=loc.address,
            accuracy=loc.accuracy,
            heart_rate=data.get("heart_rate"),
            temperature=data.get("temperature"),
            device_flag=data.get("device_flag"),
            device_code=device.device_code if device else data.get("device_code"),
            emergency_type=data.get("emergency_type"),
            triggered_by=data.get("triggered_by"),
            source=source,
            confidence=confidence,
            priority=priority,
            escalation_level=1,
            escalated_to=[],
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        alert.timeline.append(
            AlertTimelineEntry(
                timestamp=now,
                event="created",
                description="Alert created",
                actor_id=actor_id,
                data={"type": alert_type, "severity": severity},
            )
        )
        return alert

    _count_alert(db, tourist)
    alert = insert_unique(
        db,
        build,
        lambda a: _alert_id_taken(db, a.alert_id),
        "alert_id",
        MAX_ID_ATTEMPTS,
    )
    if commit:
        db.commit()
        db.refresh(alert)
        logger.info("Alert %s created for tourist %s (%s/%s)", alert.alert_id, tourist.id, alert_type, severity)
        publish_alert_event(alert, "alert.created")
    return alert


# ---------- Loading & permissions ----------


def _load_alert(db: Session, alert_id: str) -> Alert:
    alert = db.execute(
        select(Alert)
        .where(Alert.alert_id == alert_id, Alert.is_active.is_(True))
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not alert:
        raise NotFoundError("Alert", alert_id=alert_id)
    return alert


def _owns_alert(db: Session, alert: Alert, principal: Principal) -> bool:
    tourist = db.get(Tourist, alert.tourist_id)
    return tourist is not None and tourist.user_id == principal.actor_id


def _require_access(db: Session, alert: Alert, principal: Principal) -> None:
    if principal.is_privileged or _owns_alert(db, alert, principal):
        return
    raise ForbiddenError("Access denied to this alert", alert_id=alert.alert_id)


def _require_staff(principal: Principal | None, operation: str) -> None:
    if principal is not None and not principal.is_privileged:
        raise ForbiddenError(f"Insufficient permissions to {operation} alerts")


def _require_not_terminal(alert: Alert, operation: str) -> None:
    if alert.is_terminal:
        raise InvalidTransitionError(alert.alert_id, alert.status, operation)


def _append_timeline(
    alert: Alert,
    now: datetime,
    event: str,
    description: str,
    actor_id: int | None = None,
    data: dict[str, Any] | None = None,
) -> None:
    alert.timeline.append(
        AlertTimelineEntry(timestamp=now, event=event, description=description, actor_id=actor_id, data=data)
    )
    alert.updated_at = now


def _commit_transition(db: Session, alert: Alert, operation: str) -> None:
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        current = _load_alert(db, alert.alert_id)
        logger.warning("Concurrent update rejected for %s during %s", alert.alert_id, operation)
        raise InvalidTransitionError(current.alert_id, current.status, operation)
    db.refresh(alert)


# ---------- Transitions ----------


def acknowledge_alert(db: Session, alert_id: str, principal: Principal, notes: str | None = None) -> Alert:
    """Acknowledge an active alert. Owner tourist or staff."""
    with alert_locks.hold(alert_id):
        alert = _load_alert(db, alert_id)
        _require_access(db, alert, principal)
        if alert.status != AlertStatus.active.value:
            raise InvalidTransitionError(alert.alert_id, alert.status, "acknowledge")

        now = utcnow()
        alert.status = AlertStatus.acknowledged.value
        alert.acknowledged_by = principal.actor_id
        alert.acknowledged_at = now
        _append_timeline(alert, now, "acknowledged", notes or "Alert acknowledged", principal.actor_id)
        _commit_transition(db, alert, "acknowledge")

    logger.info("Alert %s acknowledged by user %s", alert_id, principal.actor_id)
    publish_alert_event(alert, "alert.acknowledged")
    return alert


def resolve_alert(
    db: Session,
    alert_id: str,
    principal: Principal,
    resolution: str,
    notes: str | None = None,
) -> Alert:
    """Resolve an active or acknowledged alert. Staff only."""
    with alert_locks.hold(alert_id):
        alert = _load_alert(db, alert_id)
        _require_staff(principal, "resolve")
        _require_not_terminal(alert, "resolve")

        now = utcnow()
        alert.status = AlertStatus.resolved.value
        alert.resolved_by = principal.actor_id
        alert.resolved_at = now
        alert.resolution = resolution
        _append_timeline(
            alert, now, "resolved", notes or "Alert resolved", principal.actor_id, {"resolution": resolution}
        )
        _commit_transition(db, alert, "resolve")

    logger.info("Alert %s resolved by user %s", alert_id, principal.actor_id)
    publish_alert_event(alert, "alert.resolved")
    return alert


def mark_false_alarm(db: Session, alert_id: str, principal: Principal, reason: str | None = None) -> Alert:
    """Close an active or acknowledged alert as a false alarm. Staff only."""
    with alert_locks.hold(alert_id):
        alert = _load_alert(db, alert_id)
        _require_staff(principal, "mark false alarm on")
        _require_not_terminal(alert, "mark false alarm on")

        now = utcnow()
        alert.status = AlertStatus.false_alarm.value
        alert.resolved_by = principal.actor_id
        alert.resolved_at = now
        alert.resolution = reason or "Marked as false alarm"
        _append_timeline(
            alert, now, "false_alarm", reason or "Alert marked as false alarm", principal.actor_id
        )
        _commit_transition(db, alert, "mark false alarm on")

    logger.info("Alert %s marked false alarm by user %s", alert_id, principal.actor_id)
    publish_alert_event(alert, "alert.false_alarm")
    return alert


def add_action(
    db: Session,
    alert_id: str,
    principal: Principal,
    action: str,
    notes: str | None = None,
) -> Alert:
    """Record a response action. Owner tourist or staff, non-terminal alerts only."""
    with alert_locks.hold(alert_id):
        alert = _load_alert(db, alert_id)
        _require_access(db, alert, principal)
        _require_not_terminal(alert, "add action to")

        now = utcnow()
        alert.actions.append(
            AlertAction(action=action, performed_by=principal.actor_id, performed_at=now, notes=notes)
        )
        _append_timeline(
            alert, now, "action_taken", notes or f"Action: {action}", principal.actor_id, {"action": action}
        )
        _commit_transition(db, alert, "add action to")

    publish_alert_event(alert, "alert.action_added")
    return alert


def escalate_alert(
    db: Session,
    alert_id: str,
    principal: Principal | None,
    escalated_to: list[int],
    reason: str | None = None,
) -> Alert:
    """Raise the escalation level by one and add recipients.

    Recipients accumulate across calls without de-duplication so the audit
    trail shows every escalation target. ``principal=None`` is the
    automatic escalation sweep.
    """
    if not escalated_to:
        raise ValidationFailedError("At least one user must be specified for escalation")

    with alert_locks.hold(alert_id):
        alert = _load_alert(db, alert_id)
        _require_staff(principal, "escalate")
        _require_not_terminal(alert, "escalate")

        now = utcnow()
        alert.escalation_level = alert.escalation_level + 1
        alert.escalated_at = now
        alert.escalated_to = [*(alert.escalated_to or []), *escalated_to]
        _append_timeline(
            alert,
            now,
            "escalated",
            reason or "Alert escalated",
            principal.actor_id if principal else None,
            {"level": alert.escalation_level, "escalated_to": list(escalated_to)},
        )
        _commit_transition(db, alert, "escalate")

    logger.info("Alert %s escalated to level %s", alert_id, alert.escalation_level)
    publish_alert_event(alert, "alert.escalated")
    return alert


def soft_delete_alert(db: Session, alert_id: str, principal: Principal) -> None:
    """Hide an alert from every read path. Staff only."""
    with alert_locks.hold(alert_id):
        alert = _load_alert(db, alert_id)
        _require_staff(principal, "delete")
        alert.is_active = False
        alert.updated_at = utcnow()
        _commit_transition(db, alert, "delete")
    logger.info("Alert %s soft-deleted by user %s", alert_id, principal.actor_id)


# ---------- Reads ----------


def get_alert(db: Session, alert_id: str, principal: Principal) -> Alert:
    """Get an alert. Only the owning tourist or staff can view."""
    alert = _load_alert(db, alert_id)
    _require_access(db, alert, principal)
    return alert


def list_alerts(
    db: Session,
    *,
    status: str | None = None,
    severity: str | None = None,
    alert_type: str | None = None,
    tourist_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Alert]:
    """List active (not deleted) alerts, newest first."""
    stmt = select(Alert).where(Alert.is_active.is_(True))
    if status:
        stmt = stmt.where(Alert.status == status)
    if severity:
        stmt = stmt.where(Alert.severity == severity)
    if alert_type:
        stmt = stmt.where(Alert.type == alert_type)
    if tourist_id is not None:
        stmt = stmt.where(Alert.tourist_id == tourist_id)
    stmt = stmt.order_by(Alert.created_at.desc(), Alert.id.desc()).limit(limit).offset(offset)
    return list(db.execute(stmt).scalars().all())


def list_tourist_alerts(db: Session, tourist_id: int, limit: int = 50) -> list[Alert]:
    return list_alerts(db, tourist_id=tourist_id, limit=limit)


def list_critical_active(db: Session) -> list[Alert]:
    """Critical alerts still awaiting resolution."""
    result = db.execute(
        select(Alert)
        .where(
            Alert.is_active.is_(True),
            Alert.severity == "critical",
            Alert.status.in_([AlertStatus.active.value, AlertStatus.acknowledged.value]),
        )
        .order_by(Alert.created_at.desc(), Alert.id.desc())
    )
    return list(result.scalars().all())


# ---------- Fan-out ----------


def alert_event_payload(alert: Alert) -> dict[str, Any]:
    return {
        "alert_id": alert.alert_id,
        "tourist_id": alert.tourist_id,
        "device_id": alert.device_id,
        "type": alert.type,
        "severity": alert.severity,
        "status": alert.status,
        "escalation_level": alert.escalation_level,
        "title": alert.title,
        "timestamp": utcnow().isoformat(),
    }


def publish_alert_event(alert: Alert, event: str) -> None:
    """Push an alert event to the tourist's room and the staff room."""
    payload = alert_event_payload(alert)
    fanout.publish(tourist_room(alert.tourist_id), event, payload)
    fanout.publish(STAFF_ROOM, event, payload)
