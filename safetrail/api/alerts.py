"""Alerts API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from safetrail.core.deps import Principal, get_principal, require_staff
from safetrail.db.session import get_db
from safetrail.models.alert import AlertSeverity, AlertStatus, AlertType
from safetrail.schemas.alert import (
    AcknowledgeRequest,
    ActionRequest,
    AlertResponse,
    EscalateRequest,
    FalseAlarmRequest,
    ResolveRequest,
    build_alert_response,
)
from safetrail.services.alert_service import (
    acknowledge_alert,
    add_action,
    escalate_alert,
    get_alert,
    list_alerts,
    list_critical_active,
    mark_false_alarm,
    resolve_alert,
    soft_delete_alert,
)
from safetrail.services.tourist_service import get_tourist_for_user

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertResponse])
def list_all(
    status_filter: AlertStatus | None = Query(default=None, alias="status"),
    severity: AlertSeverity | None = None,
    type: AlertType | None = None,
    tourist_id: int | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """List alerts, newest first. Tourists only ever see their own."""
    if not principal.is_privileged:
        tourist = get_tourist_for_user(db, principal.actor_id)
        if not tourist:
            return []
        tourist_id = tourist.id
    alerts = list_alerts(
        db,
        status=status_filter.value if status_filter else None,
        severity=severity.value if severity else None,
        alert_type=type.value if type else None,
        tourist_id=tourist_id,
        limit=limit,
        offset=offset,
    )
    return [build_alert_response(a) for a in alerts]


# ---- Fixed path before {alert_id} ----


@router.get("/critical/active", response_model=list[AlertResponse])
def critical_active(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """Critical alerts still awaiting resolution. Staff only."""
    return [build_alert_response(a) for a in list_critical_active(db)]


@router.get("/{alert_id}", response_model=AlertResponse)
def get_one(
    alert_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Get alert with timeline. Owner tourist or staff."""
    return build_alert_response(get_alert(db, alert_id, principal))


@router.put("/{alert_id}/acknowledge", response_model=AlertResponse)
def acknowledge(
    alert_id: str,
    data: AcknowledgeRequest | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Acknowledge an active alert."""
    d = data or AcknowledgeRequest()
    return build_alert_response(acknowledge_alert(db, alert_id, principal, d.notes))


@router.put("/{alert_id}/resolve", response_model=AlertResponse)
def resolve(
    alert_id: str,
    data: ResolveRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Resolve an alert. Staff only."""
    return build_alert_response(resolve_alert(db, alert_id, principal, data.resolution, data.notes))


@router.put("/{alert_id}/false-alarm", response_model=AlertResponse)
def false_alarm(
    alert_id: str,
    data: FalseAlarmRequest | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Close an alert as a false alarm. Staff only."""
    d = data or FalseAlarmRequest()
    return build_alert_response(mark_false_alarm(db, alert_id, principal, d.reason))


@router.post("/{alert_id}/actions", response_model=AlertResponse)
def record_action(
    alert_id: str,
    data: ActionRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Record a response action on an open alert."""
    return build_alert_response(add_action(db, alert_id, principal, data.action, data.notes))


@router.post("/{alert_id}/escalate", response_model=AlertResponse)
def escalate(
    alert_id: str,
    data: EscalateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Escalate to more responders. Staff only."""
    return build_alert_response(escalate_alert(db, alert_id, principal, data.escalated_to, data.reason))


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    alert_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Soft-delete an alert. Staff only."""
    soft_delete_alert(db, alert_id, principal)
