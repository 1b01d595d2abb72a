"""Automatic escalation of alerts nobody has acted on."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from safetrail.core.alert_policies import ESCALATION_SEVERITIES, ESCALATION_STATUSES
from safetrail.core.clock import as_utc, utcnow
from safetrail.core.config import settings
from safetrail.core.errors import InvalidTransitionError, NotFoundError
from safetrail.models.alert import Alert, AlertTimelineEntry
from safetrail.services.alert_service import escalate_alert
from safetrail.services.auth_service import list_staff_user_ids

logger = logging.getLogger(__name__)

AUTOMATIC_ESCALATION_REASON = "Automatic escalation"


@dataclass(frozen=True)
class EscalationPolicy:
    attention_window: timedelta
    severities: frozenset[str] = field(default=ESCALATION_SEVERITIES)
    statuses: frozenset[str] = field(default=ESCALATION_STATUSES)

    @classmethod
    def from_settings(cls) -> "EscalationPolicy":
        return cls(attention_window=timedelta(minutes=settings.escalation_attention_window_minutes))


def find_needing_attention(db: Session, policy: EscalationPolicy, now: datetime | None = None) -> list[Alert]:
    """Alerts in scope whose last timeline entry is older than the attention window."""
    now = now or utcnow()
    last_entry = (
        select(AlertTimelineEntry.alert_pk, func.max(AlertTimelineEntry.timestamp).label("last_at"))
        .group_by(AlertTimelineEntry.alert_pk)
        .subquery()
    )
    rows = db.execute(
        select(Alert, last_entry.c.last_at)
        .join(last_entry, last_entry.c.alert_pk == Alert.id)
        .where(
            Alert.is_active.is_(True),
            Alert.severity.in_(sorted(policy.severities)),
            Alert.status.in_(sorted(policy.statuses)),
        )
        .order_by(Alert.created_at)
    ).all()
    # compared in Python: SQLite hands back naive datetimes
    return [alert for alert, last_at in rows if now - as_utc(last_at) > policy.attention_window]


def run_escalation_sweep(db: Session, policy: EscalationPolicy, now: datetime | None = None) -> list[str]:
    """Escalate every alert needing attention to all active staff users.

    Returns the ids of escalated alerts. Alerts that changed state between
    the query and the escalation are skipped.
    """
    candidates = find_needing_attention(db, policy, now)
    if not candidates:
        return []
    staff_ids = list_staff_user_ids(db)
    if not staff_ids:
        logger.warning("%s alerts need attention but no staff users are active", len(candidates))
        return []

    escalated: list[str] = []
    for alert_id in [alert.alert_id for alert in candidates]:
        try:
            escalate_alert(db, alert_id, None, staff_ids, AUTOMATIC_ESCALATION_REASON)
        except (InvalidTransitionError, NotFoundError) as e:
            logger.info("Skipping escalation of %s: %s", alert_id, e)
            continue
        escalated.append(alert_id)
    if escalated:
        logger.info("Escalation sweep escalated %s alert(s)", len(escalated))
    return escalated


def _sweep_once(session_factory: Callable[[], Session], policy: EscalationPolicy) -> list[str]:
    db = session_factory()
    try:
        return run_escalation_sweep(db, policy)
    finally:
        db.close()


async def escalation_loop(
    session_factory: Callable[[], Session],
    policy: EscalationPolicy,
    interval_seconds: float,
) -> None:
    """Run the sweep forever, off the event loop, until cancelled."""
    logger.info("Escalation sweep started (every %ss, window %s)", interval_seconds, policy.attention_window)
    while True:
        try:
            await asyncio.to_thread(_sweep_once, session_factory, policy)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Escalation sweep failed")
        await asyncio.sleep(interval_seconds)
