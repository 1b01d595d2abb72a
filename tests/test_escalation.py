"""Escalation tests: manual escalation and the automatic sweep."""

from datetime import timedelta

import pytest

from safetrail.core.clock import utcnow
from safetrail.core.deps import Principal
from safetrail.core.errors import ValidationFailedError
from safetrail.services.alert_service import escalate_alert, get_alert
from safetrail.services.escalation_service import (
    AUTOMATIC_ESCALATION_REASON,
    EscalationPolicy,
    find_needing_attention,
    run_escalation_sweep,
)


def _emergency_alert_id(client, headers):
    r = client.post("/tourists/me/emergency", headers=headers, json={"type": "medical"})
    assert r.status_code == 201, r.text
    return r.json()["alert_id"]


def test_escalation_accumulates_targets(client, make_tourist, make_user, staff, published):
    """Each escalation adds one level and appends recipients without de-duplication."""
    t_headers, _ = make_tourist("esc")
    s_headers, _ = staff
    _, gov_a = make_user("gov_a", role="government")
    _, gov_b = make_user("gov_b", role="government")
    alert_id = _emergency_alert_id(client, t_headers)

    r = client.post(f"/alerts/{alert_id}/escalate", headers=s_headers, json={"escalated_to": [gov_a["id"]]})
    assert r.status_code == 200
    assert r.json()["escalation"]["level"] == 2
    assert r.json()["escalation"]["escalated_at"] is not None

    r = client.post(
        f"/alerts/{alert_id}/escalate",
        headers=s_headers,
        json={"escalated_to": [gov_b["id"], gov_a["id"]], "reason": "No response from district"},
    )
    body = r.json()
    assert body["escalation"]["level"] == 3
    assert body["escalation"]["escalated_to"] == [gov_a["id"], gov_b["id"], gov_a["id"]]
    assert body["status"] == "active"
    assert [e["event"] for e in body["timeline"]] == ["created", "escalated", "escalated"]
    assert body["timeline"][-1]["description"] == "No response from district"
    assert body["timeline"][1]["description"] == "Alert escalated"

    assert [event for room, event, _ in published if room == "staff_room"].count("alert.escalated") == 2


def test_escalation_needs_targets(client, make_tourist, staff, session_factory, published):
    t_headers, _ = make_tourist("esc_empty")
    s_headers, s_user = staff
    alert_id = _emergency_alert_id(client, t_headers)

    r = client.post(f"/alerts/{alert_id}/escalate", headers=s_headers, json={"escalated_to": []})
    assert r.status_code == 422

    db = session_factory()
    try:
        with pytest.raises(ValidationFailedError):
            escalate_alert(db, alert_id, Principal(actor_id=s_user["id"], role="admin"), [])
    finally:
        db.close()


def test_acknowledged_alert_can_still_escalate(client, make_tourist, staff):
    t_headers, _ = make_tourist("esc_ack")
    s_headers, s_user = staff
    alert_id = _emergency_alert_id(client, t_headers)
    client.put(f"/alerts/{alert_id}/acknowledge", headers=t_headers)

    r = client.post(f"/alerts/{alert_id}/escalate", headers=s_headers, json={"escalated_to": [s_user["id"]]})
    assert r.status_code == 200
    assert r.json()["status"] == "acknowledged"
    assert r.json()["escalation"]["level"] == 2


def test_sweep_picks_stale_high_severity_alerts(client, make_tourist, staff, session_factory, published):
    """Critical alerts untouched past the window are escalated to every staff user."""
    t_headers, _ = make_tourist("sweep")
    _, s_user = staff
    alert_id = _emergency_alert_id(client, t_headers)
    policy = EscalationPolicy(attention_window=timedelta(minutes=15))

    db = session_factory()
    try:
        now_ids = [a.alert_id for a in find_needing_attention(db, policy, utcnow())]
        assert alert_id not in now_ids

        later = utcnow() + timedelta(minutes=20)
        assert alert_id in [a.alert_id for a in find_needing_attention(db, policy, later)]

        escalated = run_escalation_sweep(db, policy, later)
        assert alert_id in escalated

        system = Principal(actor_id=s_user["id"], role="admin")
        alert = get_alert(db, alert_id, system)
        assert alert.escalation_level == 2
        assert s_user["id"] in alert.escalated_to
        last = alert.timeline[-1]
        assert last.event == "escalated"
        assert last.description == AUTOMATIC_ESCALATION_REASON
        assert last.actor_id is None

        # the escalation itself counts as attention
        assert alert_id not in [a.alert_id for a in find_needing_attention(db, policy, utcnow())]
    finally:
        db.close()


def test_sweep_ignores_medium_and_closed_alerts(client, make_tourist, staff, session_factory, published):
    t_headers, _ = make_tourist("sweep_skip")
    s_headers, _ = staff
    device = client.post(
        "/devices",
        headers=t_headers,
        json={"device_type": "smartband", "manufacturer": "Acme", "model": "Band 2", "serial_number": "SWEEP-SKIP-1"},
    ).json()
    medium = client.post(f"/devices/{device['id']}/vitals", headers=t_headers, json={"heart_rate": 105}).json()
    medium_id = medium["alerts"][0]["alert_id"]
    assert medium["alerts"][0]["severity"] == "medium"

    closed_id = _emergency_alert_id(client, t_headers)
    client.put(f"/alerts/{closed_id}/resolve", headers=s_headers, json={"resolution": "ok"})

    policy = EscalationPolicy(attention_window=timedelta(minutes=15))
    db = session_factory()
    try:
        stale_ids = [a.alert_id for a in find_needing_attention(db, policy, utcnow() + timedelta(hours=1))]
    finally:
        db.close()
    assert medium_id not in stale_ids
    assert closed_id not in stale_ids
