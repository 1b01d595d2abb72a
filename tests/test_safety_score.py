"""Safety score tests."""

import pytest

from safetrail.services.safety_score import calculate_safety_score

RISK_LEVELS = [None, "low", "medium", "high", "critical"]
STATUSES = [None, "active", "inactive", "missing", "emergency", "safe"]


@pytest.mark.parametrize("risk_level", RISK_LEVELS)
@pytest.mark.parametrize("status", STATUSES)
def test_score_stays_in_range(risk_level, status):
    for alerts in range(0, 21):
        score = calculate_safety_score(risk_level, status, alerts)
        assert 0 <= score <= 100


@pytest.mark.parametrize(
    "risk_level,status,alerts,expected",
    [
        ("low", "active", 0, 100),
        ("medium", "active", 0, 85),
        ("high", "active", 0, 70),
        ("critical", "active", 0, 100),
        ("low", "missing", 0, 50),
        ("low", "emergency", 0, 20),
        ("low", "active", 1, 95),
        ("low", "active", 6, 70),
        ("low", "active", 20, 70),
        ("medium", "missing", 2, 25),
        ("high", "emergency", 3, 0),
        ("low", "emergency", 1, 15),
    ],
)
def test_score_deductions(risk_level, status, alerts, expected):
    assert calculate_safety_score(risk_level, status, alerts) == expected


def test_alert_deduction_is_capped():
    """After six alerts more alerts no longer lower the score."""
    assert calculate_safety_score("low", "active", 6) == calculate_safety_score("low", "active", 50)


def test_score_recomputed_on_status_change(client, make_tourist, staff):
    """Staff status / risk changes are reflected in the stored score."""
    _, profile = make_tourist("score")
    assert profile["safety_score"] == 100

    staff_headers, _ = staff
    r = client.put(
        f"/tourists/{profile['id']}/status",
        headers=staff_headers,
        json={"status": "missing", "risk_level": "high"},
    )
    assert r.status_code == 200
    assert r.json()["safety_score"] == 20

    r = client.put(f"/tourists/{profile['id']}/status", headers=staff_headers, json={"status": "safe"})
    assert r.json()["safety_score"] == 70
