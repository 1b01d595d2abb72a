"""Safety score model."""

from __future__ import annotations

RISK_LEVEL_DEDUCTIONS = {
    "high": 30,
    "medium": 15,
    # low and critical carry no risk-level deduction
}

STATUS_DEDUCTIONS = {
    "missing": 50,
    "emergency": 80,
}

ALERT_DEDUCTION = 5
MAX_ALERT_DEDUCTION = 30


def calculate_safety_score(risk_level: str | None, status: str | None, alerts_triggered: int | None) -> int:
    """Score a tourist from 0 (unsafe) to 100 (safe).

    Deductions are independent subtractions from 100; the result is clamped.
    """
    score = 100
    score -= RISK_LEVEL_DEDUCTIONS.get(risk_level or "", 0)
    score -= STATUS_DEDUCTIONS.get(status or "", 0)
    if alerts_triggered and alerts_triggered > 0:
        score -= min(alerts_triggered * ALERT_DEDUCTION, MAX_ALERT_DEDUCTION)
    return max(0, min(100, score))
