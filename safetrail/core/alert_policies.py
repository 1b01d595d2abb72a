"""Alert, telemetry and identity policy constants."""

from __future__ import annotations

# Roles allowed to resolve, escalate and delete alerts
PRIVILEGED_ROLES = frozenset({"admin", "government"})

# Alert states with no outgoing transitions
TERMINAL_ALERT_STATUSES = frozenset({"resolved", "false_alarm"})

# Attempts before giving up on a random identifier
MAX_ID_ATTEMPTS = 10

# Heart rate thresholds (BPM)
HEART_RATE_HIGH = 100
HEART_RATE_LOW = 60
HEART_RATE_SEVERE_HIGH = 120
HEART_RATE_SEVERE_LOW = 50

# Body temperature thresholds (Celsius)
TEMPERATURE_HIGH = 38
TEMPERATURE_LOW = 35
TEMPERATURE_SEVERE_HIGH = 39
TEMPERATURE_SEVERE_LOW = 34

# Metadata confidence for device-sourced alerts
VITALS_CONFIDENCE = 90
DEVICE_ALERT_CONFIDENCE = 95
MANUAL_CONFIDENCE = 100

# Severities and statuses picked up by the escalation sweep
ESCALATION_SEVERITIES = frozenset({"high", "critical"})
ESCALATION_STATUSES = frozenset({"active", "acknowledged"})

# Fan-out rooms
STAFF_ROOM = "staff_room"


def tourist_room(tourist_id: int) -> str:
    """Per-tourist push room."""
    return f"tourist_{tourist_id}"
