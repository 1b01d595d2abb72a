"""SQLAlchemy models."""

from __future__ import annotations

from safetrail.models.alert import Alert, AlertAction, AlertTimelineEntry
from safetrail.models.device import Device, DeviceAlertFlag
from safetrail.models.digital_id import DigitalIdCard
from safetrail.models.tourist import Tourist, TouristLocation
from safetrail.models.user import User

__all__ = [
    "User",
    "Tourist",
    "TouristLocation",
    "Device",
    "DeviceAlertFlag",
    "Alert",
    "AlertAction",
    "AlertTimelineEntry",
    "DigitalIdCard",
]
