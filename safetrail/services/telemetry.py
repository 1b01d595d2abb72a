"""Telemetry threshold evaluation.

Pure functions: they inspect a sample and report which danger thresholds it
breaches. Persisting the sample, raising device flags and creating alerts
happens in ``device_service``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from safetrail.core.alert_policies import (
    DEVICE_ALERT_CONFIDENCE,
    HEART_RATE_HIGH,
    HEART_RATE_LOW,
    HEART_RATE_SEVERE_HIGH,
    HEART_RATE_SEVERE_LOW,
    TEMPERATURE_HIGH,
    TEMPERATURE_LOW,
    TEMPERATURE_SEVERE_HIGH,
    TEMPERATURE_SEVERE_LOW,
    VITALS_CONFIDENCE,
)
from safetrail.models.device import DeviceAlertFlag

CRITICAL_DEVICE_FLAGS = frozenset({DeviceAlertFlag.panic_button_pressed, DeviceAlertFlag.fall_detected})


@dataclass(frozen=True)
class VitalsSample:
    heart_rate: int | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class ThresholdBreach:
    """One alert candidate produced by a telemetry sample."""

    alert_type: str
    severity: str
    reason: str
    flag: DeviceAlertFlag
    confidence: int
    title: str
    data: dict[str, Any] = field(default_factory=dict)


def evaluate_heart_rate(heart_rate: int | None) -> ThresholdBreach | None:
    if heart_rate is None:
        return None
    if not (heart_rate > HEART_RATE_HIGH or heart_rate < HEART_RATE_LOW):
        return None
    severe = heart_rate > HEART_RATE_SEVERE_HIGH or heart_rate < HEART_RATE_SEVERE_LOW
    return ThresholdBreach(
        alert_type="medical",
        severity="high" if severe else "medium",
        reason=f"Heart rate of {heart_rate} BPM outside {HEART_RATE_LOW}-{HEART_RATE_HIGH}",
        flag=DeviceAlertFlag.heart_rate_abnormal,
        confidence=VITALS_CONFIDENCE,
        title="Abnormal Heart Rate Detected",
        data={"heart_rate": heart_rate},
    )


def evaluate_temperature(temperature: float | None) -> ThresholdBreach | None:
    if temperature is None:
        return None
    if not (temperature > TEMPERATURE_HIGH or temperature < TEMPERATURE_LOW):
        return None
    severe = temperature > TEMPERATURE_SEVERE_HIGH or temperature < TEMPERATURE_SEVERE_LOW
    return ThresholdBreach(
        alert_type="medical",
        severity="high" if severe else "medium",
        reason=f"Temperature of {temperature}°C outside {TEMPERATURE_LOW}-{TEMPERATURE_HIGH}",
        flag=DeviceAlertFlag.temperature_abnormal,
        confidence=VITALS_CONFIDENCE,
        title="Abnormal Temperature Detected",
        data={"temperature": temperature},
    )


def evaluate_vitals(sample: VitalsSample) -> list[ThresholdBreach]:
    """All threshold breaches in a vitals sample, heart rate first."""
    candidates = (
        evaluate_heart_rate(sample.heart_rate),
        evaluate_temperature(sample.temperature),
    )
    return [breach for breach in candidates if breach is not None]


def evaluate_device_alert(flag: DeviceAlertFlag) -> ThresholdBreach:
    """Explicit alert raised by the device itself."""
    return ThresholdBreach(
        alert_type="device",
        severity="critical" if flag in CRITICAL_DEVICE_FLAGS else "medium",
        reason=f"Device reported {flag.value}",
        flag=flag,
        confidence=DEVICE_ALERT_CONFIDENCE,
        title=f"Device Alert - {flag.value}",
        data={"device_flag": flag.value},
    )
