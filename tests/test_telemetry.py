"""Telemetry threshold evaluation tests."""

import pytest

from safetrail.models.device import DeviceAlertFlag
from safetrail.services.telemetry import (
    VitalsSample,
    evaluate_device_alert,
    evaluate_heart_rate,
    evaluate_temperature,
    evaluate_vitals,
)


@pytest.mark.parametrize(
    "heart_rate,severity",
    [(105, "medium"), (125, "high"), (55, "medium"), (45, "high"), (121, "high"), (49, "high")],
)
def test_heart_rate_breaches(heart_rate, severity):
    breach = evaluate_heart_rate(heart_rate)
    assert breach is not None
    assert breach.alert_type == "medical"
    assert breach.severity == severity
    assert breach.flag is DeviceAlertFlag.heart_rate_abnormal
    assert breach.confidence == 90
    assert breach.data == {"heart_rate": heart_rate}


@pytest.mark.parametrize("heart_rate", [60, 75, 100, None])
def test_heart_rate_in_range(heart_rate):
    assert evaluate_heart_rate(heart_rate) is None


@pytest.mark.parametrize(
    "temperature,severity",
    [(38.5, "medium"), (39.5, "high"), (34.5, "medium"), (33.9, "high")],
)
def test_temperature_breaches(temperature, severity):
    breach = evaluate_temperature(temperature)
    assert breach is not None
    assert breach.severity == severity
    assert breach.flag is DeviceAlertFlag.temperature_abnormal


@pytest.mark.parametrize("temperature", [35, 36, 37.2, 38, None])
def test_temperature_in_range(temperature):
    assert evaluate_temperature(temperature) is None


def test_normal_sample_raises_nothing():
    assert evaluate_vitals(VitalsSample(heart_rate=75, temperature=36.6)) == []


def test_absent_values_raise_nothing():
    assert evaluate_vitals(VitalsSample()) == []


def test_both_breaches_heart_rate_first():
    breaches = evaluate_vitals(VitalsSample(heart_rate=130, temperature=38.5))
    assert [b.flag for b in breaches] == [DeviceAlertFlag.heart_rate_abnormal, DeviceAlertFlag.temperature_abnormal]
    assert [b.severity for b in breaches] == ["high", "medium"]


@pytest.mark.parametrize("flag", [DeviceAlertFlag.panic_button_pressed, DeviceAlertFlag.fall_detected])
def test_panic_and_fall_are_critical(flag):
    breach = evaluate_device_alert(flag)
    assert breach.alert_type == "device"
    assert breach.severity == "critical"
    assert breach.confidence == 95


@pytest.mark.parametrize(
    "flag",
    [
        DeviceAlertFlag.battery_low,
        DeviceAlertFlag.signal_weak,
        DeviceAlertFlag.heart_rate_abnormal,
        DeviceAlertFlag.temperature_abnormal,
        DeviceAlertFlag.geofence_violation,
    ],
)
def test_other_device_flags_are_medium(flag):
    assert evaluate_device_alert(flag).severity == "medium"
