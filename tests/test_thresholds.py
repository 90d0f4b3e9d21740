import math

import pytest

from garden_monitor.domain.thresholds import OPTIMAL_RANGES, OptimalRange, classify, get_optimal_range
from garden_monitor.enums import SensorStatus, SensorType


@pytest.mark.parametrize(
    "value,expected",
    [
        (14, SensorStatus.CRITICAL),
        (19, SensorStatus.WARNING),
        (50, SensorStatus.NORMAL),
        (105, SensorStatus.CRITICAL),
    ],
)
def test_soil_moisture_scenarios(value, expected):
    assert classify(SensorType.SOIL_MOISTURE, value) is expected


def test_boundaries_are_inclusive():
    # Soil moisture: optimal 20..80, critical at <= 14 or >= 104.
    assert classify("SOIL_MOISTURE", 20) is SensorStatus.NORMAL
    assert classify("SOIL_MOISTURE", 80) is SensorStatus.NORMAL
    assert classify("SOIL_MOISTURE", 14) is SensorStatus.CRITICAL
    assert classify("SOIL_MOISTURE", 14.0001) is SensorStatus.WARNING
    assert classify("SOIL_MOISTURE", 104) is SensorStatus.CRITICAL
    assert classify("SOIL_MOISTURE", 103.999) is SensorStatus.WARNING


def test_critical_edges_are_rounded():
    rng = OptimalRange(20, 80)
    assert rng.critical_low == 14
    assert rng.critical_high == 104


def test_temperature_bands():
    assert classify(SensorType.TEMPERATURE, 10.5) is SensorStatus.CRITICAL
    assert classify(SensorType.TEMPERATURE, 12) is SensorStatus.WARNING
    assert classify(SensorType.TEMPERATURE, 25) is SensorStatus.NORMAL
    assert classify(SensorType.TEMPERATURE, 35) is SensorStatus.WARNING
    assert classify(SensorType.TEMPERATURE, 41.6) is SensorStatus.CRITICAL


def test_zero_minimum_has_no_lower_band_at_zero():
    assert classify(SensorType.RAINFALL, 0) is SensorStatus.NORMAL
    assert classify(SensorType.RAINFALL, -0.5) is SensorStatus.CRITICAL
    assert classify(SensorType.RAINFALL, 60) is SensorStatus.WARNING
    assert classify(SensorType.RAINFALL, 65) is SensorStatus.CRITICAL


def test_nan_and_unknown_types_are_normal():
    assert classify(SensorType.HUMIDITY, math.nan) is SensorStatus.NORMAL
    assert classify("CO2", 5000) is SensorStatus.NORMAL
    assert get_optimal_range("CO2") is None


def test_type_names_are_case_insensitive():
    assert get_optimal_range("soil_moisture") == OPTIMAL_RANGES[SensorType.SOIL_MOISTURE]
    assert classify("humidity", 90) is SensorStatus.WARNING


def test_invalid_range_rejected():
    with pytest.raises(ValueError):
        OptimalRange(10, 5)
