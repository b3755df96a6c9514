import math
from typing import Union

from .models import CanonicalReading, ReadingFields

# Penalty thresholds
PM25_LIMIT = 12.0
CO2_LIMIT = 400.0
VOC_LIMIT = 1.0
TEMPERATURE_RANGE = (20.0, 26.0)
TEMPERATURE_IDEAL = 23.0
HUMIDITY_RANGE = (40.0, 60.0)
HUMIDITY_IDEAL = 50.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def penalties(fields: Union[ReadingFields, CanonicalReading]) -> float:
    total = 0.0
    if fields.pm25 > PM25_LIMIT:
        total += (fields.pm25 - PM25_LIMIT) * 2
    if fields.co2 > CO2_LIMIT:
        total += (fields.co2 - CO2_LIMIT) / 10
    if fields.voc > VOC_LIMIT:
        total += (fields.voc - VOC_LIMIT) * 20

    low, high = TEMPERATURE_RANGE
    if fields.temperature < low or fields.temperature > high:
        total += abs(fields.temperature - TEMPERATURE_IDEAL) * 3

    low, high = HUMIDITY_RANGE
    if fields.humidity < low or fields.humidity > high:
        total += abs(fields.humidity - HUMIDITY_IDEAL) / 2
    return total


def health_score(fields: Union[ReadingFields, CanonicalReading]) -> int:
    """
    Composite 0..100 score: start at 100 and subtract additive penalties.

    Business rules:
      - clamp to [0, 100] before rounding
      - halves round up (60.5 -> 61)
      - no clock, no randomness: identical fields give identical scores
    """
    raw = 100.0 - penalties(fields)
    return round_half_up(min(100.0, max(0.0, raw)))


def health_status(score: int) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Poor"


def air_quality_level(pm25: float) -> str:
    if pm25 <= 12:
        return "Good"
    if pm25 <= 35:
        return "Moderate"
    if pm25 <= 55:
        return "Unhealthy"
    return "Hazardous"
