from enum import Enum
from typing import Optional

class AirQualityLevel(str, Enum):
    GOOD = "good"
    MODERATE = "moderate"
    UNHEALTHY_SENSITIVE = "unhealthySensitive"
    UNHEALTHY = "unhealthy"
    VERY_UNHEALTHY = "veryUnhealthy"
    NO_DATA = "noData"

    @property
    def title(self) -> str:
        return _LEVEL_TITLES[self]

    @property
    def severity(self) -> int:
        """Ordinal used for comparisons, NO_DATA ranks below GOOD."""
        return _SEVERITY_ORDER.index(self)

_LEVEL_TITLES = {
    AirQualityLevel.GOOD: "Good",
    AirQualityLevel.MODERATE: "Moderate",
    AirQualityLevel.UNHEALTHY_SENSITIVE: "Unhealthy for sensitive groups",
    AirQualityLevel.UNHEALTHY: "Unhealthy",
    AirQualityLevel.VERY_UNHEALTHY: "Very unhealthy",
    AirQualityLevel.NO_DATA: "No data",
}

_SEVERITY_ORDER = [
    AirQualityLevel.NO_DATA,
    AirQualityLevel.GOOD,
    AirQualityLevel.MODERATE,
    AirQualityLevel.UNHEALTHY_SENSITIVE,
    AirQualityLevel.UNHEALTHY,
    AirQualityLevel.VERY_UNHEALTHY,
]

# Upper bounds (inclusive) in µg/m³, checked in order
PM25_BREAKPOINTS = [
    (15, AirQualityLevel.GOOD),
    (35, AirQualityLevel.MODERATE),
    (55, AirQualityLevel.UNHEALTHY_SENSITIVE),
    (100, AirQualityLevel.UNHEALTHY),
]

PM10_BREAKPOINTS = [
    (25, AirQualityLevel.GOOD),
    (50, AirQualityLevel.MODERATE),
    (100, AirQualityLevel.UNHEALTHY),
]

def _from_breakpoints(value: Optional[float], breakpoints) -> AirQualityLevel:
    # Negative readings are sensor error codes
    if value is None or value < 0:
        return AirQualityLevel.NO_DATA
    for upper, level in breakpoints:
        if value <= upper:
            return level
    return AirQualityLevel.VERY_UNHEALTHY

def classify_value(value: Optional[float]) -> AirQualityLevel:
    """Classify a single concentration on the PM2.5 scale."""
    return _from_breakpoints(value, PM25_BREAKPOINTS)

def classify(pm25: Optional[float], pm10: Optional[float]) -> AirQualityLevel:
    """
    Map pollutant concentrations to an air quality level.

    PM2.5 is used whenever it is reported, PM10 only as a fallback. A reported
    but negative PM2.5 value yields NO_DATA without looking at PM10.

    Args:
        pm25: PM2.5 concentration in µg/m³ or None if not reported
        pm10: PM10 concentration in µg/m³ or None if not reported

    Returns:
        AirQualityLevel
    """
    if pm25 is not None:
        return _from_breakpoints(pm25, PM25_BREAKPOINTS)
    if pm10 is not None:
        return _from_breakpoints(pm10, PM10_BREAKPOINTS)
    return AirQualityLevel.NO_DATA
