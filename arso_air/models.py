from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .classification import AirQualityLevel, classify

POLLUTANTS = ("pm25", "pm10", "no2", "o3", "so2", "co")

@dataclass(frozen=True)
class Station:
    """A fixed measuring site of the ARSO network, identified by its code (`sifra`)."""
    code: str
    name: str
    latitude: float
    longitude: float

@dataclass(frozen=True)
class Measurement:
    """
    One reporting interval of one station.

    Pollutant values and interval bounds are None when the feed did not report them,
    which is not the same as a reported zero.
    """
    station_code: str
    interval_start: Optional[datetime] = None
    interval_end: Optional[datetime] = None
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    no2: Optional[float] = None
    o3: Optional[float] = None
    so2: Optional[float] = None
    co: Optional[float] = None

    @property
    def last_update(self) -> Optional[datetime]:
        """Effective timestamp: end of the interval, else its start."""
        return self.interval_end if self.interval_end is not None else self.interval_start

    @property
    def primary_value(self) -> Optional[float]:
        return self.pm25 if self.pm25 is not None else self.pm10

    @property
    def primary_label(self) -> str:
        return "PM2.5" if self.pm25 is not None else "PM10"

@dataclass(frozen=True)
class Snapshot:
    stations: List[Station]
    measurements_by_code: Dict[str, Measurement]
    fetched_at: datetime

    def measurement_for(self, station_code: str) -> Optional[Measurement]:
        return self.measurements_by_code.get(station_code)

@dataclass(frozen=True)
class ChartPoint:
    timestamp: datetime
    value: float

@dataclass(frozen=True)
class StationItem:
    """Station joined with its latest measurement, as shown in station lists."""
    station: Station
    measurement: Optional[Measurement] = field(default=None)

    @property
    def code(self) -> str:
        return self.station.code

    @property
    def primary_value(self) -> Optional[float]:
        if self.measurement is None:
            return None
        return self.measurement.primary_value

    @property
    def primary_label(self) -> str:
        if self.measurement is None:
            return "PM10"
        return self.measurement.primary_label

    @property
    def level(self) -> AirQualityLevel:
        if self.measurement is None:
            return AirQualityLevel.NO_DATA
        return classify(self.measurement.pm25, self.measurement.pm10)
