import pandas as pd

from datetime import timedelta
from enum import Enum
from typing import List, Optional
import logging

from .models import ChartPoint, Measurement, StationItem
from .publisher import PremiumAccessStore, chart_point
from .reconcile import measurements_to_frame
from .service import ArsoService

logger = logging.getLogger(__name__)

class ChartRange(str, Enum):
    LAST_24_HOURS = "last24Hours"
    LAST_7_DAYS = "last7Days"

    @property
    def seconds(self) -> int:
        if self is ChartRange.LAST_24_HOURS:
            return 24 * 60 * 60
        return 7 * 24 * 60 * 60

def chart_points(measurements: List[Measurement]) -> List[ChartPoint]:
    """Primary pollutant series of `measurements`, oldest first, unusable records skipped."""
    points = [p for p in (chart_point(m) for m in measurements) if p is not None]
    points.sort(key=lambda p: p.timestamp)
    return points

def filter_window(points: List[ChartPoint], window_seconds: float) -> List[ChartPoint]:
    """Points within `window_seconds` before the newest point, both ends inclusive."""
    if not points:
        return []
    reference = points[-1].timestamp
    window_start = reference - timedelta(seconds=window_seconds)
    return [p for p in points if window_start <= p.timestamp <= reference]

class QueryManager:
    """Read side used by presentation: station lists and chart series."""

    def __init__(self, service: ArsoService, premium_store: PremiumAccessStore | None = None):
        self.service = service
        self.premium_store = premium_store

    def list_stations(self) -> List[StationItem]:
        snapshot = self.service.cached_snapshot()
        if snapshot is None:
            return []

        items = [
            StationItem(station=station, measurement=snapshot.measurement_for(station.code))
            for station in snapshot.stations
        ]
        return sorted(items, key=lambda item: item.station.name.casefold())

    async def history_in_window(
            self,
            station_code: str,
            window_seconds: float,
            force_refresh: bool = False
        ) -> List[ChartPoint]:
        """
        Chart points of a station within `window_seconds` of its newest point.

        The window is anchored at the newest point, not the current time. No history
        gives an empty list.
        """
        measurements = await self.service.fetch_historical_measurements(station_code, force_refresh=force_refresh)
        return filter_window(chart_points(measurements), window_seconds)

    async def history_for_range(self, station_code: str, chart_range: ChartRange, force_refresh: bool = False) -> List[ChartPoint]:
        return await self.history_in_window(station_code, chart_range.seconds, force_refresh=force_refresh)

    async def history_frame(self, station_code: str, force_refresh: bool = False) -> pd.DataFrame:
        """All pollutant values of the cached 7-day history of a station, indexed by time."""
        measurements = await self.service.fetch_historical_measurements(station_code, force_refresh=force_refresh)
        df = measurements_to_frame(measurements)
        return df.set_index('datetime')

    def is_premium_unlocked(self) -> bool:
        if self.premium_store is None:
            return False
        return self.premium_store.read()

    def station_item(self, station_code: str) -> Optional[StationItem]:
        code = station_code.strip()
        for item in self.list_stations():
            if item.code == code:
                return item
        return None
