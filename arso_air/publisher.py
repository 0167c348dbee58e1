from pydantic import ValidationError

from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional
import logging

from .models import ChartPoint, Measurement, Station
from .validation import ChartPointModel, PremiumAccessPayload, SharedPayload, SharedStation
from .utils import atomic_write_bytes, utc_now

logger = logging.getLogger(__name__)

SHORT_CHART_HOURS = 24
LONG_CHART_HOURS = 24 * 7

PAYLOAD_FILENAME = "air_quality_widget_payload.json"
PREMIUM_FILENAME = "premium_access.json"

def chart_point(measurement: Measurement | None) -> ChartPoint | None:
    """Project a measurement onto its primary pollutant. None if it has no usable value or time."""
    if measurement is None:
        return None
    timestamp = measurement.last_update
    value = measurement.primary_value
    if timestamp is None or value is None or value < 0:
        return None
    return ChartPoint(timestamp=timestamp, value=value)

def windowed_series(
        history: List[Measurement],
        fallback: Measurement | None,
        hours_back: float
    ) -> List[ChartPoint]:
    """
    Chart series covering `hours_back` hours up to the newest point of `history`.

    The window is anchored at the most recent point rather than the current time, so a
    stale history still produces a full chart. Without any usable history point the
    series consists of the fallback measurement alone, if it is usable.
    """
    points = [p for p in (chart_point(m) for m in history) if p is not None]
    points.sort(key=lambda p: p.timestamp)

    if not points:
        fallback_point = chart_point(fallback)
        return [fallback_point] if fallback_point is not None else []

    reference = points[-1].timestamp
    window_start = reference - timedelta(hours=hours_back)
    return [p for p in points if window_start <= p.timestamp <= reference]

def build_payload(
        stations: List[Station],
        latest_by_code: Dict[str, Measurement],
        historical_by_code: Dict[str, List[Measurement]],
        generated_at: datetime | None = None
    ) -> SharedPayload:
    """Build the document read by out-of-process consumers, one entry per station."""
    shared_stations = []
    for station in stations:
        latest = latest_by_code.get(station.code)
        history = historical_by_code.get(station.code, [])

        chart24h = windowed_series(history, latest, SHORT_CHART_HOURS)
        chart7d = windowed_series(history, latest, LONG_CHART_HOURS)

        shared_stations.append(
            SharedStation(
                code=station.code,
                name=station.name,
                lastUpdate=latest.last_update if latest else None,
                pm25=latest.pm25 if latest else None,
                pm10=latest.pm10 if latest else None,
                no2=latest.no2 if latest else None,
                o3=latest.o3 if latest else None,
                so2=latest.so2 if latest else None,
                co=latest.co if latest else None,
                chart24h=[ChartPointModel.from_point(p) for p in chart24h],
                chart7d=[ChartPointModel.from_point(p) for p in chart7d],
            )
        )

    return SharedPayload(
        generatedAt=generated_at or utc_now(),
        stations=shared_stations,
    )

class SharedPayloadStore:
    """JSON file holding the last published payload, shared between processes."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def write(self, payload: SharedPayload):
        atomic_write_bytes(self.path, payload.model_dump_json(indent=2).encode('utf-8'))
        logger.info(f"Published payload with {len(payload.stations)} stations to {self.path}")

    def read(self) -> Optional[SharedPayload]:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return None

        try:
            return SharedPayload.model_validate_json(data)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable payload at {self.path}: {e}")
            return None

class PremiumAccessStore:
    """
    Flag telling consumers whether gated data may be shown.

    Written by the entitlement side, the core only reads it. A missing or unreadable
    file counts as locked.
    """

    def __init__(self, path: str | Path, clock: Callable[[], datetime] = utc_now):
        self.path = Path(path)
        self.clock = clock

    def read(self) -> bool:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return False

        try:
            return PremiumAccessPayload.model_validate_json(data).isPremiumUnlocked
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable premium flag at {self.path}: {e}")
            return False

    def write(self, is_premium_unlocked: bool):
        payload = PremiumAccessPayload(isPremiumUnlocked=is_premium_unlocked, updatedAt=self.clock())
        atomic_write_bytes(self.path, payload.model_dump_json().encode('utf-8'))

class SnapshotPublisher:

    def __init__(self, store: SharedPayloadStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def publish(
            self,
            stations: List[Station],
            latest_by_code: Dict[str, Measurement],
            historical_by_code: Dict[str, List[Measurement]]
        ) -> SharedPayload:
        payload = build_payload(stations, latest_by_code, historical_by_code, generated_at=self.clock())
        self.store.write(payload)
        return payload
