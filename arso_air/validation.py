from pydantic import BaseModel, Field, field_validator

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from .models import ChartPoint

# Pydantic models for the shared payload documents and API responses
class ChartPointModel(BaseModel):
    timestamp: datetime
    value: float

    @classmethod
    def from_point(cls, point: ChartPoint):
        return cls(timestamp=point.timestamp, value=point.value)

class SharedStation(BaseModel):
    code: str
    name: str
    lastUpdate: Optional[datetime] = None
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    no2: Optional[float] = None
    o3: Optional[float] = None
    so2: Optional[float] = None
    co: Optional[float] = None
    chart24h: List[ChartPointModel] = Field(default_factory=list)
    chart7d: List[ChartPointModel] = Field(default_factory=list)

    @field_validator('chart24h', 'chart7d', mode='before')
    @classmethod
    def missing_chart_is_empty(cls, v):
        """Older payloads may carry null instead of a chart series."""
        return [] if v is None else v

class SharedPayload(BaseModel):
    generatedAt: datetime
    stations: List[SharedStation]

    def station(self, code: str) -> Optional[SharedStation]:
        for station in self.stations:
            if station.code == code:
                return station
        return None

class PremiumAccessPayload(BaseModel):
    isPremiumUnlocked: bool
    updatedAt: datetime

    @field_validator('updatedAt', mode='before')
    @classmethod
    def ensure_timezone_aware(cls, v):
        if isinstance(v, str):
            v = datetime.fromisoformat(v.replace('Z', '+00:00'))
        if isinstance(v, datetime) and v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v

class StationResponse(BaseModel):
    code: str
    name: str
    latitude: float
    longitude: float
    level: str
    levelTitle: str
    primaryValue: Optional[float] = None
    primaryLabel: str
    lastUpdate: Optional[datetime] = None
    pollutants: Dict[str, Optional[float]] = Field(default_factory=dict)

class StationListResponse(BaseModel):
    stations: List[StationResponse]
    count: int
    status: str
    fetchedAt: Optional[datetime] = None
    lastUpdated: Optional[datetime] = None

class HistoryResponse(BaseModel):
    station: str
    range: str
    points: List[ChartPointModel]
    count: int
    time_range: Dict[str, datetime] | None
    metadata: Dict[str, Any] | None = None

    @classmethod
    def from_points(cls, station: str, range_name: str, points: List[ChartPoint], metadata = None):

        if not points:
            return cls(
                station = station,
                range = range_name,
                points = [],
                count = 0,
                time_range = None,
                metadata = metadata
            )

        return cls(
            station=station,
            range=range_name,
            points=[ChartPointModel.from_point(p) for p in points],
            count=len(points),
            time_range={"start": points[0].timestamp, "end": points[-1].timestamp},
            metadata=metadata,
        )
