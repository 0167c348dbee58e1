import pytest
import pandas as pd

from datetime import datetime, timedelta, timezone

from arso_air.classification import AirQualityLevel
from arso_air.models import ChartPoint, Measurement
from arso_air.publisher import PremiumAccessStore
from arso_air.query_manager import ChartRange, QueryManager, chart_points, filter_window
from arso_air.service import ArsoService

from conftest import URLS

T0 = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)

@pytest.fixture
def service(feed_server, clock):
    return ArsoService(transport=feed_server.transport, clock=clock)

@pytest.fixture
def query_manager(service, tmp_path):
    return QueryManager(service, premium_store=PremiumAccessStore(tmp_path / "premium_access.json"))

def test_list_stations_without_snapshot(query_manager):
    assert query_manager.list_stations() == []

@pytest.mark.asyncio
async def test_list_stations(service, query_manager):
    await service.fetch_latest_snapshot()

    items = query_manager.list_stations()

    assert [item.code for item in items] == ["E421", "E404", "E403"]
    celje, maribor, bezigrad = items

    assert celje.measurement is None
    assert celje.level == AirQualityLevel.NO_DATA
    assert celje.primary_value is None

    assert maribor.level == AirQualityLevel.UNHEALTHY
    assert maribor.primary_value == 61
    assert maribor.primary_label == "PM10"

    assert bezigrad.level == AirQualityLevel.GOOD
    assert bezigrad.primary_value == 14
    assert bezigrad.primary_label == "PM2.5"

    assert query_manager.station_item(" E404 ") == maribor
    assert query_manager.station_item("E999") is None

@pytest.mark.asyncio
async def test_history_in_window(query_manager):
    day = await query_manager.history_in_window("E403", 24 * 60 * 60)
    week = await query_manager.history_for_range("E403", ChartRange.LAST_7_DAYS)

    assert [p.value for p in day] == [9, 11, 14]
    assert [p.value for p in week] == [40, 9, 11, 14]
    assert day[-1].timestamp == T0

@pytest.mark.asyncio
async def test_history_in_window_empty(query_manager, feed_server):
    assert await query_manager.history_in_window("E999", 3600) == []
    assert await query_manager.history_in_window("", 3600) == []
    assert feed_server.count(URLS.seven_day) == 1

@pytest.mark.asyncio
async def test_history_frame(query_manager):
    df = await query_manager.history_frame("E403")

    assert df.index.name == "datetime"
    assert df.index.is_monotonic_increasing
    assert df.pm25.tolist() == [40, 9, 11, 14]
    assert df.pm10.isna().all()
    assert df.index[-1] == pd.Timestamp(T0)

def test_filter_window_bounds_are_inclusive():
    points = [ChartPoint(T0 + timedelta(minutes=m), v) for m, v in [(0, 1), (60, 2), (120, 3), (180, 4)]]

    assert filter_window(points, 3600) == points[2:]
    assert filter_window(points, 3 * 3600) == points
    assert filter_window(points, 0) == points[3:]
    assert filter_window([], 3600) == []

def test_chart_points_projection():
    measurements = [
        Measurement("E1", interval_end=T0, pm10=20),
        Measurement("E1", interval_end=T0 - timedelta(hours=1), pm25=5, pm10=30),
        Measurement("E1", interval_end=T0 + timedelta(hours=1), pm25=-999),
        Measurement("E1", pm25=7),
    ]
    assert chart_points(measurements) == [
        ChartPoint(T0 - timedelta(hours=1), 5),
        ChartPoint(T0, 20),
    ]

def test_chart_range_seconds():
    assert ChartRange.LAST_24_HOURS.seconds == 86400
    assert ChartRange.LAST_7_DAYS.seconds == 604800
    assert ChartRange("last7Days") is ChartRange.LAST_7_DAYS

def test_premium_flag_is_read_from_store(query_manager, tmp_path, service):
    assert query_manager.is_premium_unlocked() is False

    PremiumAccessStore(tmp_path / "premium_access.json").write(True)
    assert query_manager.is_premium_unlocked() is True

    assert QueryManager(service).is_premium_unlocked() is False
