"""
HTTP read surface over the ARSO air quality cache.

Presentation clients (map, station detail, widgets) use these endpoints instead of
talking to the ARSO feeds directly.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.responses import JSONResponse

from datetime import datetime, timezone
from typing import Dict, Any
import logging

from .errors import ArsoError
from .models import StationItem, POLLUTANTS
from .query_manager import ChartRange, QueryManager
from .runtime import RuntimeContext
from .scheduler import refresh_loop
from .validation import HistoryResponse, SharedPayload, StationListResponse, StationResponse

logger = logging.getLogger(__name__)

def get_runtime(request: Request) -> RuntimeContext:
    return request.app.state.runtime

def get_query_manager(runtime: RuntimeContext = Depends(get_runtime)) -> QueryManager:
    """Dependency to get the query manager of the running application."""
    return runtime.query_manager

def _station_response(item: StationItem) -> StationResponse:
    measurement = item.measurement
    return StationResponse(
        code=item.station.code,
        name=item.station.name,
        latitude=item.station.latitude,
        longitude=item.station.longitude,
        level=item.level.value,
        levelTitle=item.level.title,
        primaryValue=item.primary_value,
        primaryLabel=item.primary_label,
        lastUpdate=measurement.last_update if measurement else None,
        pollutants={p: getattr(measurement, p) if measurement else None for p in POLLUTANTS},
    )

def _station_list(runtime: RuntimeContext) -> StationListResponse:
    service = runtime.service
    snapshot = service.cached_snapshot()
    stations = [_station_response(item) for item in runtime.query_manager.list_stations()]
    return StationListResponse(
        stations=stations,
        count=len(stations),
        status=service.data_status.value,
        fetchedAt=snapshot.fetched_at if snapshot else None,
        lastUpdated=service.last_updated(),
    )

def create_app(runtime: RuntimeContext, refresh_in_background: bool = False) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not refresh_in_background:
            yield
            return

        stop_event = asyncio.Event()
        task = asyncio.create_task(refresh_loop(runtime.service, runtime.refresh_interval_minutes, stop_event))
        try:
            yield
        finally:
            stop_event.set()
            await task

    app = FastAPI(
        title="ARSO Air Quality API",
        description="Latest and 7-day air quality measurements of the Slovenian monitoring network",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    @app.get("/", response_model=Dict[str, str])
    async def root():
        return {
            "message": "ARSO Air Quality API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check(runtime: RuntimeContext = Depends(get_runtime)):
        snapshot = runtime.service.cached_snapshot()
        return {
            "status": "healthy",
            "data_status": runtime.service.data_status.value,
            "station_count": len(snapshot.stations) if snapshot else 0,
            "last_error": str(runtime.service.last_error) if runtime.service.last_error else None,
            "timestamp": datetime.now(timezone.utc),
        }

    @app.get("/stations", response_model=StationListResponse)
    async def get_stations(runtime: RuntimeContext = Depends(get_runtime)):
        """Stations with their latest measurement. Loads data on first use."""
        try:
            await runtime.service.fetch_latest_snapshot(force_refresh=False)
        except ArsoError as e:
            logger.error(f"Failed to load stations: {e}")
            raise HTTPException(status_code=503, detail=f"Air quality data unavailable: {e}")
        return _station_list(runtime)

    @app.post("/refresh", response_model=StationListResponse)
    async def refresh(runtime: RuntimeContext = Depends(get_runtime)):
        try:
            await runtime.service.fetch_latest_snapshot(force_refresh=True)
        except ArsoError as e:
            logger.error(f"Refresh failed: {e}")
            raise HTTPException(status_code=503, detail=f"Air quality data unavailable: {e}")
        return _station_list(runtime)

    @app.get("/stations/{station_code}/history", response_model=HistoryResponse)
    async def get_station_history(
            station_code: str,
            chart_range: ChartRange = Query(ChartRange.LAST_24_HOURS, alias="range", description="Chart range, 'last24Hours' or 'last7Days'"),
            force_refresh: bool = Query(False, description="Bypass the history cache"),
            query_manager: QueryManager = Depends(get_query_manager),
        ):
        try:
            points = await query_manager.history_for_range(station_code, chart_range, force_refresh=force_refresh)
        except ArsoError as e:
            logger.error(f"History for {station_code} failed: {e}")
            raise HTTPException(status_code=503, detail=f"History unavailable: {e}")

        metadata: Dict[str, Any] = {"window_seconds": chart_range.seconds}
        return HistoryResponse.from_points(station_code.strip(), chart_range.value, points, metadata=metadata)

    @app.get("/payload", response_model=SharedPayload)
    async def get_payload(runtime: RuntimeContext = Depends(get_runtime)):
        payload = runtime.payload_store.read()
        if payload is None:
            raise HTTPException(status_code=404, detail="No payload published yet")
        return payload

    @app.get("/premium")
    async def get_premium(query_manager: QueryManager = Depends(get_query_manager)):
        return {"isPremiumUnlocked": query_manager.is_premium_unlocked()}

    @app.exception_handler(ValueError)
    async def value_error_handler(request, exc):
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc)}
        )

    return app
