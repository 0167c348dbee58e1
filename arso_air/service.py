import asyncio
import httpx

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional
import logging

from .errors import ArsoError, MalformedInput
from .feeds.client import FeedClient, FeedUrls
from .feeds.parsers import MeasurementsXMLParser, StationsXMLParser
from .models import Measurement, Snapshot, Station
from .publisher import SnapshotPublisher
from .reconcile import group_historical, index_latest, merge_stations
from .utils import utc_now

logger = logging.getLogger(__name__)

HISTORICAL_CACHE_MAX_AGE = timedelta(minutes=15)

class DataStatus(str, Enum):
    LIVE = "live"
    STALE = "stale"
    EMPTY = "empty"

@dataclass(frozen=True)
class HistoricalCache:
    by_code: Dict[str, List[Measurement]]
    fetched_at: datetime
    # order in which the download was started
    generation: int = 0

class ArsoService:
    """
    Owner of the latest snapshot and the 7-day history cache.

    Downloads and parsing run concurrently and outside the state lock. Results are
    installed by replacing the whole Snapshot or HistoricalCache value under the lock,
    so readers see either the previous or the new state. Once a snapshot exists,
    failed refreshes return the cached value instead of raising.
    """

    def __init__(
        self,
        urls: FeedUrls | None = None,
        timeout: float = 20,
        historical_max_age: timedelta = HISTORICAL_CACHE_MAX_AGE,
        publisher: SnapshotPublisher | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = utc_now,
        ):

        self.urls = urls or FeedUrls()
        self.timeout = timeout
        self.historical_max_age = historical_max_age
        self.publisher = publisher
        self.clock = clock
        self._transport = transport

        self._lock = asyncio.Lock()
        self._snapshot: Optional[Snapshot] = None
        self._historical: Optional[HistoricalCache] = None
        self._historical_requests = 0
        self._last_refresh_failed = False
        self.last_error: Optional[ArsoError] = None

    def _feed_client(self) -> FeedClient:
        return FeedClient(timeout=self.timeout, transport=self._transport)

    def cached_snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    def cached_historical(self) -> Optional[HistoricalCache]:
        return self._historical

    @property
    def data_status(self) -> DataStatus:
        if self._snapshot is None:
            return DataStatus.EMPTY
        if self._last_refresh_failed:
            return DataStatus.STALE
        return DataStatus.LIVE

    def last_updated(self) -> Optional[datetime]:
        """Newest measurement time of the snapshot, or its fetch time if it has none."""
        snapshot = self._snapshot
        if snapshot is None:
            return None
        timestamps = [m.last_update for m in snapshot.measurements_by_code.values() if m.last_update is not None]
        return max(timestamps) if timestamps else snapshot.fetched_at

    async def fetch_latest_snapshot(self, force_refresh: bool = False) -> Snapshot:
        """
        Return the latest snapshot, downloading it if needed.

        Without `force_refresh` an existing snapshot is returned without network access;
        the latest data only changes on explicit refreshes.

        Raises:
            NetworkError, MalformedInput: only if the refresh fails and nothing is cached
        """
        cached = self._snapshot
        if not force_refresh and cached is not None:
            return cached

        try:
            return await self._refresh_latest(force_refresh)
        except ArsoError as e:
            async with self._lock:
                self._last_refresh_failed = True
                self.last_error = e
                cached = self._snapshot
            if cached is None:
                logger.error(f"Refreshing latest data failed and nothing is cached: {e}")
                raise
            logger.warning(f"Refreshing latest data failed, serving snapshot from {cached.fetched_at}: {e}")
            return cached

    async def _refresh_latest(self, force_refresh: bool) -> Snapshot:
        logger.info("Refreshing latest ARSO data")

        async with self._feed_client() as client:
            # Both feeds are required, wait for both before giving up on either
            downloads = await asyncio.gather(
                client.fetch(self.urls.hourly),
                client.fetch(self.urls.stations),
                return_exceptions=True,
            )
            for result in downloads:
                if isinstance(result, BaseException):
                    raise result
            hourly_xml, stations_xml = downloads

            measurements, daily_stations, hourly_stations = await asyncio.gather(
                asyncio.to_thread(MeasurementsXMLParser().parse, hourly_xml),
                asyncio.to_thread(StationsXMLParser().parse, stations_xml),
                asyncio.to_thread(StationsXMLParser().parse, hourly_xml),
                return_exceptions=True,
            )

            if isinstance(measurements, BaseException):
                raise measurements
            daily_stations, hourly_stations = self._tolerate_station_failure(daily_stations, hourly_stations)

            stations = merge_stations(primary=daily_stations, secondary=hourly_stations)
            latest_by_code = index_latest(measurements)

            historical_by_code = await self._refresh_historical_best_effort(client, force_refresh)

        snapshot = Snapshot(
            stations=stations,
            measurements_by_code=latest_by_code,
            fetched_at=self.clock(),
        )

        if self.publisher is not None:
            try:
                await asyncio.to_thread(self.publisher.publish, stations, latest_by_code, historical_by_code)
            except OSError as e:
                logger.error(f"Could not publish payload: {e}", exc_info=True)

        async with self._lock:
            self._snapshot = snapshot
            self._last_refresh_failed = False
            self.last_error = None

        logger.info(f"Loaded {len(stations)} stations and {len(latest_by_code)} latest measurements")
        return snapshot

    @staticmethod
    def _tolerate_station_failure(daily_stations, hourly_stations):
        """A single failed station source is tolerated, both failing aborts the refresh."""
        results = []
        for source, result in (("daily", daily_stations), ("hourly", hourly_stations)):
            if isinstance(result, MalformedInput):
                logger.warning(f"Could not parse stations from {source} feed: {result}")
                results.append(None)
            elif isinstance(result, BaseException):
                raise result
            else:
                results.append(result)

        if results[0] is None and results[1] is None:
            raise MalformedInput("Could not parse stations from any feed")

        return [r if r is not None else [] for r in results]

    def _fresh_historical(self) -> Optional[HistoricalCache]:
        cache = self._historical
        if cache is None:
            return None
        if self.clock() - cache.fetched_at > self.historical_max_age:
            return None
        return cache

    async def _load_historical(self, client: FeedClient) -> Dict[str, List[Measurement]]:
        """Download the 7-day feed. A download that finishes after a later-started one is discarded."""
        self._historical_requests += 1
        generation = self._historical_requests

        xml_data = await client.fetch(self.urls.seven_day)
        parsed = await asyncio.to_thread(MeasurementsXMLParser().parse, xml_data)
        grouped = group_historical(parsed)

        async with self._lock:
            current = self._historical
            if current is not None and current.generation > generation:
                logger.debug(f"Discarding history download {generation}, download {current.generation} is newer")
                return current.by_code
            self._historical = HistoricalCache(by_code=grouped, fetched_at=self.clock(), generation=generation)

        logger.debug(f"Loaded history for {len(grouped)} stations")
        return grouped

    async def _refresh_historical_best_effort(
            self,
            client: FeedClient,
            force_refresh: bool
        ) -> Dict[str, List[Measurement]]:
        if not force_refresh:
            cache = self._fresh_historical()
            if cache is not None:
                return cache.by_code

        try:
            return await self._load_historical(client)
        except ArsoError as e:
            logger.warning(f"Could not refresh historical data, reusing cache: {e}")
            cache = self._historical
            return cache.by_code if cache is not None else {}

    async def fetch_historical_measurements(
            self,
            station_code: str,
            force_refresh: bool = False
        ) -> List[Measurement]:
        """
        Measurements of the last 7 days for one station, oldest first.

        The 7-day feed covers all stations, so a download replaces the history of every
        station. Cached history is reused while it is younger than `historical_max_age`.

        Raises:
            NetworkError, MalformedInput: if the download fails and no history of this
                station was cached before
        """
        code = (station_code or "").strip()
        if not code:
            return []

        if not force_refresh:
            cache = self._fresh_historical()
            if cache is not None and code in cache.by_code:
                return list(cache.by_code[code])

        try:
            async with self._feed_client() as client:
                grouped = await self._load_historical(client)
        except ArsoError as e:
            cache = self._historical
            if cache is not None and code in cache.by_code:
                logger.warning(f"Could not refresh history for {code}, serving data from {cache.fetched_at}: {e}")
                return list(cache.by_code[code])
            raise

        return list(grouped.get(code, []))
