import asyncio

import logging

from .errors import ArsoError
from .service import ArsoService

logger = logging.getLogger(__name__)

async def refresh_loop(service: ArsoService, interval_minutes: float, stop_event: asyncio.Event | None = None):
    """
    Force a refresh of the latest data every `interval_minutes`.

    Failures are logged and the loop continues with the next interval, there is no
    retry in between.
    """
    stop_event = stop_event or asyncio.Event()
    interval_seconds = interval_minutes * 60

    while not stop_event.is_set():
        try:
            snapshot = await service.fetch_latest_snapshot(force_refresh=True)
            logger.info(f"Scheduled refresh done, status {service.data_status.value}, {len(snapshot.stations)} stations")
        except ArsoError as e:
            logger.error(f"Scheduled refresh failed: {e}")

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass
