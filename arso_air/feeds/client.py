import asyncio
import httpx

from dataclasses import dataclass
import logging

from ..errors import NetworkError

logger = logging.getLogger(__name__)

ARSO_BASE_URL = "https://www.arso.gov.si/xml/zrak"

# Live telemetry, never serve a cached representation
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

@dataclass(frozen=True)
class FeedUrls:
    hourly: str = ARSO_BASE_URL + "/ones_zrak_urni_podatki_zadnji.xml"
    stations: str = ARSO_BASE_URL + "/ones_zrak_dnevni_podatki_zadnji.xml"
    seven_day: str = ARSO_BASE_URL + "/ones_zrak_urni_podatki_7dni.xml"

    @classmethod
    def from_config(cls, feeds_config: dict | None):
        feeds_config = feeds_config or {}
        defaults = cls()
        return cls(
            hourly=feeds_config.get('hourly_url', defaults.hourly),
            stations=feeds_config.get('stations_url', defaults.stations),
            seven_day=feeds_config.get('seven_day_url', defaults.seven_day),
        )

class FeedClient:
    """
    Downloads raw XML feeds.

    Must be used as an async context manager so that one httpx client is reused
    across the requests of a refresh.
    """

    def __init__(
        self,
        timeout: float = 20,
        max_concurrent_requests: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        ):

        if max_concurrent_requests < 1:
            raise ValueError(f"max concurrent requests should be greater than 0. Got {max_concurrent_requests}")

        self.timeout = timeout
        self.max_concurrent_requests = max_concurrent_requests
        self._transport = transport
        self._semaphore = asyncio.Semaphore(self.max_concurrent_requests)
        self._client = None

    def __enter__(self):
        raise ValueError("FeedClient has to be used in an asyncronous context. Use async with...")

    def __exit__(self, exc_type, exc_val, exc_tb):
        raise ValueError("FeedClient has to be used in an asyncronous context. Use async with...")

    async def __aenter__(self):
        logger.debug("Opening feed session...")
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=NO_CACHE_HEADERS,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        logger.debug("Closing feed session...")
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> bytes:
        """
        Download the body of `url`.

        Raises:
            NetworkError: on transport failures, timeouts and non-2xx responses
        """
        if self._client is None:
            raise ValueError("Initialize client before requesting data")

        try:
            async with self._semaphore:
                response = await self._client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"Request to {url} failed: {e}")
            raise NetworkError(f"Request to {url} failed: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            logger.error(f"Request to {url} returned HTTP {response.status_code}")
            raise NetworkError(
                f"ARSO returned an invalid server response (HTTP {response.status_code})",
                url=url,
                status_code=response.status_code,
            )

        logger.debug(f"Fetched {len(response.content)}b from {url}")
        return response.content
