import pytest
import httpx

from datetime import datetime, timedelta, timezone

from arso_air.feeds.client import FeedUrls

URLS = FeedUrls()

HOURLY_XML = """<?xml version="1.0" encoding="UTF-8"?>
<arsopodatki verzija="1.4">
  <vir>Agencija RS za okolje</vir>
  <postaja sifra="E403" wgs84_sirina="46,0655" wgs84_dolzina="14,5126" nadm_visina="299">
    <datum_od>2026-10-19 09:00</datum_od>
    <datum_do>2026-10-19 10:00</datum_do>
    <pm10>23</pm10>
    <pm2.5>14</pm2.5>
    <no2>31</no2>
    <o3>12</o3>
    <so2></so2>
    <co>0,3</co>
  </postaja>
  <postaja sifra="E404" wgs84_sirina="46.5547" wgs84_dolzina="15.6467">
    <datum_od>2026-10-19 09:00</datum_od>
    <datum_do>2026-10-19 10:00</datum_do>
    <pm10>61</pm10>
  </postaja>
</arsopodatki>
""".encode("utf-8")

STATIONS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<arsopodatki verzija="1.4">
  <postaja sifra="E403" wgs84_sirina="46,0655" wgs84_dolzina="14,5126">
    <merilno_mesto>LJ Bežigrad</merilno_mesto>
    <datum_od>2026-10-18 00:00</datum_od>
    <datum_do>2026-10-19 00:00</datum_do>
    <pm10>20</pm10>
  </postaja>
  <postaja sifra="E421" wgs84_sirina="46.2397" wgs84_dolzina="15.2677">
    <merilno_mesto>celje</merilno_mesto>
  </postaja>
</arsopodatki>
""".encode("utf-8")

SEVEN_DAY_XML = """<?xml version="1.0" encoding="UTF-8"?>
<arsopodatki verzija="1.4">
  <postaja sifra="E403" wgs84_sirina="46,0655" wgs84_dolzina="14,5126">
    <datum_od>2026-10-19 08:00</datum_od>
    <datum_do>2026-10-19 09:00</datum_do>
    <pm2.5>11</pm2.5>
  </postaja>
  <postaja sifra="E403" wgs84_sirina="46,0655" wgs84_dolzina="14,5126">
    <datum_od>2026-10-19 07:00</datum_od>
    <datum_do>2026-10-19 08:00</datum_do>
    <pm2.5>9</pm2.5>
  </postaja>
  <postaja sifra="E403" wgs84_sirina="46,0655" wgs84_dolzina="14,5126">
    <datum_od>2026-10-19 09:00</datum_od>
    <datum_do>2026-10-19 10:00</datum_do>
    <pm2.5>14</pm2.5>
  </postaja>
  <postaja sifra="E403" wgs84_sirina="46,0655" wgs84_dolzina="14,5126">
    <datum_od>2026-10-12 09:00</datum_od>
    <datum_do>2026-10-12 10:00</datum_do>
    <pm2.5>40</pm2.5>
  </postaja>
  <postaja sifra="E404" wgs84_sirina="46.5547" wgs84_dolzina="15.6467">
    <datum_od>2026-10-19 09:00</datum_od>
    <datum_do>2026-10-19 10:00</datum_do>
    <pm10>61</pm10>
  </postaja>
</arsopodatki>
""".encode("utf-8")

MALFORMED_XML = b"<arsopodatki><postaja sifra='E403'><pm10>12</pm10></arsopodatki>"

CONNECT_ERROR = "connect-error"

class FakeClock:
    """Settable clock passed to components that track cache age."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)

class FeedServer:
    """
    Serves canned feed documents through an httpx.MockTransport.

    `responses` maps URLs to (status, body) tuples or CONNECT_ERROR.
    """

    def __init__(self, responses: dict | None = None):
        self.responses = dict(responses or {})
        self.requests: list[httpx.Request] = []
        self.timeouts: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.timeouts.append(request.extensions.get("timeout"))
        response = self.responses.get(str(request.url))
        if response == CONNECT_ERROR:
            raise httpx.ConnectError("connection refused", request=request)
        if response is None:
            return httpx.Response(404, content=b"")
        status, body = response
        return httpx.Response(status, content=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, url: str) -> int:
        return sum(1 for r in self.requests if str(r.url) == url)

    def fail(self, url: str, status: int = 503):
        self.responses[url] = (status, b"")

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def feed_server():
    return FeedServer({
        URLS.hourly: (200, HOURLY_XML),
        URLS.stations: (200, STATIONS_XML),
        URLS.seven_day: (200, SEVEN_DAY_XML),
    })
