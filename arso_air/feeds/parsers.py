import xml.etree.ElementTree as ET

from abc import ABC, abstractmethod
from typing import Any, Dict, List
import logging

from ..errors import MalformedInput
from ..models import Measurement, Station
from ..utils import parse_concentration, parse_coordinate, parse_feed_datetime

logger = logging.getLogger(__name__)

STATION_TAG = "postaja"
STATION_CODE_ATTR = "sifra"
LATITUDE_ATTR = "wgs84_sirina"
LONGITUDE_ATTR = "wgs84_dolzina"
STATION_NAME_TAG = "merilno_mesto"

# child element -> Measurement field
_MEASUREMENT_FIELDS = {
    "pm2.5": "pm25",
    "pm10": "pm10",
    "no2": "no2",
    "o3": "o3",
    "so2": "so2",
    "co": "co",
}
_INTERVAL_FIELDS = {
    "datum_od": "interval_start",
    "datum_do": "interval_end",
}

class BaseRecordParser(ABC):
    """
    Incremental parser for ARSO XML feeds.

    The document is fed to an `XMLPullParser` in chunks and every `postaja` element is
    turned into a record as soon as its end tag is seen; the element is cleared
    afterwards. Invalid field values never abort the document, a structurally
    invalid document raises MalformedInput.
    """

    chunk_size = 64 * 1024

    def parse(self, data: bytes) -> List[Any]:
        parser = ET.XMLPullParser(events=("start", "end"))
        records: List[Any] = []
        current = None

        try:
            for offset in range(0, len(data), self.chunk_size):
                parser.feed(data[offset:offset + self.chunk_size])
                current = self._drain(parser, records, current)
            parser.close()
            self._drain(parser, records, current)
        except ET.ParseError as e:
            raise MalformedInput(f"Malformed XML document: {e}") from e

        logger.debug(f"{type(self).__name__} parsed {len(records)} records from {len(data)}b")
        return records

    def _drain(
            self,
            parser: ET.XMLPullParser,
            records: List[Any],
            current: Dict[str, Any] | None
        ) -> Dict[str, Any] | None:
        """Consume pending parser events. Returns the builder of the record still open."""
        for event, elem in parser.read_events():
            if event == "start":
                if elem.tag == STATION_TAG:
                    current = self.start_record(elem.attrib)
                continue

            if elem.tag == STATION_TAG:
                if current is not None:
                    record = self.finish_record(current)
                    if record is not None:
                        records.append(record)
                current = None
                elem.clear()
            elif current is not None:
                self.handle_field(current, elem.tag, (elem.text or "").strip())
        return current

    @abstractmethod
    def start_record(self, attributes: Dict[str, str]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def handle_field(self, builder: Dict[str, Any], tag: str, value: str):
        pass

    @abstractmethod
    def finish_record(self, builder: Dict[str, Any]) -> Any | None:
        """Return the finished record or None to drop it."""
        pass

class StationsXMLParser(BaseRecordParser):
    """Parses station locations (code, name, WGS84 coordinates) from a feed."""

    def start_record(self, attributes):
        return {
            "code": (attributes.get(STATION_CODE_ATTR) or "").strip(),
            "name": "",
            "latitude": parse_coordinate(attributes.get(LATITUDE_ATTR)),
            "longitude": parse_coordinate(attributes.get(LONGITUDE_ATTR)),
        }

    def handle_field(self, builder, tag, value):
        if tag == STATION_NAME_TAG:
            builder["name"] = value

    def finish_record(self, builder) -> Station | None:
        if not builder["code"] or builder["latitude"] is None or builder["longitude"] is None:
            return None
        return Station(
            code=builder["code"],
            name=builder["name"] or builder["code"],
            latitude=builder["latitude"],
            longitude=builder["longitude"],
        )

class MeasurementsXMLParser(BaseRecordParser):
    """Parses hourly pollutant records from the latest-hourly and 7-day feeds."""

    def start_record(self, attributes):
        return {"station_code": (attributes.get(STATION_CODE_ATTR) or "").strip()}

    def handle_field(self, builder, tag, value):
        if tag in _INTERVAL_FIELDS:
            builder[_INTERVAL_FIELDS[tag]] = parse_feed_datetime(value)
        elif tag in _MEASUREMENT_FIELDS:
            builder[_MEASUREMENT_FIELDS[tag]] = parse_concentration(value)

    def finish_record(self, builder) -> Measurement | None:
        if not builder["station_code"]:
            return None
        return Measurement(**builder)
