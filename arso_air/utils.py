import datetime
import os
import re
import tempfile
from pathlib import Path
from pytz import timezone
import logging

logger = logging.getLogger(__name__)

FEED_TIMEZONE = timezone('Europe/Ljubljana')
FEED_DATE_FORMAT = "%Y-%m-%d %H:%M"

_NON_NUMERIC = re.compile(r"[^0-9.\-]")

def utc_now() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc)

def parse_coordinate(raw_value: str | None) -> float | None:
    """Parse a coordinate attribute, accepting a decimal comma."""
    if raw_value is None:
        return None
    trimmed = raw_value.strip()
    if not trimmed:
        return None
    try:
        return float(trimmed.replace(',', '.'))
    except ValueError:
        return None

def parse_concentration(raw_value: str | None) -> float | None:
    """
    Parse a pollutant value as published by ARSO.

    Values may carry a decimal comma or qualifiers such as '<' or units. Everything
    except digits, '.' and '-' is stripped. Empty or unparsable values are returned
    as None (not reported), never as 0.
    """
    if not raw_value:
        return None
    normalized = _NON_NUMERIC.sub('', raw_value.strip().replace(',', '.'))
    if not normalized:
        return None
    try:
        return float(normalized)
    except ValueError:
        return None

def parse_feed_datetime(raw_value: str | None, tz=FEED_TIMEZONE) -> datetime.datetime | None:
    """Parse a 'yyyy-MM-dd HH:mm' feed timestamp as local time of the measuring network."""
    if not raw_value:
        return None
    value = raw_value.strip()
    if not value:
        return None
    try:
        naive = datetime.datetime.strptime(value, FEED_DATE_FORMAT)
    except ValueError:
        return None
    return tz.localize(naive)

def atomic_write_bytes(path: str | Path, data: bytes):
    """
    Replace the file at `path` with `data` in one step.

    The data is written to a temporary file in the target directory and moved into
    place with os.replace, so readers in other processes see either the old or the
    new file, never a partial one.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'wb') as tmp_file:
            tmp_file.write(data)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    logger.debug(f"Wrote {len(data)}b to {path}")
