import pandas as pd
import pandera.pandas as pa

from dataclasses import asdict
from datetime import datetime
from typing import Dict, Iterable, List
import logging

from .models import Measurement, Station, POLLUTANTS

logger = logging.getLogger(__name__)

MEASUREMENT_SCHEMA = pa.DataFrameSchema(
    {
        "station_code": pa.Column(str),
        "datetime": pa.Column(pd.DatetimeTZDtype(unit="ns", tz="UTC"), nullable=True),
        "interval_start": pa.Column(pd.DatetimeTZDtype(unit="ns", tz="UTC"), nullable=True),
        "interval_end": pa.Column(pd.DatetimeTZDtype(unit="ns", tz="UTC"), nullable=True),
        **{p: pa.Column(float, nullable=True) for p in POLLUTANTS},
    },
    strict=True,
    coerce=True,
)

def merge_stations(primary: Iterable[Station], secondary: Iterable[Station]) -> List[Station]:
    """
    Union of two station lists keyed by station code.

    Entries of `primary` win on conflicts, entries of `secondary` are only added for
    codes missing from `primary`. The result is sorted case-insensitively by name.
    """
    by_code: Dict[str, Station] = {}
    for station in primary:
        by_code[station.code] = station

    for station in secondary:
        if station.code not in by_code:
            by_code[station.code] = station

    return sorted(by_code.values(), key=lambda s: s.name.casefold())

def index_latest(measurements: Iterable[Measurement]) -> Dict[str, Measurement]:
    """Map station code to measurement. The last record wins if a code repeats."""
    index: Dict[str, Measurement] = {}
    for measurement in measurements:
        if measurement.station_code in index:
            logger.debug(f"Duplicate latest measurement for station {measurement.station_code}, keeping the last one")
        index[measurement.station_code] = measurement
    return index

def deduplicate_by_timestamp(measurements: Iterable[Measurement]) -> List[Measurement]:
    """
    Keep one measurement per effective timestamp, sorted ascending.

    When two records share a timestamp, a later one only replaces the kept one if it
    reports pm25 and the kept one does not. Only pm25 is considered, so between two
    records without pm25 the first one seen is kept. Records without any timestamp
    are appended after the dated ones in the order they were encountered.
    """
    by_timestamp: Dict[datetime, Measurement] = {}
    undated: List[Measurement] = []

    for measurement in measurements:
        timestamp = measurement.last_update
        if timestamp is None:
            undated.append(measurement)
            continue

        existing = by_timestamp.get(timestamp)
        if existing is None:
            by_timestamp[timestamp] = measurement
        elif existing.pm25 is None and measurement.pm25 is not None:
            by_timestamp[timestamp] = measurement

    dated = sorted(by_timestamp.values(), key=lambda m: m.last_update)
    return dated + undated

def group_historical(measurements: Iterable[Measurement]) -> Dict[str, List[Measurement]]:
    """Group measurements by station code into deduplicated, time ordered series."""
    grouped: Dict[str, List[Measurement]] = {}
    for measurement in measurements:
        grouped.setdefault(measurement.station_code, []).append(measurement)

    return {code: deduplicate_by_timestamp(series) for code, series in grouped.items()}

def measurements_to_frame(measurements: Iterable[Measurement]) -> pd.DataFrame:
    """
    Tabular view of measurements with one row per record.

    Timestamps are converted to UTC, unreported values are NaN. The frame is
    validated against MEASUREMENT_SCHEMA.
    """
    rows = []
    for measurement in measurements:
        row = asdict(measurement)
        row['datetime'] = measurement.last_update
        rows.append(row)

    columns = ["station_code", "datetime", "interval_start", "interval_end", *POLLUTANTS]
    df = pd.DataFrame(rows, columns=columns)

    for col in ["datetime", "interval_start", "interval_end"]:
        df[col] = pd.to_datetime(df[col], utc=True)

    return MEASUREMENT_SCHEMA.validate(df)
