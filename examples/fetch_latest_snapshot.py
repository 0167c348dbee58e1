"""
This script shows how to load the latest ARSO air quality data and the 7-day history of one station.
"""
from arso_air.service import ArsoService
from arso_air.query_manager import QueryManager, ChartRange
from arso_air.log_handler import LogHandler
import asyncio
import argparse

parser = argparse.ArgumentParser()
parser.add_argument('station', nargs = '?', default = 'E403', help = 'station code, e.g. E403')
args = parser.parse_args()

LogHandler().start_logger()

async def main():
    service = ArsoService()
    query_manager = QueryManager(service)

    await service.fetch_latest_snapshot()
    for item in query_manager.list_stations():
        print(f"{item.code:6} {item.station.name:30} {item.level.title:32} {item.primary_label} {item.primary_value}")

    points = await query_manager.history_for_range(args.station, ChartRange.LAST_24_HOURS)
    print(f"\n{len(points)} chart points for {args.station} in the last 24 hours")

    df = await query_manager.history_frame(args.station)
    print(df)
    print(df.dtypes)

asyncio.run(main())
