import uvicorn

import argparse
import logging

from arso_air.api import create_app
from arso_air.log_handler import LogHandler
from arso_air.runtime import RuntimeContext

parser = argparse.ArgumentParser(description="Serve ARSO air quality data")
parser.add_argument("--config", default="config/config.yaml", help="Path to the YAML config file")
parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
args = parser.parse_args()

# Load config file
runtime = RuntimeContext.from_config_file(args.config)

# Configure logging
LogHandler.from_config(runtime.config).start_logger(verbose=args.verbose)

api_config = runtime.config.get('api', {})
app = create_app(runtime, refresh_in_background=True)

uvicorn.run(app, host=api_config.get('host', "0.0.0.0"), port=int(api_config.get('port', 8000)), log_level="info")
