import logging
import logging.config
import sys

from typing import Dict, Any

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = 'arso_air'

# Third party loggers that are too chatty at INFO level
NOISY_LOGGERS = [
    'asyncio',
    'httpx',
    'httpcore',
    'uvicorn.access',
]

class LogHandler:
    """
    Configures the root logger from the `logging` dictConfig section of the application
    config (or a stdout default) and sets the level of the `arso_air` loggers from `log_level`.
    """

    def __init__(self, config: Dict[str, Any] | None = None, level: str | int = logging.INFO):
        self.config = config
        self.level = level

    @classmethod
    def from_config(cls, config: Dict[str, Any] | None):
        config = config or {}
        return cls(config = config.get('logging'), level = config.get('log_level', logging.INFO))

    def start_logger(self, verbose = False):
        if self.config:
            logging.config.dictConfig(self.config)
        else:
            logging.basicConfig(
                level=logging.INFO,
                format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
                stream=sys.stdout,
            )

        package_level = logging.DEBUG if verbose else self.level
        logging.getLogger(PACKAGE_LOGGER).setLevel(package_level)
        logger.debug(f"Logging configured, {PACKAGE_LOGGER} level {logging.getLevelName(package_level)}")

        if not verbose:
            for logger_name in NOISY_LOGGERS:
                logging.getLogger(logger_name).setLevel(logging.WARNING)
