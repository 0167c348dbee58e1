from pathlib import Path
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any
import yaml

import logging

from .feeds.client import FeedUrls
from .publisher import (
    PAYLOAD_FILENAME,
    PREMIUM_FILENAME,
    PremiumAccessStore,
    SharedPayloadStore,
    SnapshotPublisher,
)
from .query_manager import QueryManager
from .service import ArsoService, HISTORICAL_CACHE_MAX_AGE

logger = logging.getLogger(__name__)

DEFAULT_SHARED_DIR = "shared"

def load_config_file(config_file: str | Path) -> dict:
    """Load configuration from YAML file."""
    try:
        with open(config_file, 'r') as file:
            config = yaml.safe_load(file) or {}
            logger.info(f"Loaded config file from {config_file}")
    except FileNotFoundError:
        logger.error(f"Configuration file {config_file} not found")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Error parsing configuration file: {e}")
        raise

    #Make sure log directory exists
    for handler_name, handler in config.get('logging', {}).get('handlers', {}).items():
        if "filename" in handler.keys():
            Path(handler['filename']).parent.mkdir(parents=True, exist_ok=True)

    return config

@dataclass
class RuntimeContext:
    config: dict
    config_file: str | Path | None = None
    transport: Any = field(default=None, repr=False)

    @classmethod
    def from_config_file(cls, config_file: str | Path):
        config = load_config_file(config_file)
        return cls(config=config, config_file=config_file)

    def __post_init__(self):
        if self.config is None:
            raise ValueError("RuntimeContext requires a config dictionary")
        self.initialize_runtime(self.config)

    def initialize_runtime(self, config: dict):

        logger.info("Initializing Runtime Context")

        ## Feeds
        feeds_config = config.get('feeds', {})
        self.feed_urls = FeedUrls.from_config(feeds_config)
        self.timeout = float(feeds_config.get('timeout', 20))

        ## Cache
        max_age_minutes = config.get('cache', {}).get('historical_max_age_minutes')
        self.historical_max_age = (
            timedelta(minutes=float(max_age_minutes)) if max_age_minutes is not None else HISTORICAL_CACHE_MAX_AGE
        )

        ## Shared documents
        publisher_config = config.get('publisher', {})
        self.payload_store = SharedPayloadStore(
            publisher_config.get('payload_path', Path(DEFAULT_SHARED_DIR) / PAYLOAD_FILENAME)
        )
        self.premium_store = PremiumAccessStore(
            publisher_config.get('premium_path', Path(DEFAULT_SHARED_DIR) / PREMIUM_FILENAME)
        )
        self.publisher = SnapshotPublisher(self.payload_store)

        ## Refresh schedule
        self.refresh_interval_minutes = float(config.get('refresh', {}).get('interval_minutes', 15))

        ## Service
        self.service = ArsoService(
            urls=self.feed_urls,
            timeout=self.timeout,
            historical_max_age=self.historical_max_age,
            publisher=self.publisher,
            transport=self.transport,
        )

        ## Query Manager
        self.query_manager = QueryManager(self.service, premium_store=self.premium_store)
