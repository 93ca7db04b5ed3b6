"""
Configuration for the flashorder service

Settings come from environment variables, with keyword overrides for
tests and scripts:

    DECK_STORE_BACKEND   memory | local | s3          (default: local)
    DECK_STORE_PATH      file used by the local store  (default: /tmp/flashorder_decks.json)
    S3_BUCKET            bucket used by the s3 store
    DECK_STORE_KEY       object key used by the s3 store (default: decks/state.json)
    ORDER_SHUFFLE_SEED   integer seed for initial card orders (default: unseeded)
    LOG_LEVEL            logging level name             (default: INFO)
    API_PORT             port for the development server (default: 8000)

Usage:
    from config import get_config, build_store

    config = get_config()
    store = build_store(config)

    config = get_config(backend=StoreBackend.MEMORY)
"""

import logging
import os
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from deck_store import DeckStore, LocalDeckStore, MemoryDeckStore, S3DeckStore

logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    """Where the deck collection is persisted"""
    MEMORY = "memory"
    LOCAL = "local"
    S3 = "s3"


@dataclass
class ServiceConfig:
    """
    Attributes:
        backend: Store backend
        store_path: JSON file for the local backend
        s3_bucket: Bucket for the s3 backend
        s3_key: Object key for the s3 backend
        shuffle_seed: Seed for initial card orders (None = unseeded)
        log_level: Logging level name
        api_port: Port for the development server
    """
    backend: StoreBackend
    store_path: str
    s3_bucket: Optional[str]
    s3_key: str
    shuffle_seed: Optional[int]
    log_level: str
    api_port: int

    def make_rng(self) -> random.Random:
        return random.Random(self.shuffle_seed)


def _int_from_env(name: str, default: Optional[int]) -> Optional[int]:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={value!r}")
        return default


def get_config(backend: Optional[StoreBackend] = None, **overrides) -> ServiceConfig:
    """
    Build configuration from the environment.

    Args:
        backend: Store backend (if None, reads DECK_STORE_BACKEND)
        **overrides: Any other ServiceConfig field to replace

    Returns:
        ServiceConfig
    """
    if backend is None:
        backend_name = os.environ.get("DECK_STORE_BACKEND", "local").lower()
        try:
            backend = StoreBackend(backend_name)
        except ValueError:
            logger.warning(f"Unknown DECK_STORE_BACKEND '{backend_name}', defaulting to local")
            backend = StoreBackend.LOCAL

    config = ServiceConfig(
        backend=backend,
        store_path=os.environ.get("DECK_STORE_PATH", "/tmp/flashorder_decks.json"),
        s3_bucket=os.environ.get("S3_BUCKET"),
        s3_key=os.environ.get("DECK_STORE_KEY", "decks/state.json"),
        shuffle_seed=_int_from_env("ORDER_SHUFFLE_SEED", None),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        api_port=_int_from_env("API_PORT", 8000),
    )

    if overrides:
        config = replace(config, **overrides)

    return config


def build_store(config: ServiceConfig) -> DeckStore:
    """Create the store selected by config.backend."""
    if config.backend == StoreBackend.MEMORY:
        return MemoryDeckStore()
    if config.backend == StoreBackend.S3:
        if not config.s3_bucket:
            raise ValueError("S3_BUCKET must be set for the s3 deck store")
        return S3DeckStore(config.s3_bucket, config.s3_key)
    return LocalDeckStore(config.store_path)
