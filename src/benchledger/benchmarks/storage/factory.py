"""Storage factory.

Builds a storage backend from an explicit StorageConfig.
"""

from __future__ import annotations

import logging

from benchledger.benchmarks.storage.base import StorageProtocol
from benchledger.benchmarks.storage.memory import InMemoryStorage
from benchledger.benchmarks.storage.sqlite_store import SQLiteStorage
from benchledger.core.config import DEFAULT_SQLITE_PATH, StorageConfig
from benchledger.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def create_storage(config: StorageConfig | None = None) -> StorageProtocol:
    """Create an unopened storage backend.

    Args:
        config: Storage configuration. Defaults to SQLite at the default path.

    Returns:
        A backend implementing StorageProtocol. Call open() before use.

    Raises:
        ConfigurationError: If the backend type is not supported.

    Example:
        >>> storage = create_storage(StorageConfig(type="memory"))
        >>> await storage.open()
    """
    config = config or StorageConfig()

    if config.type == "sqlite":
        path = config.sqlite_path or DEFAULT_SQLITE_PATH
        logger.debug(f"Creating SQLite storage at {path}")
        return SQLiteStorage(path)

    if config.type == "memory":
        logger.debug("Creating in-memory storage")
        return InMemoryStorage()

    raise ConfigurationError(f"Storage type '{config.type}' is not supported")


async def open_storage(config: StorageConfig | None = None) -> StorageProtocol:
    """Create a storage backend and open it."""
    storage = create_storage(config)
    await storage.open()
    return storage
