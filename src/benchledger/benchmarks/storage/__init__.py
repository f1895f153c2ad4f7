"""Storage backends for benchmark history.

This module provides the storage protocol, a persistent SQLite backend
and an in-memory backend with identical behaviour.

Example:
    >>> from benchledger.benchmarks.storage import open_storage
    >>> from benchledger.core import StorageConfig
    >>> storage = await open_storage(StorageConfig(sqlite_path="results/ledger.db"))
    >>> runs = await storage.list_runs(limit=10)
"""

from __future__ import annotations

from benchledger.benchmarks.storage.base import StorageProtocol
from benchledger.benchmarks.storage.factory import create_storage, open_storage
from benchledger.benchmarks.storage.memory import InMemoryStorage
from benchledger.benchmarks.storage.sqlite_store import SQLiteStorage

__all__ = [
    "InMemoryStorage",
    "SQLiteStorage",
    "StorageProtocol",
    "create_storage",
    "open_storage",
]
