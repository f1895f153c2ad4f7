"""benchledger: a ledger of LLM benchmark runs with fingerprinting and analytics."""

from __future__ import annotations

from benchledger.benchmarks import (
    BenchmarkHistory,
    InMemoryStorage,
    JsonImporter,
    ResultRecord,
    RunRecord,
    SQLiteStorage,
    StorageProtocol,
    create_storage,
    open_storage,
)
from benchledger.core import Settings, StorageConfig
from benchledger.fingerprint import generate_config_hash, hash_task_set
from benchledger.regression import Regression, RegressionOptions

__version__ = "0.1.0"
__all__ = [
    # Records and history
    "BenchmarkHistory",
    "ResultRecord",
    "RunRecord",
    # Storage
    "InMemoryStorage",
    "SQLiteStorage",
    "StorageProtocol",
    "create_storage",
    "open_storage",
    # Import
    "JsonImporter",
    # Fingerprints
    "generate_config_hash",
    "hash_task_set",
    # Regressions
    "Regression",
    "RegressionOptions",
    # Configuration
    "Settings",
    "StorageConfig",
]
