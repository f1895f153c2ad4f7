"""Benchmark tracking module for benchledger.

This module provides the run and result records, storage backends,
analytics over stored history and the importer for historical exports.

Example:
    >>> from benchledger.benchmarks import BenchmarkHistory, open_storage
    >>> from benchledger.core import StorageConfig
    >>>
    >>> storage = await open_storage(StorageConfig(sqlite_path="results/benchledger.db"))
    >>> history = BenchmarkHistory(storage)
    >>> await history.record(run, results)
    >>> trend = await storage.get_model_trend("openai/gpt-4o", limit=10)
"""

from __future__ import annotations

from benchledger.benchmarks.history import BenchmarkHistory
from benchledger.benchmarks.importer import JsonImporter
from benchledger.benchmarks.models import (
    AttemptRecord,
    CostBreakdown,
    ImportResult,
    ModelComparison,
    ResultRecord,
    RunRecord,
    TaskComparisonDetail,
    TaskSetSummary,
    TrendPoint,
    VariantRunGroup,
)
from benchledger.benchmarks.storage import (
    InMemoryStorage,
    SQLiteStorage,
    StorageProtocol,
    create_storage,
    open_storage,
)

__all__ = [
    "AttemptRecord",
    "BenchmarkHistory",
    "CostBreakdown",
    "ImportResult",
    "InMemoryStorage",
    "JsonImporter",
    "ModelComparison",
    "ResultRecord",
    "RunRecord",
    "SQLiteStorage",
    "StorageProtocol",
    "TaskComparisonDetail",
    "TaskSetSummary",
    "TrendPoint",
    "VariantRunGroup",
    "create_storage",
    "open_storage",
]
