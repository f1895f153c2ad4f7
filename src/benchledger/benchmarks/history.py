"""High-level API for benchmark tracking.

This module provides BenchmarkHistory, the main interface for recording
runs and querying their history.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from benchledger.benchmarks.storage import InMemoryStorage, StorageProtocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from benchledger.benchmarks.models import ResultRecord, RunRecord

logger = logging.getLogger(__name__)


class BenchmarkHistory:
    """High-level API for benchmark tracking.

    Records a run together with its results as one unit and answers the
    common history questions on top of a storage backend. The backend must
    already be open.

    Example:
        >>> storage = await open_storage(StorageConfig(type="memory"))
        >>> history = BenchmarkHistory(storage)
        >>> await history.record(run, results)
        >>> latest = await history.get_latest(task_set_hash=run.task_set_hash)
    """

    def __init__(self, store: StorageProtocol | None = None) -> None:
        """Initialize with storage backend.

        Args:
            store: Storage backend (default: InMemoryStorage, opened on first record).
        """
        self._store: StorageProtocol = store or InMemoryStorage()

    @property
    def store(self) -> StorageProtocol:
        """The underlying storage backend."""
        return self._store

    async def record(self, run: RunRecord, results: Sequence[ResultRecord]) -> RunRecord:
        """Persist a run and its results.

        If the results batch is rejected the run is deleted again, so the
        history never holds a run without its results.

        Args:
            run: The run to record.
            results: Results produced by the run.

        Returns:
            The recorded run.

        Raises:
            DuplicateRunError: If the run id was recorded before.
            DuplicateResultError: If a (task, variant) pair repeats in results.
        """
        if not self._store.is_open():
            await self._store.open()

        await self._store.persist_run(run)
        try:
            await self._store.persist_results(run.run_id, results)
        except Exception:
            await self._store.delete_run(run.run_id)
            raise

        logger.info(f"Recorded run {run.run_id} with {len(results)} results")
        return run

    async def get_latest(
        self,
        *,
        config_hash: str | None = None,
        task_set_hash: str | None = None,
    ) -> RunRecord | None:
        """Get the most recent run, optionally filtered by fingerprint.

        Returns:
            The most recent run, or None if no runs match.
        """
        runs = await self._store.list_runs(config_hash=config_hash, task_set_hash=task_set_hash, limit=1)
        return runs[0] if runs else None

    async def get_history(
        self,
        *,
        config_hash: str | None = None,
        task_set_hash: str | None = None,
        limit: int = 100,
    ) -> list[RunRecord]:
        """Get historical runs, newest first.

        Args:
            config_hash: Only runs with this config fingerprint.
            task_set_hash: Only runs with this task-set fingerprint.
            limit: Maximum number of runs to return.
        """
        return await self._store.list_runs(config_hash=config_hash, task_set_hash=task_set_hash, limit=limit)

    async def select_runs_for_task_set(self, task_set_hash: str) -> dict[str, RunRecord]:
        """Pick the newest run of every variant that ran a task set.

        Args:
            task_set_hash: The task-set fingerprint.

        Returns:
            Mapping of variant id to that variant's newest run, in variant id order.
        """
        groups = await self._store.get_runs_by_variant_for_task_set(task_set_hash)
        return {group.variant_id: group.runs[0] for group in groups if group.runs}
