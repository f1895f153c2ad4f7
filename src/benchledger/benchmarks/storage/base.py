"""Base protocol for benchmark storage backends.

This module defines the StorageProtocol that all storage backends must
implement. Every backend must produce identical observable results for
the same sequence of calls; analytic queries are part of the contract so
callers never depend on backend-specific query capability.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from benchledger.benchmarks.models import (
        CostBreakdown,
        CostGroupBy,
        ModelComparison,
        ResultRecord,
        RunRecord,
        TaskSetSummary,
        TrendPoint,
        VariantRunGroup,
    )
    from benchledger.regression import Regression, RegressionOptions


@runtime_checkable
class StorageProtocol(Protocol):
    """Protocol for benchmark storage backends.

    All operations except is_open() raise StorageNotOpenError before
    open() has been called. Uniqueness violations raise ConflictError
    subclasses. Lookups of ids that do not exist return None.

    Access to one handle must be serialized by the caller.

    Example:
        >>> storage = create_storage(StorageConfig(type="memory"))
        >>> await storage.open()
        >>> isinstance(storage, StorageProtocol)
        True
    """

    # ============ Lifecycle ============

    async def open(self) -> None:
        """Open the backend, creating the schema if needed. No-op if already open."""
        ...

    async def close(self) -> None:
        """Close the backend and release resources."""
        ...

    def is_open(self) -> bool:
        """Check whether the backend is open."""
        ...

    # ============ Runs ============

    async def persist_run(self, run: RunRecord) -> None:
        """Persist a new run.

        Args:
            run: The run record to persist.

        Raises:
            DuplicateRunError: If a run with the same run_id exists.
            MalformedInputError: If a required field is None.
        """
        ...

    async def get_run(self, run_id: str) -> RunRecord | None:
        """Get a run by id.

        Returns:
            The run if found, None otherwise.
        """
        ...

    async def list_runs(
        self,
        *,
        config_hash: str | None = None,
        task_set_hash: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[RunRecord]:
        """List runs, newest first.

        Args:
            config_hash: Only runs with this config hash.
            task_set_hash: Only runs with this task-set hash.
            since: Only runs executed at or after this time.
            until: Only runs executed at or before this time.
            limit: Maximum number of runs to return.
            offset: Number of runs to skip.
        """
        ...

    async def has_run(self, run_id: str) -> bool:
        """Check whether a run exists."""
        ...

    async def delete_run(self, run_id: str) -> bool:
        """Delete a run with all its results and attempts.

        Returns:
            True if deleted, False if not found.
        """
        ...

    # ============ Results ============

    async def persist_results(self, run_id: str, results: Sequence[ResultRecord]) -> None:
        """Persist the results of a run, all or nothing.

        Raises:
            RunNotFoundError: If the run was never persisted.
            DuplicateResultError: If a (task_id, variant_id) pair repeats
                within the run. Nothing from the batch is stored.
            MalformedInputError: If a required field of a result or attempt
                is None.
        """
        ...

    async def get_results(
        self,
        *,
        run_id: str | None = None,
        task_id: str | None = None,
        variant_id: str | None = None,
        provider: str | None = None,
        success: bool | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[ResultRecord]:
        """Get results matching all given filters, newest first."""
        ...

    async def get_variant_ids(self) -> list[str]:
        """Distinct variant ids across all results, sorted."""
        ...

    async def get_task_ids(self) -> list[str]:
        """Distinct task ids across all results, sorted."""
        ...

    # ============ Analytics ============

    async def get_model_trend(
        self,
        variant_id: str,
        *,
        task_id: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[TrendPoint]:
        """Per-run aggregates of one variant's results, newest first."""
        ...

    async def compare_models(self, variant1: str, variant2: str) -> ModelComparison:
        """Compare two variants head-to-head on their latest results."""
        ...

    async def detect_regressions(self, options: RegressionOptions | None = None) -> list[Regression]:
        """Detect task/variant pairs whose recent scores dropped."""
        ...

    async def get_cost_breakdown(
        self,
        group_by: CostGroupBy,
        *,
        since: datetime | None = None,
        variant_id: str | None = None,
    ) -> list[CostBreakdown]:
        """Cost breakdown by model, task, day or week, most expensive first."""
        ...

    # ============ Task sets ============

    async def get_task_set_summaries(self) -> list[TaskSetSummary]:
        """Summaries of every task-set hash, most recently run first."""
        ...

    async def get_runs_by_variant_for_task_set(self, task_set_hash: str) -> list[VariantRunGroup]:
        """Runs of one task set grouped by variant, ordered by variant id."""
        ...
