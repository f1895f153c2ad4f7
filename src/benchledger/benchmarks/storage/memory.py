"""In-memory storage backend.

Dictionary-based storage with the same observable behaviour as the SQLite
backend. Data is lost when the process exits; mainly used in tests.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

from benchledger.benchmarks import analytics
from benchledger.benchmarks.models import require_fields, to_utc
from benchledger.core.exceptions import (
    ConflictError,
    DuplicateResultError,
    DuplicateRunError,
    RunNotFoundError,
    StorageNotOpenError,
)
from benchledger.regression import RegressionDetector

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


def _page(items: list, limit: int | None, offset: int | None) -> list:
    # Only positive values page
    if offset is not None and offset > 0:
        items = items[offset:]
    if limit is not None and limit > 0:
        items = items[:limit]
    return items


class InMemoryStorage:
    """In-memory storage for benchmark history.

    Records are copied on the way in and out, so callers can never mutate
    stored state.

    Example:
        >>> storage = InMemoryStorage()
        >>> await storage.open()
        >>> await storage.persist_run(run)
        >>> await storage.get_run(run.run_id) == run
        True
    """

    def __init__(self) -> None:
        self._runs: dict[str, RunRecord] = {}
        # (run_id, result) in creation order, oldest first
        self._results: list[tuple[str, ResultRecord]] = []
        self._open = False

    # ============ Lifecycle ============

    async def open(self) -> None:
        """Open the store. No-op if already open."""
        self._open = True

    async def close(self) -> None:
        """Close the store. Stored data survives until the object is dropped."""
        self._open = False

    def is_open(self) -> bool:
        """Check whether the store is open."""
        return self._open

    def _check_open(self) -> None:
        if not self._open:
            raise StorageNotOpenError("Storage not open. Call open() first.")

    def clear(self) -> None:
        """Remove all runs and results."""
        self._runs.clear()
        self._results.clear()

    # ============ Runs ============

    async def persist_run(self, run: RunRecord) -> None:
        """Persist a new run."""
        self._check_open()
        require_fields(run)
        if run.run_id in self._runs:
            raise DuplicateRunError(run.run_id)
        self._runs[run.run_id] = copy.deepcopy(run)

    async def get_run(self, run_id: str) -> RunRecord | None:
        """Get a run by id."""
        self._check_open()
        run = self._runs.get(run_id)
        return copy.deepcopy(run) if run is not None else None

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
        """List runs, newest first."""
        self._check_open()
        runs = list(self._runs.values())

        if config_hash is not None:
            runs = [r for r in runs if r.config_hash == config_hash]
        if task_set_hash is not None:
            runs = [r for r in runs if r.task_set_hash == task_set_hash]
        if since is not None:
            runs = [r for r in runs if r.executed_at >= to_utc(since)]
        if until is not None:
            runs = [r for r in runs if r.executed_at <= to_utc(until)]

        runs.sort(key=analytics.run_sort_key, reverse=True)
        return copy.deepcopy(_page(runs, limit, offset))

    async def has_run(self, run_id: str) -> bool:
        """Check whether a run exists."""
        self._check_open()
        return run_id in self._runs

    async def delete_run(self, run_id: str) -> bool:
        """Delete a run and its results."""
        self._check_open()
        if self._runs.pop(run_id, None) is None:
            return False
        self._results = [(rid, r) for rid, r in self._results if rid != run_id]
        return True

    # ============ Results ============

    async def persist_results(self, run_id: str, results: Sequence[ResultRecord]) -> None:
        """Persist a batch of results for a run, all or nothing."""
        self._check_open()
        if run_id not in self._runs:
            raise RunNotFoundError(run_id)

        # Validate the whole batch before storing anything
        seen = {r.key for rid, r in self._results if rid == run_id}
        for result in results:
            require_fields(result)
            if result.key in seen:
                raise DuplicateResultError(run_id, result.task_id, result.variant_id)
            seen.add(result.key)
            numbers = [a.attempt_number for a in result.attempts]
            if len(numbers) != len(set(numbers)):
                raise ConflictError(f"Attempt number repeated for task {result.task_id} / variant {result.variant_id}")

        for result in results:
            stored = copy.deepcopy(result)
            stored.attempts.sort(key=lambda a: a.attempt_number)
            self._results.append((run_id, stored))

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
        self._check_open()
        matches = [
            result
            for rid, result in reversed(self._results)
            if (run_id is None or rid == run_id)
            and (task_id is None or result.task_id == task_id)
            and (variant_id is None or result.variant_id == variant_id)
            and (provider is None or result.provider == provider)
            and (success is None or result.success == success)
        ]
        return copy.deepcopy(_page(matches, limit, offset))

    async def get_variant_ids(self) -> list[str]:
        """Distinct variant ids, sorted."""
        self._check_open()
        return sorted({r.variant_id for _, r in self._results})

    async def get_task_ids(self) -> list[str]:
        """Distinct task ids, sorted."""
        self._check_open()
        return sorted({r.task_id for _, r in self._results})

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
        self._check_open()
        return analytics.model_trend(
            self._runs,
            self._results,
            variant_id,
            task_id=task_id,
            since=since,
            limit=limit,
        )

    async def compare_models(self, variant1: str, variant2: str) -> ModelComparison:
        """Compare two variants head-to-head."""
        self._check_open()
        return analytics.compare_models(self._results, variant1, variant2)

    async def detect_regressions(self, options: RegressionOptions | None = None) -> list[Regression]:
        """Detect score regressions."""
        self._check_open()
        return RegressionDetector(options).detect(self._runs.values(), self._results)

    async def get_cost_breakdown(
        self,
        group_by: CostGroupBy,
        *,
        since: datetime | None = None,
        variant_id: str | None = None,
    ) -> list[CostBreakdown]:
        """Cost breakdown per group."""
        self._check_open()
        return analytics.cost_breakdown(
            self._runs,
            self._results,
            group_by,
            since=since,
            variant_id=variant_id,
        )

    # ============ Task sets ============

    async def get_task_set_summaries(self) -> list[TaskSetSummary]:
        """Summaries of every task-set hash."""
        self._check_open()
        return analytics.task_set_summaries(self._runs.values(), self._results)

    async def get_runs_by_variant_for_task_set(self, task_set_hash: str) -> list[VariantRunGroup]:
        """Runs of one task set grouped by variant."""
        self._check_open()
        groups = analytics.runs_by_variant_for_task_set(self._runs.values(), self._results, task_set_hash)
        return copy.deepcopy(groups)

    def __len__(self) -> int:
        """Return the number of stored runs."""
        return len(self._runs)
