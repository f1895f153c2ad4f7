"""In-process analytics over primitive benchmark records.

Every function here works on plain runs and (run_id, result) pairs given in
creation order (oldest first), so any backend can answer analytic queries
without a query engine. The SQLite backend answers the same queries in SQL
and must return identical results.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from benchledger.benchmarks.models import (
    CostBreakdown,
    CostGroupBy,
    ModelComparison,
    ResultRecord,
    RunRecord,
    TaskComparisonDetail,
    TaskSetSummary,
    TrendPoint,
    VariantRunGroup,
    Winner,
    day_key,
    to_utc,
    week_key,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime

ResultRow = tuple[str, ResultRecord]


def run_sort_key(run: RunRecord) -> tuple[datetime, str]:
    """Sort key placing runs in recency order (use with reverse=True)."""
    return (run.executed_at, run.run_id)


def model_trend(
    runs: Mapping[str, RunRecord],
    results: Iterable[ResultRow],
    variant_id: str,
    *,
    task_id: str | None = None,
    since: datetime | None = None,
    limit: int | None = None,
) -> list[TrendPoint]:
    """Per-run aggregate of one variant's results, newest first."""
    since = to_utc(since) if since is not None else None
    per_run: dict[str, list[ResultRecord]] = defaultdict(list)

    for run_id, result in results:
        if result.variant_id != variant_id:
            continue
        if task_id is not None and result.task_id != task_id:
            continue
        run = runs.get(run_id)
        if run is None:
            continue
        if since is not None and run.executed_at < since:
            continue
        per_run[run_id].append(result)

    points = [
        TrendPoint(
            run_id=run_id,
            executed_at=runs[run_id].executed_at,
            passed=sum(1 for r in group if r.success),
            total=len(group),
            avg_score=sum(r.final_score for r in group) / len(group),
            cost=sum(r.total_cost for r in group),
        )
        for run_id, group in per_run.items()
    ]
    points.sort(key=lambda p: (p.executed_at, p.run_id), reverse=True)

    if limit is not None and limit > 0:
        return points[:limit]
    return points


def _winner(score1: float, score2: float) -> Winner:
    if score1 > score2:
        return "variant1"
    if score2 > score1:
        return "variant2"
    return "tie"


def compare_models(results: Iterable[ResultRow], variant1: str, variant2: str) -> ModelComparison:
    """Compare two variants on the latest result of every shared task.

    Only the most recently created result per (task, variant) counts.
    Tasks lacking a result for either variant are left out of wins, ties
    and averages, but every result still counts toward each variant's cost.
    """
    latest: dict[tuple[str, str], ResultRecord] = {}
    costs = {variant1: 0.0, variant2: 0.0}

    for _, result in results:
        if result.variant_id not in costs:
            continue
        # Later rows are newer, so they overwrite
        latest[result.key] = result
        costs[result.variant_id] += result.total_cost

    task_ids = sorted({task_id for task_id, _ in latest})
    per_task: list[TaskComparisonDetail] = []
    for task_id in task_ids:
        r1 = latest.get((task_id, variant1))
        r2 = latest.get((task_id, variant2))
        if r1 is None or r2 is None:
            continue
        per_task.append(
            TaskComparisonDetail(
                task_id=task_id,
                variant1_score=r1.final_score,
                variant2_score=r2.final_score,
                winner=_winner(r1.final_score, r2.final_score),
            )
        )

    count = len(per_task) or 1
    return ModelComparison(
        variant1=variant1,
        variant2=variant2,
        variant1_wins=sum(1 for t in per_task if t.winner == "variant1"),
        variant2_wins=sum(1 for t in per_task if t.winner == "variant2"),
        ties=sum(1 for t in per_task if t.winner == "tie"),
        variant1_avg_score=sum(t.variant1_score for t in per_task) / count,
        variant2_avg_score=sum(t.variant2_score for t in per_task) / count,
        variant1_cost=costs[variant1],
        variant2_cost=costs[variant2],
        per_task=per_task,
    )


_COST_GROUPS = ("model", "task", "day", "week")


def _group_key(group_by: CostGroupBy, run: RunRecord, result: ResultRecord) -> str:
    if group_by == "model":
        return result.variant_id
    if group_by == "task":
        return result.task_id
    if group_by == "day":
        return day_key(run.executed_at)
    if group_by == "week":
        return week_key(run.executed_at)
    raise ValueError(f"Unknown cost grouping: {group_by}")


def cost_breakdown(
    runs: Mapping[str, RunRecord],
    results: Iterable[ResultRow],
    group_by: CostGroupBy,
    *,
    since: datetime | None = None,
    variant_id: str | None = None,
) -> list[CostBreakdown]:
    """Cost and token totals per group, most expensive first."""
    if group_by not in _COST_GROUPS:
        raise ValueError(f"Unknown cost grouping: {group_by}")
    since = to_utc(since) if since is not None else None
    groups: dict[str, list[ResultRecord]] = defaultdict(list)

    for run_id, result in results:
        if variant_id is not None and result.variant_id != variant_id:
            continue
        run = runs.get(run_id)
        if run is None:
            continue
        if since is not None and run.executed_at < since:
            continue
        groups[_group_key(group_by, run, result)].append(result)

    breakdown: list[CostBreakdown] = []
    for key, group in groups.items():
        total_cost = sum(r.total_cost for r in group)
        successes = sum(1 for r in group if r.success)
        breakdown.append(
            CostBreakdown(
                group_key=key,
                total_cost=total_cost,
                total_tokens=sum(r.total_tokens for r in group),
                execution_count=len(group),
                avg_cost_per_execution=total_cost / len(group),
                cost_per_success=total_cost / successes if successes else None,
            )
        )

    breakdown.sort(key=lambda b: (-b.total_cost, b.group_key))
    return breakdown


def task_set_summaries(runs: Iterable[RunRecord], results: Iterable[ResultRow]) -> list[TaskSetSummary]:
    """One summary per task-set hash, most recently run first."""
    by_hash: dict[str, list[RunRecord]] = defaultdict(list)
    run_hash: dict[str, str] = {}
    for run in runs:
        by_hash[run.task_set_hash].append(run)
        run_hash[run.run_id] = run.task_set_hash

    variants: dict[str, set[str]] = defaultdict(set)
    for run_id, result in results:
        task_set_hash = run_hash.get(run_id)
        if task_set_hash is not None:
            variants[task_set_hash].add(result.variant_id)

    summaries = [
        TaskSetSummary(
            task_set_hash=task_set_hash,
            first_run=min(r.executed_at for r in group),
            last_run=max(r.executed_at for r in group),
            run_count=len(group),
            model_count=len(variants[task_set_hash]),
            avg_pass_rate=sum(r.overall_pass_rate for r in group) / len(group),
            avg_score=sum(r.average_score for r in group) / len(group),
        )
        for task_set_hash, group in by_hash.items()
    ]
    summaries.sort(key=lambda s: s.task_set_hash)
    summaries.sort(key=lambda s: s.last_run, reverse=True)
    return summaries


def runs_by_variant_for_task_set(
    runs: Iterable[RunRecord],
    results: Iterable[ResultRow],
    task_set_hash: str,
) -> list[VariantRunGroup]:
    """Runs of one task set grouped by the variants they produced results for.

    Groups are ordered by variant id; each group's runs newest first.
    """
    task_set_runs: Sequence[RunRecord] = sorted(
        (r for r in runs if r.task_set_hash == task_set_hash),
        key=run_sort_key,
        reverse=True,
    )
    run_ids = {r.run_id for r in task_set_runs}

    variant_runs: dict[str, set[str]] = defaultdict(set)
    providers: dict[str, str] = {}
    for run_id, result in results:
        if run_id not in run_ids:
            continue
        variant_runs[result.variant_id].add(run_id)
        current = providers.get(result.variant_id)
        if current is None or result.provider < current:
            providers[result.variant_id] = result.provider

    return [
        VariantRunGroup(
            variant_id=variant_id,
            provider=providers[variant_id],
            runs=[r for r in task_set_runs if r.run_id in variant_runs[variant_id]],
        )
        for variant_id in sorted(variant_runs)
    ]
