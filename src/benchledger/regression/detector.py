"""Regression detector over stored benchmark history.

This module provides the RegressionDetector class, which compares the
average score of every task/variant pair in the most recent runs against
an older baseline window of runs.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from benchledger.regression.models import Regression, RegressionOptions

if TYPE_CHECKING:
    from collections.abc import Iterable

    from benchledger.benchmarks.models import ResultRecord, RunRecord


def _average_by_pair(
    results: Iterable[tuple[str, ResultRecord]],
    run_ids: set[str],
    variant_id: str | None,
) -> dict[tuple[str, str], float]:
    """Average final score per (task, variant) over results of the given runs."""
    totals: dict[tuple[str, str], list[float]] = defaultdict(list)
    for run_id, result in results:
        if run_id not in run_ids:
            continue
        if variant_id is not None and result.variant_id != variant_id:
            continue
        totals[result.key].append(result.final_score)
    return {pair: sum(scores) / len(scores) for pair, scores in totals.items()}


class RegressionDetector:
    """Detect score regressions between a recent and a baseline window of runs.

    Attributes:
        options: Window sizes, threshold and optional variant filter.

    Example:
        >>> detector = RegressionDetector(RegressionOptions(threshold=0.2))
        >>> regressions = detector.detect(runs, results)
        >>> for regression in regressions:
        ...     print(regression.message)
    """

    def __init__(self, options: RegressionOptions | None = None) -> None:
        """Initialize detector.

        Args:
            options: Detection options. Defaults to RegressionOptions().
        """
        self.options = options or RegressionOptions()

    def split_windows(self, runs: Iterable[RunRecord]) -> tuple[set[str], set[str]]:
        """Split runs into (recent, baseline) run id sets by recency."""
        ordered = sorted(runs, key=lambda r: (r.executed_at, r.run_id), reverse=True)
        recent_end = self.options.recent_window
        baseline_end = recent_end + self.options.baseline_window
        recent = {r.run_id for r in ordered[:recent_end]}
        baseline = {r.run_id for r in ordered[recent_end:baseline_end]}
        return recent, baseline

    def detect(
        self,
        runs: Iterable[RunRecord],
        results: Iterable[tuple[str, ResultRecord]],
    ) -> list[Regression]:
        """Detect regressions.

        Args:
            runs: All runs to consider, in any order.
            results: (run_id, result) pairs.

        Returns:
            Regressions sorted by severity (most negative change first).
        """
        recent_ids, baseline_ids = self.split_windows(runs)
        pairs = list(results)

        recent = _average_by_pair(pairs, recent_ids, self.options.variant_id)
        baseline = _average_by_pair(pairs, baseline_ids, self.options.variant_id)

        regressions: list[Regression] = []
        for pair, current_score in recent.items():
            baseline_score = baseline.get(pair)
            # Pairs never scored in the baseline cannot regress
            if baseline_score is None or baseline_score <= 0:
                continue
            change = (current_score - baseline_score) / baseline_score
            if change < -self.options.threshold:
                regressions.append(
                    Regression(
                        task_id=pair[0],
                        variant_id=pair[1],
                        baseline_score=baseline_score,
                        current_score=current_score,
                        change_pct=change * 100,
                    )
                )

        regressions.sort(key=lambda r: (r.change_pct, r.task_id, r.variant_id))
        return regressions
