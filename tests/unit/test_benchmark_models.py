"""Unit tests for benchmark records and in-process analytics."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from benchledger.benchmarks import analytics
from benchledger.benchmarks.models import (
    AttemptRecord,
    ResultRecord,
    RunRecord,
    TrendPoint,
    day_key,
    to_utc,
    week_key,
)

# ============================================================================
# Timestamp Helper Tests
# ============================================================================


class TestTimestamps:
    """Tests for UTC normalization and time buckets."""

    def test_naive_taken_as_utc(self) -> None:
        """Naive datetimes get the UTC zone."""
        assert to_utc(datetime(2024, 1, 15, 10, 0)) == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    def test_aware_converted(self) -> None:
        """Aware datetimes are converted to UTC."""
        paris = timezone(timedelta(hours=1))
        converted = to_utc(datetime(2024, 1, 15, 0, 30, tzinfo=paris))

        assert converted.tzinfo == timezone.utc
        assert converted.hour == 23
        assert day_key(converted) == "2024-01-14"

    def test_week_key_monday_based(self) -> None:
        """Weeks start on Monday."""
        assert week_key(datetime(2024, 1, 14, tzinfo=timezone.utc)) == "2024-W02"
        assert week_key(datetime(2024, 1, 15, tzinfo=timezone.utc)) == "2024-W03"


# ============================================================================
# Record Tests
# ============================================================================


class TestRunRecord:
    """Tests for RunRecord dataclass."""

    def test_executed_at_normalized(self) -> None:
        """Construction normalizes the timestamp to UTC."""
        run = RunRecord(
            run_id="1",
            executed_at=datetime(2024, 1, 15, 11, 30, tzinfo=timezone(timedelta(hours=1))),
            config_hash="c",
            task_set_hash="t",
        )
        assert run.executed_at == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert run.executed_at.utcoffset() == timedelta(0)

    def test_naive_executed_at_taken_as_utc(self) -> None:
        """A naive timestamp gets the UTC zone."""
        run = RunRecord(run_id="1", executed_at=datetime(2024, 1, 15, 10, 30), config_hash="c", task_set_hash="t")

        assert run.executed_at == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert run.total_tasks == 0
        assert run.metadata == {}


class TestResultRecord:
    """Tests for ResultRecord dataclass."""

    def test_key(self) -> None:
        """key is the (task, variant) pair."""
        result = ResultRecord(
            task_id="T1", variant_id="openai/gpt-4o", model="gpt-4o", provider="openai", success=True, final_score=90.0
        )
        assert result.key == ("T1", "openai/gpt-4o")

    def test_defaults(self) -> None:
        """Optional fields start empty and instances do not share attempt lists."""
        first = ResultRecord(task_id="T1", variant_id="a/m", model="m", provider="a", success=False, final_score=0.0)
        second = ResultRecord(task_id="T2", variant_id="a/m", model="m", provider="a", success=False, final_score=0.0)

        first.attempts.append(AttemptRecord(attempt_number=1, success=False))

        assert second.attempts == []
        assert first.result_json is None
        assert first.attempts[0].compile_success is None
        assert first.attempts[0].failure_reasons == []


class TestTrendPoint:
    """Tests for TrendPoint."""

    def test_pass_rate(self) -> None:
        """pass_rate divides passed by total."""
        point = TrendPoint(run_id="1", executed_at=datetime(2024, 1, 1), passed=3, total=4, avg_score=80.0, cost=0.1)
        assert point.pass_rate == 0.75

    def test_pass_rate_empty(self) -> None:
        """An empty point has a zero pass rate."""
        point = TrendPoint(run_id="1", executed_at=datetime(2024, 1, 1), passed=0, total=0, avg_score=0.0, cost=0.0)
        assert point.pass_rate == 0.0


# ============================================================================
# Analytics Function Tests
# ============================================================================


def make_result(task_id: str, variant_id: str, score: float, cost: float = 0.01) -> ResultRecord:
    """Create a result."""
    return ResultRecord(
        task_id=task_id,
        variant_id=variant_id,
        model=variant_id,
        provider="p",
        success=score >= 70,
        final_score=score,
        total_cost=cost,
    )


class TestAnalyticsFunctions:
    """Tests for the analytics module used by the in-memory backend."""

    def test_run_sort_key(self) -> None:
        """Runs sort by time, then by run id."""
        t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        runs = [
            RunRecord(run_id="b", executed_at=t, config_hash="c", task_set_hash="t"),
            RunRecord(run_id="a", executed_at=t + timedelta(hours=1), config_hash="c", task_set_hash="t"),
            RunRecord(run_id="c", executed_at=t, config_hash="c", task_set_hash="t"),
        ]

        ordered = sorted(runs, key=analytics.run_sort_key, reverse=True)

        assert [r.run_id for r in ordered] == ["a", "c", "b"]

    def test_compare_models_ignores_other_variants(self) -> None:
        """Results of unrelated variants do not affect the comparison."""
        results = [
            ("r0", make_result("T1", "a", 90.0)),
            ("r0", make_result("T1", "b", 80.0)),
            ("r0", make_result("T1", "c", 100.0, cost=5.0)),
        ]

        comparison = analytics.compare_models(results, "a", "b")

        assert comparison.variant1_wins == 1
        assert comparison.variant1_cost == pytest.approx(0.01)
        assert comparison.variant2_cost == pytest.approx(0.01)

    def test_cost_breakdown_ignores_orphan_results(self) -> None:
        """Results whose run is unknown are skipped."""
        runs = {"r0": RunRecord(run_id="r0", executed_at=datetime(2024, 1, 1), config_hash="c", task_set_hash="t")}
        results = [("r0", make_result("T1", "a", 90.0)), ("gone", make_result("T1", "a", 90.0))]

        [breakdown] = analytics.cost_breakdown(runs, results, "model")

        assert breakdown.execution_count == 1

    def test_cost_breakdown_rejects_unknown_grouping(self) -> None:
        """The grouping is validated even without data."""
        with pytest.raises(ValueError):
            analytics.cost_breakdown({}, [], "month")  # type: ignore[arg-type]
