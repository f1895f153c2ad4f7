"""Behavioural tests shared by every storage backend.

Each test runs against both the in-memory and the SQLite backend; both must
give the same answers for the same sequence of calls.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import pytest

from benchledger.benchmarks.models import AttemptRecord, ResultRecord, RunRecord
from benchledger.benchmarks.storage import StorageProtocol, create_storage
from benchledger.core.config import StorageConfig
from benchledger.core.exceptions import (
    ConflictError,
    DuplicateResultError,
    DuplicateRunError,
    MalformedInputError,
    RunNotFoundError,
    StorageNotOpenError,
)
from benchledger.regression import RegressionOptions

if TYPE_CHECKING:
    from pathlib import Path

BASE_TIME = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(params=["memory", "sqlite"])
def storage(request: pytest.FixtureRequest, tmp_path: Path) -> StorageProtocol:
    """Create an unopened storage backend of each type."""
    if request.param == "sqlite":
        return create_storage(StorageConfig(type="sqlite", sqlite_path=str(tmp_path / "ledger.db")))
    return create_storage(StorageConfig(type="memory"))


def make_run(run_id: str, executed_at: datetime = BASE_TIME, **overrides: Any) -> RunRecord:
    """Create a run record."""
    values: dict[str, Any] = {
        "config_hash": "cfg-a",
        "task_set_hash": "ts-a",
        "total_tasks": 3,
        "total_models": 2,
        "total_cost": 0.5,
        "total_tokens": 12000,
        "total_duration_ms": 60000,
        "pass_rate_1": 0.5,
        "pass_rate_2": 0.75,
        "overall_pass_rate": 0.75,
        "average_score": 80.0,
    }
    values.update(overrides)
    return RunRecord(run_id=run_id, executed_at=executed_at, **values)


def make_result(
    task_id: str,
    variant_id: str = "openai/gpt-4o",
    score: float = 80.0,
    **overrides: Any,
) -> ResultRecord:
    """Create a result record; provider and model come from the variant id."""
    provider, _, model = variant_id.partition("/")
    values: dict[str, Any] = {
        "model": model or variant_id,
        "provider": provider,
        "success": score >= 70,
        "final_score": score,
        "passed_attempt": 1 if score >= 70 else 0,
        "total_tokens": 1000,
        "prompt_tokens": 700,
        "completion_tokens": 300,
        "total_cost": 0.01,
        "total_duration_ms": 5000,
    }
    values.update(overrides)
    return ResultRecord(task_id=task_id, variant_id=variant_id, **values)


async def add_run(storage: StorageProtocol, run: RunRecord, results: list[ResultRecord]) -> None:
    """Persist a run with its results."""
    await storage.persist_run(run)
    await storage.persist_results(run.run_id, results)


# ============================================================================
# Lifecycle Tests
# ============================================================================


class TestLifecycle:
    """Tests for open/close behaviour."""

    def test_implements_protocol(self, storage: StorageProtocol) -> None:
        """Both backends satisfy StorageProtocol."""
        assert isinstance(storage, StorageProtocol)

    @pytest.mark.asyncio
    async def test_operations_fail_before_open(self, storage: StorageProtocol) -> None:
        """Every operation fails fast before open()."""
        assert storage.is_open() is False

        with pytest.raises(StorageNotOpenError):
            await storage.persist_run(make_run("1"))
        with pytest.raises(StorageNotOpenError):
            await storage.get_run("1")
        with pytest.raises(StorageNotOpenError):
            await storage.list_runs()
        with pytest.raises(StorageNotOpenError):
            await storage.get_results()
        with pytest.raises(StorageNotOpenError):
            await storage.get_cost_breakdown("model")

    @pytest.mark.asyncio
    async def test_open_is_idempotent(self, storage: StorageProtocol) -> None:
        """Opening twice is harmless."""
        await storage.open()
        await storage.persist_run(make_run("1"))
        await storage.open()

        assert storage.is_open() is True
        assert await storage.has_run("1")

    @pytest.mark.asyncio
    async def test_operations_fail_after_close(self, storage: StorageProtocol) -> None:
        """Closing makes the handle unusable until reopened."""
        await storage.open()
        await storage.close()

        assert storage.is_open() is False
        with pytest.raises(StorageNotOpenError):
            await storage.has_run("1")


# ============================================================================
# Run Tests
# ============================================================================


class TestRuns:
    """Tests for run persistence and listing."""

    @pytest.mark.asyncio
    async def test_persist_and_get(self, storage: StorageProtocol) -> None:
        """A persisted run reads back equal."""
        await storage.open()
        run = make_run("1705314600000", metadata={"imported": True, "tags": ["nightly"]})

        await storage.persist_run(run)
        loaded = await storage.get_run(run.run_id)

        assert loaded == run
        assert loaded is not None
        assert loaded.executed_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, storage: StorageProtocol) -> None:
        """Unknown run ids give None."""
        await storage.open()
        assert await storage.get_run("nope") is None
        assert await storage.has_run("nope") is False

    @pytest.mark.asyncio
    async def test_duplicate_run_conflicts(self, storage: StorageProtocol) -> None:
        """Persisting the same run id twice is a conflict."""
        await storage.open()
        await storage.persist_run(make_run("1"))

        with pytest.raises(DuplicateRunError) as exc_info:
            await storage.persist_run(make_run("1", average_score=10.0))

        assert isinstance(exc_info.value, ConflictError)
        loaded = await storage.get_run("1")
        assert loaded is not None
        assert loaded.average_score == 80.0

    @pytest.mark.asyncio
    async def test_missing_required_run_field(self, storage: StorageProtocol) -> None:
        """A run with a None required field is malformed, not a conflict."""
        await storage.open()

        with pytest.raises(MalformedInputError) as exc_info:
            await storage.persist_run(make_run("1", config_hash=None))

        assert not isinstance(exc_info.value, ConflictError)
        assert await storage.has_run("1") is False

    @pytest.mark.asyncio
    async def test_naive_timestamp_taken_as_utc(self, storage: StorageProtocol) -> None:
        """Naive timestamps are stored as UTC."""
        await storage.open()
        await storage.persist_run(make_run("1", executed_at=datetime(2024, 1, 15, 10, 30)))

        loaded = await storage.get_run("1")

        assert loaded is not None
        assert loaded.executed_at == BASE_TIME

    @pytest.mark.asyncio
    async def test_list_newest_first(self, storage: StorageProtocol) -> None:
        """Runs are listed by execution time, newest first."""
        await storage.open()
        for i in (2, 0, 1):
            await storage.persist_run(make_run(f"r{i}", BASE_TIME + timedelta(days=i)))

        runs = await storage.list_runs()

        assert [r.run_id for r in runs] == ["r2", "r1", "r0"]

    @pytest.mark.asyncio
    async def test_list_ties_broken_by_run_id(self, storage: StorageProtocol) -> None:
        """Runs executed at the same time are ordered by run id, descending."""
        await storage.open()
        for run_id in ("a", "c", "b"):
            await storage.persist_run(make_run(run_id))

        runs = await storage.list_runs()

        assert [r.run_id for r in runs] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_list_filters(self, storage: StorageProtocol) -> None:
        """Hash and time filters combine."""
        await storage.open()
        await storage.persist_run(make_run("r0", BASE_TIME, config_hash="cfg-a", task_set_hash="ts-a"))
        await storage.persist_run(make_run("r1", BASE_TIME + timedelta(days=1), config_hash="cfg-b"))
        await storage.persist_run(make_run("r2", BASE_TIME + timedelta(days=2), task_set_hash="ts-b"))

        by_config = await storage.list_runs(config_hash="cfg-b")
        by_task_set = await storage.list_runs(task_set_hash="ts-a")
        since = await storage.list_runs(since=BASE_TIME + timedelta(days=1))
        until = await storage.list_runs(until=BASE_TIME + timedelta(days=1))
        window = await storage.list_runs(since=BASE_TIME + timedelta(hours=1), until=BASE_TIME + timedelta(days=1))

        assert [r.run_id for r in by_config] == ["r1"]
        assert [r.run_id for r in by_task_set] == ["r1", "r0"]
        assert [r.run_id for r in since] == ["r2", "r1"]
        assert [r.run_id for r in until] == ["r1", "r0"]
        assert [r.run_id for r in window] == ["r1"]

    @pytest.mark.asyncio
    async def test_list_paging(self, storage: StorageProtocol) -> None:
        """limit and offset page through newest-first runs."""
        await storage.open()
        for i in range(5):
            await storage.persist_run(make_run(f"r{i}", BASE_TIME + timedelta(days=i)))

        first = await storage.list_runs(limit=2)
        second = await storage.list_runs(limit=2, offset=2)
        rest = await storage.list_runs(offset=3)

        assert [r.run_id for r in first] == ["r4", "r3"]
        assert [r.run_id for r in second] == ["r2", "r1"]
        assert [r.run_id for r in rest] == ["r1", "r0"]

    @pytest.mark.asyncio
    async def test_list_non_positive_paging_ignored(self, storage: StorageProtocol) -> None:
        """Zero or negative limit and offset return every run."""
        await storage.open()
        for i in range(3):
            await storage.persist_run(make_run(f"r{i}", BASE_TIME + timedelta(days=i)))

        negative_limit = await storage.list_runs(limit=-1)
        negative_offset = await storage.list_runs(offset=-2)
        zero = await storage.list_runs(limit=0, offset=0)

        assert [r.run_id for r in negative_limit] == ["r2", "r1", "r0"]
        assert [r.run_id for r in negative_offset] == ["r2", "r1", "r0"]
        assert [r.run_id for r in zero] == ["r2", "r1", "r0"]

    @pytest.mark.asyncio
    async def test_delete_cascades(self, storage: StorageProtocol) -> None:
        """Deleting a run removes its results."""
        await storage.open()
        await add_run(storage, make_run("r0"), [make_result("T1"), make_result("T2")])
        await add_run(storage, make_run("r1"), [make_result("T1")])

        assert await storage.delete_run("r0") is True
        assert await storage.delete_run("r0") is False

        assert await storage.get_run("r0") is None
        assert await storage.get_results(run_id="r0") == []
        assert len(await storage.get_results()) == 1


# ============================================================================
# Result Tests
# ============================================================================


class TestResults:
    """Tests for result persistence and queries."""

    @pytest.mark.asyncio
    async def test_round_trip_with_attempts(self, storage: StorageProtocol) -> None:
        """Results keep every field, attempts and variant config."""
        await storage.open()
        result = make_result(
            "CG-AL-E001",
            variant_config={"temperature": 0.2, "thinkingBudget": 2000},
            result_json='{"taskId": "CG-AL-E001"}',
            attempts=[
                AttemptRecord(
                    attempt_number=2,
                    success=True,
                    score=90.0,
                    tokens_used=600,
                    cost=0.006,
                    duration_ms=3000,
                    compile_success=True,
                    test_success=True,
                ),
                AttemptRecord(
                    attempt_number=1,
                    success=False,
                    score=20.0,
                    tokens_used=400,
                    cost=0.004,
                    duration_ms=2000,
                    compile_success=False,
                    failure_reasons=["AL0118: name does not exist"],
                ),
            ],
        )

        await add_run(storage, make_run("1"), [result])
        [loaded] = await storage.get_results(run_id="1")

        assert loaded.final_score == result.final_score
        assert loaded.variant_config == {"temperature": 0.2, "thinkingBudget": 2000}
        assert loaded.result_json == '{"taskId": "CG-AL-E001"}'
        assert [a.attempt_number for a in loaded.attempts] == [1, 2]
        assert loaded.attempts[0].compile_success is False
        assert loaded.attempts[0].test_success is None
        assert loaded.attempts[0].failure_reasons == ["AL0118: name does not exist"]
        assert loaded.attempts[1].score == 90.0

    @pytest.mark.asyncio
    async def test_results_for_unknown_run(self, storage: StorageProtocol) -> None:
        """Results cannot be attached to a run that was never persisted."""
        await storage.open()
        with pytest.raises(RunNotFoundError):
            await storage.persist_results("missing", [make_result("T1")])

    @pytest.mark.asyncio
    async def test_duplicate_in_batch_stores_nothing(self, storage: StorageProtocol) -> None:
        """A repeated task/variant pair rejects the whole batch."""
        await storage.open()
        await storage.persist_run(make_run("1"))

        with pytest.raises(DuplicateResultError) as exc_info:
            await storage.persist_results("1", [make_result("T1"), make_result("T2"), make_result("T1", score=10.0)])

        assert isinstance(exc_info.value, ConflictError)
        assert await storage.get_results(run_id="1") == []

    @pytest.mark.asyncio
    async def test_duplicate_across_batches(self, storage: StorageProtocol) -> None:
        """A pair already stored for the run conflicts."""
        await storage.open()
        await add_run(storage, make_run("1"), [make_result("T1")])

        with pytest.raises(DuplicateResultError):
            await storage.persist_results("1", [make_result("T2"), make_result("T1")])

        assert [r.task_id for r in await storage.get_results(run_id="1")] == ["T1"]

    @pytest.mark.asyncio
    async def test_missing_required_field_stores_nothing(self, storage: StorageProtocol) -> None:
        """A result with a None required field rejects the whole batch."""
        await storage.open()
        await storage.persist_run(make_run("1"))

        with pytest.raises(MalformedInputError) as exc_info:
            await storage.persist_results("1", [make_result("T1"), make_result("T2", model=None)])

        assert "model" in str(exc_info.value)
        assert not isinstance(exc_info.value, ConflictError)
        assert await storage.get_results(run_id="1") == []

    @pytest.mark.asyncio
    async def test_missing_required_attempt_field(self, storage: StorageProtocol) -> None:
        """Attempts are checked for required fields as well."""
        await storage.open()
        await storage.persist_run(make_run("1"))
        attempt = AttemptRecord(attempt_number=1, success=True, score=None)  # type: ignore[arg-type]

        with pytest.raises(MalformedInputError):
            await storage.persist_results("1", [make_result("T1", attempts=[attempt])])

        assert await storage.get_results(run_id="1") == []

    @pytest.mark.asyncio
    async def test_same_pair_in_other_run_allowed(self, storage: StorageProtocol) -> None:
        """Uniqueness is per run."""
        await storage.open()
        await add_run(storage, make_run("1"), [make_result("T1")])
        await add_run(storage, make_run("2"), [make_result("T1")])

        assert len(await storage.get_results(task_id="T1")) == 2

    @pytest.mark.asyncio
    async def test_filters_and_order(self, storage: StorageProtocol) -> None:
        """Filters combine; results come newest first."""
        await storage.open()
        await add_run(
            storage,
            make_run("r0"),
            [make_result("T1", "openai/gpt-4o", 90.0), make_result("T1", "anthropic/claude", 40.0)],
        )
        await add_run(
            storage,
            make_run("r1", BASE_TIME + timedelta(days=1)),
            [make_result("T2", "openai/gpt-4o", 50.0), make_result("T1", "openai/gpt-4o", 75.0)],
        )

        everything = await storage.get_results()
        gpt = await storage.get_results(variant_id="openai/gpt-4o")
        anthropic = await storage.get_results(provider="anthropic")
        failed = await storage.get_results(success=False)
        gpt_t1 = await storage.get_results(task_id="T1", variant_id="openai/gpt-4o")

        assert [(r.task_id, r.final_score) for r in everything] == [
            ("T1", 75.0),
            ("T2", 50.0),
            ("T1", 40.0),
            ("T1", 90.0),
        ]
        assert len(gpt) == 3
        assert [r.variant_id for r in anthropic] == ["anthropic/claude"]
        assert {r.final_score for r in failed} == {40.0, 50.0}
        assert [r.final_score for r in gpt_t1] == [75.0, 90.0]

    @pytest.mark.asyncio
    async def test_paging(self, storage: StorageProtocol) -> None:
        """limit and offset apply after ordering."""
        await storage.open()
        await add_run(storage, make_run("1"), [make_result(f"T{i}") for i in range(5)])

        page = await storage.get_results(limit=2, offset=1)
        tail = await storage.get_results(offset=3)

        assert [r.task_id for r in page] == ["T3", "T2"]
        assert [r.task_id for r in tail] == ["T1", "T0"]

    @pytest.mark.asyncio
    async def test_negative_paging_ignored(self, storage: StorageProtocol) -> None:
        """Negative limit and offset do not page results."""
        await storage.open()
        await add_run(storage, make_run("1"), [make_result(f"T{i}") for i in range(3)])

        results = await storage.get_results(limit=-1, offset=-1)

        assert [r.task_id for r in results] == ["T2", "T1", "T0"]

    @pytest.mark.asyncio
    async def test_distinct_ids(self, storage: StorageProtocol) -> None:
        """Variant and task ids are distinct and sorted."""
        await storage.open()
        await add_run(
            storage,
            make_run("1"),
            [make_result("T2", "openai/gpt-4o"), make_result("T1", "anthropic/claude"), make_result("T1")],
        )

        assert await storage.get_variant_ids() == ["anthropic/claude", "openai/gpt-4o"]
        assert await storage.get_task_ids() == ["T1", "T2"]

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, storage: StorageProtocol) -> None:
        """Mutating a returned record does not change stored data."""
        await storage.open()
        await add_run(storage, make_run("1"), [make_result("T1")])

        [loaded] = await storage.get_results()
        loaded.final_score = 0.0
        run = await storage.get_run("1")
        assert run is not None
        run.metadata["changed"] = True

        assert (await storage.get_results())[0].final_score == 80.0
        stored_run = await storage.get_run("1")
        assert stored_run is not None
        assert stored_run.metadata == {}


# ============================================================================
# Analytics Tests
# ============================================================================


class TestModelTrend:
    """Tests for get_model_trend()."""

    @pytest.mark.asyncio
    async def test_per_run_aggregates(self, storage: StorageProtocol) -> None:
        """One point per run, newest first."""
        await storage.open()
        await add_run(
            storage,
            make_run("r0"),
            [make_result("T1", score=90.0, total_cost=0.02), make_result("T2", score=40.0, total_cost=0.03)],
        )
        await add_run(
            storage,
            make_run("r1", BASE_TIME + timedelta(days=1)),
            [make_result("T1", score=100.0), make_result("T1", "anthropic/claude", score=10.0)],
        )

        trend = await storage.get_model_trend("openai/gpt-4o")

        assert [p.run_id for p in trend] == ["r1", "r0"]
        assert trend[1].passed == 1
        assert trend[1].total == 2
        assert trend[1].avg_score == pytest.approx(65.0)
        assert trend[1].cost == pytest.approx(0.05)
        assert trend[1].pass_rate == pytest.approx(0.5)
        assert trend[0].total == 1

    @pytest.mark.asyncio
    async def test_filters_and_limit(self, storage: StorageProtocol) -> None:
        """task_id, since and limit narrow the trend."""
        await storage.open()
        for i in range(3):
            await add_run(
                storage,
                make_run(f"r{i}", BASE_TIME + timedelta(days=i)),
                [make_result("T1", score=60.0 + i), make_result("T2", score=30.0)],
            )

        by_task = await storage.get_model_trend("openai/gpt-4o", task_id="T1")
        since = await storage.get_model_trend("openai/gpt-4o", since=BASE_TIME + timedelta(days=1))
        limited = await storage.get_model_trend("openai/gpt-4o", limit=1)

        assert [p.avg_score for p in by_task] == pytest.approx([62.0, 61.0, 60.0])
        assert [p.run_id for p in since] == ["r2", "r1"]
        assert [p.run_id for p in limited] == ["r2"]
        assert len(await storage.get_model_trend("openai/gpt-4o", limit=-1)) == 3

    @pytest.mark.asyncio
    async def test_unknown_variant(self, storage: StorageProtocol) -> None:
        """An unknown variant has an empty trend."""
        await storage.open()
        assert await storage.get_model_trend("nobody/none") == []


class TestCompareModels:
    """Tests for compare_models()."""

    @pytest.mark.asyncio
    async def test_only_shared_tasks_compared(self, storage: StorageProtocol) -> None:
        """Tasks missing a variant are excluded from wins but not from cost."""
        await storage.open()
        await add_run(
            storage,
            make_run("1"),
            [
                make_result("T1", "a/model", 90.0, total_cost=0.10),
                make_result("T2", "a/model", 85.0, total_cost=0.10),
                make_result("T3", "a/model", 60.0, total_cost=0.10),
                make_result("T1", "b/model", 80.0, total_cost=0.20),
                make_result("T2", "b/model", 95.0, total_cost=0.20),
            ],
        )

        comparison = await storage.compare_models("a/model", "b/model")

        assert len(comparison.per_task) == 2
        assert [t.task_id for t in comparison.per_task] == ["T1", "T2"]
        assert comparison.variant1_wins == 1
        assert comparison.variant2_wins == 1
        assert comparison.ties == 0
        assert comparison.variant1_avg_score == pytest.approx(87.5)
        assert comparison.variant2_avg_score == pytest.approx(87.5)
        assert comparison.variant1_cost == pytest.approx(0.30)
        assert comparison.variant2_cost == pytest.approx(0.40)

    @pytest.mark.asyncio
    async def test_latest_result_wins(self, storage: StorageProtocol) -> None:
        """Only the most recent result per task and variant counts."""
        await storage.open()
        await add_run(storage, make_run("r0"), [make_result("T1", "a/model", 90.0), make_result("T1", "b/model", 80.0)])
        await add_run(
            storage,
            make_run("r1", BASE_TIME + timedelta(days=1)),
            [make_result("T1", "a/model", 50.0), make_result("T1", "b/model", 50.0)],
        )

        comparison = await storage.compare_models("a/model", "b/model")

        assert comparison.ties == 1
        assert comparison.per_task[0].winner == "tie"
        assert comparison.variant1_avg_score == pytest.approx(50.0)

    @pytest.mark.asyncio
    async def test_nothing_comparable(self, storage: StorageProtocol) -> None:
        """Without shared tasks averages are zero."""
        await storage.open()
        await add_run(storage, make_run("1"), [make_result("T1", "a/model", 90.0, total_cost=0.5)])

        comparison = await storage.compare_models("a/model", "b/model")

        assert comparison.per_task == []
        assert comparison.variant1_avg_score == 0
        assert comparison.variant2_avg_score == 0
        assert comparison.variant1_cost == pytest.approx(0.5)
        assert comparison.variant2_cost == 0


class TestDetectRegressions:
    """Tests for detect_regressions()."""

    async def seed(self, storage: StorageProtocol, baseline: float, current: float) -> None:
        """One baseline run followed by one recent run."""
        await add_run(storage, make_run("old"), [make_result("T1", score=baseline), make_result("T2", score=50.0)])
        await add_run(
            storage,
            make_run("new", BASE_TIME + timedelta(days=1)),
            [make_result("T1", score=current), make_result("T2", score=50.0)],
        )

    @pytest.mark.asyncio
    async def test_threshold(self, storage: StorageProtocol) -> None:
        """An 80 -> 60 drop is a regression at 20% but not at 30%."""
        await storage.open()
        await self.seed(storage, 80.0, 60.0)

        flagged = await storage.detect_regressions(RegressionOptions(threshold=0.2, recent_window=1, baseline_window=1))
        quiet = await storage.detect_regressions(RegressionOptions(threshold=0.3, recent_window=1, baseline_window=1))

        assert len(flagged) == 1
        assert flagged[0].task_id == "T1"
        assert flagged[0].baseline_score == pytest.approx(80.0)
        assert flagged[0].current_score == pytest.approx(60.0)
        assert flagged[0].change_pct == pytest.approx(-25.0)
        assert quiet == []

    @pytest.mark.asyncio
    async def test_zero_baseline_skipped(self, storage: StorageProtocol) -> None:
        """Pairs with no positive baseline score are never flagged."""
        await storage.open()
        await self.seed(storage, 0.0, 0.0)

        regressions = await storage.detect_regressions(RegressionOptions(threshold=0.0, recent_window=1, baseline_window=1))

        assert regressions == []

    @pytest.mark.asyncio
    async def test_windows_do_not_overlap(self, storage: StorageProtocol) -> None:
        """The baseline starts after the recent window."""
        await storage.open()
        for i, score in enumerate([100.0, 100.0, 40.0, 40.0]):
            await add_run(storage, make_run(f"r{i}", BASE_TIME + timedelta(days=i)), [make_result("T1", score=score)])

        # recent = r3, r2 (40); baseline = r1, r0 (100)
        regressions = await storage.detect_regressions(RegressionOptions(recent_window=2, baseline_window=2))

        assert len(regressions) == 1
        assert regressions[0].change_pct == pytest.approx(-60.0)

    @pytest.mark.asyncio
    async def test_sorted_by_severity_and_filtered(self, storage: StorageProtocol) -> None:
        """Worst regressions first; variant filter applies."""
        await storage.open()
        await add_run(
            storage,
            make_run("old"),
            [make_result("T1", score=100.0), make_result("T2", score=100.0), make_result("T1", "b/model", 100.0)],
        )
        await add_run(
            storage,
            make_run("new", BASE_TIME + timedelta(days=1)),
            [make_result("T1", score=80.0), make_result("T2", score=50.0), make_result("T1", "b/model", 10.0)],
        )

        options = RegressionOptions(threshold=0.1, recent_window=1, baseline_window=1)
        everything = await storage.detect_regressions(options)
        only_gpt = await storage.detect_regressions(
            RegressionOptions(threshold=0.1, recent_window=1, baseline_window=1, variant_id="openai/gpt-4o")
        )

        assert [(r.task_id, r.variant_id) for r in everything] == [
            ("T1", "b/model"),
            ("T2", "openai/gpt-4o"),
            ("T1", "openai/gpt-4o"),
        ]
        assert [r.task_id for r in only_gpt] == ["T2", "T1"]

    @pytest.mark.asyncio
    async def test_no_history(self, storage: StorageProtocol) -> None:
        """An empty ledger has no regressions."""
        await storage.open()
        assert await storage.detect_regressions() == []


class TestCostBreakdown:
    """Tests for get_cost_breakdown()."""

    async def seed(self, storage: StorageProtocol) -> None:
        """Two runs a week apart with two variants."""
        await add_run(
            storage,
            make_run("r0"),
            [
                make_result("T1", "a/model", 90.0, total_cost=0.30, total_tokens=3000),
                make_result("T2", "a/model", 20.0, total_cost=0.10, total_tokens=1000),
                make_result("T1", "b/model", 10.0, total_cost=0.05, total_tokens=500),
            ],
        )
        await add_run(
            storage,
            make_run("r1", BASE_TIME + timedelta(days=7)),
            [make_result("T1", "b/model", 90.0, total_cost=0.20, total_tokens=2000)],
        )

    @pytest.mark.asyncio
    async def test_by_model(self, storage: StorageProtocol) -> None:
        """Groups per variant, most expensive first."""
        await storage.open()
        await self.seed(storage)

        breakdown = await storage.get_cost_breakdown("model")

        assert [b.group_key for b in breakdown] == ["a/model", "b/model"]
        a, b = breakdown
        assert a.total_cost == pytest.approx(0.40)
        assert a.total_tokens == 4000
        assert a.execution_count == 2
        assert a.avg_cost_per_execution == pytest.approx(0.20)
        assert a.cost_per_success == pytest.approx(0.40)
        assert b.total_cost == pytest.approx(0.25)
        assert b.cost_per_success == pytest.approx(0.25)

    @pytest.mark.asyncio
    async def test_by_task_without_successes(self, storage: StorageProtocol) -> None:
        """A group with no successes has no cost per success."""
        await storage.open()
        await self.seed(storage)

        breakdown = {b.group_key: b for b in await storage.get_cost_breakdown("task")}

        assert breakdown["T1"].execution_count == 3
        assert breakdown["T2"].cost_per_success is None

    @pytest.mark.asyncio
    async def test_by_day_and_week(self, storage: StorageProtocol) -> None:
        """Time buckets come from the run's execution time."""
        await storage.open()
        await self.seed(storage)

        days = await storage.get_cost_breakdown("day")
        weeks = await storage.get_cost_breakdown("week")

        assert [b.group_key for b in days] == ["2024-01-15", "2024-01-22"]
        assert [b.group_key for b in weeks] == ["2024-W03", "2024-W04"]

    @pytest.mark.asyncio
    async def test_filters(self, storage: StorageProtocol) -> None:
        """since and variant_id restrict the input rows."""
        await storage.open()
        await self.seed(storage)

        since = await storage.get_cost_breakdown("model", since=BASE_TIME + timedelta(days=1))
        only_a = await storage.get_cost_breakdown("task", variant_id="a/model")

        assert [(b.group_key, b.execution_count) for b in since] == [("b/model", 1)]
        assert [b.group_key for b in only_a] == ["T1", "T2"]

    @pytest.mark.asyncio
    async def test_unknown_grouping(self, storage: StorageProtocol) -> None:
        """An unknown grouping is rejected."""
        await storage.open()
        with pytest.raises(ValueError):
            await storage.get_cost_breakdown("month")  # type: ignore[arg-type]


class TestTaskSets:
    """Tests for task-set summaries and variant grouping."""

    async def seed(self, storage: StorageProtocol) -> None:
        """Three runs of ts-a, one of ts-b."""
        await add_run(
            storage,
            make_run("r0", BASE_TIME, overall_pass_rate=0.5, average_score=60.0),
            [make_result("T1", "a/model"), make_result("T1", "b/model")],
        )
        await add_run(
            storage,
            make_run("r1", BASE_TIME + timedelta(days=1), overall_pass_rate=1.0, average_score=90.0),
            [make_result("T1", "a/model")],
        )
        await add_run(
            storage,
            make_run("r2", BASE_TIME + timedelta(days=2), task_set_hash="ts-b"),
            [make_result("T9", "c/model")],
        )
        await add_run(
            storage,
            make_run("r3", BASE_TIME + timedelta(days=3), overall_pass_rate=0.0, average_score=30.0),
            [make_result("T1", "b/model")],
        )

    @pytest.mark.asyncio
    async def test_summaries(self, storage: StorageProtocol) -> None:
        """One summary per hash with run-level averages."""
        await storage.open()
        await self.seed(storage)

        summaries = await storage.get_task_set_summaries()

        assert [s.task_set_hash for s in summaries] == ["ts-a", "ts-b"]
        ts_a = summaries[0]
        assert ts_a.run_count == 3
        assert ts_a.model_count == 2
        assert ts_a.first_run == BASE_TIME
        assert ts_a.last_run == BASE_TIME + timedelta(days=3)
        assert ts_a.avg_pass_rate == pytest.approx(0.5)
        assert ts_a.avg_score == pytest.approx(60.0)
        assert summaries[1].model_count == 1

    @pytest.mark.asyncio
    async def test_run_without_results_counted(self, storage: StorageProtocol) -> None:
        """Runs with no results still count toward the summary."""
        await storage.open()
        await storage.persist_run(make_run("empty", task_set_hash="ts-z"))

        [summary] = await storage.get_task_set_summaries()

        assert summary.run_count == 1
        assert summary.model_count == 0

    @pytest.mark.asyncio
    async def test_runs_by_variant(self, storage: StorageProtocol) -> None:
        """Runs grouped by variant, variants sorted, runs newest first."""
        await storage.open()
        await self.seed(storage)

        groups = await storage.get_runs_by_variant_for_task_set("ts-a")

        assert [g.variant_id for g in groups] == ["a/model", "b/model"]
        assert [g.provider for g in groups] == ["a", "b"]
        assert [r.run_id for r in groups[0].runs] == ["r1", "r0"]
        assert [r.run_id for r in groups[1].runs] == ["r3", "r0"]

    @pytest.mark.asyncio
    async def test_runs_by_variant_unknown_hash(self, storage: StorageProtocol) -> None:
        """An unknown hash has no groups."""
        await storage.open()
        assert await storage.get_runs_by_variant_for_task_set("nope") == []
