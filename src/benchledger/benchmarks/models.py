"""Models for benchmark history.

This module provides the persisted records (RunRecord, ResultRecord,
AttemptRecord) and the read-only projections returned by analytic queries.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Literal

from benchledger.core.exceptions import MalformedInputError

CostGroupBy = Literal["model", "task", "day", "week"]
Winner = Literal["variant1", "variant2", "tie"]


def to_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_key(value: datetime) -> str:
    """Calendar-day bucket, e.g. '2024-01-15'."""
    return to_utc(value).strftime("%Y-%m-%d")


def week_key(value: datetime) -> str:
    """Calendar-week bucket (Monday-based week number), e.g. '2024-W02'."""
    return to_utc(value).strftime("%Y-W%W")


@dataclass
class RunRecord:
    """One benchmark invocation.

    Attributes:
        run_id: Unique identifier (typically a timestamp string).
        executed_at: When the benchmark was executed (normalized to UTC).
        config_hash: Fingerprint of the full experiment configuration.
        task_set_hash: Fingerprint of the task corpus alone.
        total_tasks: Number of tasks in the run.
        total_models: Number of model variants tested.
        total_cost: Total cost in USD.
        total_tokens: Total tokens used.
        total_duration_ms: Total duration in milliseconds.
        pass_rate_1: Fraction passing on the first attempt (0-1).
        pass_rate_2: Fraction passing by the second attempt (0-1).
        overall_pass_rate: Overall pass rate (0-1).
        average_score: Average score (0-100).
        metadata: Opaque key/value bag.

    Example:
        >>> run = RunRecord(
        ...     run_id="1736937000000",
        ...     executed_at=datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc),
        ...     config_hash="9f2c...",
        ...     task_set_hash="a1b2c3d4e5f60718",
        ...     total_tasks=10,
        ...     total_models=2,
        ... )
    """

    run_id: str
    executed_at: datetime
    config_hash: str
    task_set_hash: str
    total_tasks: int = 0
    total_models: int = 0
    total_cost: float = 0.0
    total_tokens: int = 0
    total_duration_ms: int = 0
    pass_rate_1: float = 0.0
    pass_rate_2: float = 0.0
    overall_pass_rate: float = 0.0
    average_score: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.executed_at = to_utc(self.executed_at)
        if self.metadata is None:
            self.metadata = {}


@dataclass
class AttemptRecord:
    """One attempt within a result.

    Attributes:
        attempt_number: 1-based attempt number.
        success: Whether this attempt succeeded.
        score: Score for this attempt (0-100).
        tokens_used: Tokens used by this attempt.
        cost: Cost of this attempt in USD.
        duration_ms: Duration in milliseconds.
        compile_success: Whether compilation succeeded (None if not run).
        test_success: Whether tests passed (None if not run).
        failure_reasons: Failure reasons reported for this attempt.
    """

    attempt_number: int
    success: bool
    score: float = 0.0
    tokens_used: int = 0
    cost: float = 0.0
    duration_ms: int = 0
    compile_success: bool | None = None
    test_success: bool | None = None
    failure_reasons: list[str] = field(default_factory=list)


@dataclass
class ResultRecord:
    """Outcome of one task against one model variant within a run.

    Attributes:
        task_id: Task identifier (e.g. "CG-AL-E001").
        variant_id: Variant identifier (e.g. "anthropic/claude-opus-4-5@thinking=50000").
        model: Base model name.
        provider: Provider name.
        success: Whether the task passed.
        final_score: Final score (0-100).
        passed_attempt: Attempt that first passed (0 if never passed).
        total_tokens: Total tokens used.
        prompt_tokens: Prompt tokens used.
        completion_tokens: Completion tokens used.
        total_cost: Total cost in USD.
        total_duration_ms: Total duration in milliseconds.
        variant_config: Exact variant configuration used.
        result_json: Full untyped detail blob.
        attempts: Per-attempt details.
    """

    task_id: str
    variant_id: str
    model: str
    provider: str
    success: bool
    final_score: float
    passed_attempt: int = 0
    total_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_cost: float = 0.0
    total_duration_ms: int = 0
    variant_config: dict[str, Any] | None = None
    result_json: str | None = None
    attempts: list[AttemptRecord] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        """The (task_id, variant_id) pair that is unique within a run."""
        return (self.task_id, self.variant_id)


_NULLABLE_FIELDS = frozenset({"variant_config", "result_json", "compile_success", "test_success"})


def require_fields(record: RunRecord | ResultRecord | AttemptRecord) -> None:
    """Check that no required field of a record (or its attempts) is None.

    Raises:
        MalformedInputError: Naming the record and the missing fields.
    """
    missing = [f.name for f in fields(record) if f.name not in _NULLABLE_FIELDS and getattr(record, f.name) is None]
    if missing:
        raise MalformedInputError(f"{type(record).__name__} is missing required fields: {', '.join(missing)}")
    if isinstance(record, ResultRecord):
        for attempt in record.attempts:
            require_fields(attempt)


# ============================================================================
# Analytic projections (never stored)
# ============================================================================


@dataclass
class TrendPoint:
    """One run's aggregate for a variant."""

    run_id: str
    executed_at: datetime
    passed: int
    total: int
    avg_score: float
    cost: float

    @property
    def pass_rate(self) -> float:
        """Fraction of results that passed in this run."""
        if self.total == 0:
            return 0.0
        return self.passed / self.total


@dataclass
class TaskComparisonDetail:
    """Per-task outcome of a head-to-head comparison."""

    task_id: str
    variant1_score: float
    variant2_score: float
    winner: Winner


@dataclass
class ModelComparison:
    """Head-to-head comparison of two variants.

    Wins, ties and average scores only cover tasks where both variants have
    a result; costs cover every persisted result of each variant.
    """

    variant1: str
    variant2: str
    variant1_wins: int
    variant2_wins: int
    ties: int
    variant1_avg_score: float
    variant2_avg_score: float
    variant1_cost: float
    variant2_cost: float
    per_task: list[TaskComparisonDetail] = field(default_factory=list)


@dataclass
class CostBreakdown:
    """Cost aggregate for one group.

    Attributes:
        group_key: Variant id, task id, day ('YYYY-MM-DD') or week ('YYYY-Www').
        total_cost: Total cost in USD.
        total_tokens: Total tokens.
        execution_count: Number of results in the group.
        avg_cost_per_execution: total_cost / execution_count.
        cost_per_success: total_cost / successes, None when nothing succeeded.
    """

    group_key: str
    total_cost: float
    total_tokens: int
    execution_count: int
    avg_cost_per_execution: float
    cost_per_success: float | None


@dataclass
class TaskSetSummary:
    """Aggregate statistics for all runs sharing a task-set hash."""

    task_set_hash: str
    first_run: datetime
    last_run: datetime
    run_count: int
    model_count: int
    avg_pass_rate: float
    avg_score: float


@dataclass
class VariantRunGroup:
    """Runs of one task set that produced results for one variant, newest first."""

    variant_id: str
    provider: str
    runs: list[RunRecord] = field(default_factory=list)


@dataclass
class ImportResult:
    """Outcome of importing a directory of exports.

    Attributes:
        imported: Runs imported.
        skipped: Runs skipped because they already existed.
        errors: (file, message) for every file that failed.
    """

    imported: int = 0
    skipped: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)
