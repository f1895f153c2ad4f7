"""Import historical benchmark exports into storage.

Each export is one JSON file per run, named ``benchmark-results-<ms>.json``,
holding the list of task outcomes and the run's aggregate stats. The
millisecond timestamp in the name becomes the run id, so importing the
same file twice is a no-op.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from benchledger.benchmarks.models import AttemptRecord, ImportResult, ResultRecord, RunRecord
from benchledger.core.exceptions import BenchLedgerError, ConflictError, MalformedInputError
from benchledger.fingerprint import (
    ConfigHashInput,
    ExecutionParams,
    TaskManifestRef,
    VariantSpec,
    generate_config_hash,
    generate_task_set_hash,
)

if TYPE_CHECKING:
    from benchledger.benchmarks.storage import StorageProtocol

logger = logging.getLogger(__name__)

EXPORT_FILE_PATTERN = re.compile(r"^benchmark-results-(\d+)\.json$")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class _ExportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ExportUsage(_ExportModel):
    """Token usage reported by one LLM response."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ExportLLMResponse(_ExportModel):
    """The part of an LLM response the importer reads."""

    usage: ExportUsage | None = None


class ExportStepResult(_ExportModel):
    """Outcome of a compile or test step."""

    success: bool


class ExportAttempt(_ExportModel):
    """One attempt at a task as recorded in an export."""

    attempt_number: int
    success: bool
    score: float = 0.0
    tokens_used: int = 0
    cost: float = 0.0
    duration: int = 0
    llm_response: ExportLLMResponse | None = None
    compilation_result: ExportStepResult | None = None
    test_result: ExportStepResult | None = None
    failure_reasons: list[str] = Field(default_factory=list)


class ExportContext(_ExportModel):
    """Which model produced an outcome."""

    llm_provider: str
    llm_model: str
    variant_id: str | None = None
    variant_config: dict[str, Any] | None = None

    @property
    def resolved_variant_id(self) -> str:
        """Explicit variant id, or provider/model when the export has none."""
        return self.variant_id or f"{self.llm_provider}/{self.llm_model}"


class ExportOutcome(_ExportModel):
    """One task outcome for one variant."""

    task_id: str
    context: ExportContext
    attempts: list[ExportAttempt] = Field(default_factory=list)
    success: bool
    final_score: float
    total_tokens_used: int = 0
    total_cost: float = 0.0
    total_duration: int = 0
    passed_attempt_number: int | None = None


class ExportStats(_ExportModel):
    """Run-level aggregate stats."""

    total_tokens: int = 0
    total_cost: float = 0.0
    total_duration: int = 0
    overall_pass_rate: float = 0.0
    average_score: float = 0.0
    pass_rate_1: float | None = Field(default=None, alias="passRate1")
    pass_rate_2: float | None = Field(default=None, alias="passRate2")
    per_model: dict[str, Any] = Field(default_factory=dict)
    per_task: dict[str, Any] = Field(default_factory=dict)


def run_id_from_path(path: str | Path) -> str:
    """Extract the run id (the millisecond timestamp) from an export file name.

    Raises:
        MalformedInputError: If the file name does not follow the export pattern.
    """
    name = Path(path).name
    match = EXPORT_FILE_PATTERN.match(name)
    if match is None:
        raise MalformedInputError(f"Not a benchmark export file name: {name}")
    return match.group(1)


def executed_at_from_run_id(run_id: str) -> datetime:
    """Read a run id as epoch milliseconds.

    Raises:
        MalformedInputError: If the timestamp is outside the representable range.
    """
    try:
        return _EPOCH + timedelta(milliseconds=int(run_id))
    except OverflowError as e:
        raise MalformedInputError(f"Run id {run_id} is not a valid millisecond timestamp: {e}") from e


def _derive_pass_rates(outcomes: list[ExportOutcome]) -> tuple[float, float]:
    pass1 = sum(1 for o in outcomes if o.passed_attempt_number == 1)
    pass2 = sum(1 for o in outcomes if o.passed_attempt_number == 2)
    total = len(outcomes) or 1
    return pass1 / total, (pass1 + pass2) / total


class JsonImporter:
    """Importer for JSON benchmark exports.

    Example:
        >>> importer = JsonImporter()
        >>> summary = await importer.import_directory("results", storage)
        >>> print(f"{summary.imported} imported, {summary.skipped} skipped")
    """

    async def import_file(self, path: str | Path, storage: StorageProtocol) -> bool:
        """Import a single export file.

        Args:
            path: Path to a ``benchmark-results-<ms>.json`` file.
            storage: Open storage backend.

        Returns:
            True if the run was imported, False if it already existed.

        Raises:
            MalformedInputError: If the file name or content is not a valid export.
            OSError: If the file cannot be read.
        """
        path = Path(path)
        run_id = run_id_from_path(path)

        if await storage.has_run(run_id):
            logger.debug(f"Run {run_id} already imported, skipping {path.name}")
            return False

        raw_outcomes, outcomes, stats = self._parse(path)
        run = self._build_run(run_id, outcomes, stats)
        results = [self._build_result(outcome, raw) for outcome, raw in zip(outcomes, raw_outcomes)]

        try:
            await storage.persist_run(run)
        except ConflictError:
            logger.debug(f"Run {run_id} persisted concurrently, skipping {path.name}")
            return False

        try:
            await storage.persist_results(run_id, results)
        except Exception:
            # Leave no run behind without its results
            await storage.delete_run(run_id)
            raise

        logger.info(f"Imported run {run_id} with {len(results)} results from {path.name}")
        return True

    async def import_directory(self, directory: str | Path, storage: StorageProtocol) -> ImportResult:
        """Import every export file in a directory, oldest first.

        A failing file is recorded in ``errors`` and does not stop the rest.

        Args:
            directory: Directory to scan (not recursive).
            storage: Open storage backend.

        Returns:
            Counts of imported and skipped files plus per-file errors.
        """
        directory = Path(directory)
        summary = ImportResult()

        files = [p for p in directory.iterdir() if p.is_file() and EXPORT_FILE_PATTERN.match(p.name)]
        files.sort(key=lambda p: int(run_id_from_path(p)))

        for path in files:
            try:
                if await self.import_file(path, storage):
                    summary.imported += 1
                else:
                    summary.skipped += 1
            except (BenchLedgerError, OSError, ValueError) as e:
                logger.warning(f"Failed to import {path.name}: {e}")
                summary.errors.append((str(path), str(e)))

        logger.info(
            f"Imported {summary.imported} runs from {directory} "
            f"({summary.skipped} skipped, {len(summary.errors)} failed)"
        )
        return summary

    @staticmethod
    def _parse(path: Path) -> tuple[list[dict[str, Any]], list[ExportOutcome], ExportStats]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise MalformedInputError(f"Invalid JSON in {path.name}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("results"), list) or "stats" not in data:
            raise MalformedInputError(f"{path.name} is missing 'results' or 'stats'")

        raw_outcomes: list[dict[str, Any]] = data["results"]
        try:
            outcomes = [ExportOutcome.model_validate(raw) for raw in raw_outcomes]
            stats = ExportStats.model_validate(data["stats"])
        except ValidationError as e:
            raise MalformedInputError(f"Invalid export {path.name}: {e}") from e

        return raw_outcomes, outcomes, stats

    @staticmethod
    def _build_run(run_id: str, outcomes: list[ExportOutcome], stats: ExportStats) -> RunRecord:
        task_ids = sorted({o.task_id for o in outcomes})
        variants: dict[str, dict[str, Any]] = {}
        for outcome in outcomes:
            variants.setdefault(outcome.context.resolved_variant_id, outcome.context.variant_config or {})

        # Only task ids are known for historical exports, so they stand in for content hashes
        task_set_hash = generate_task_set_hash((task_id, task_id) for task_id in task_ids)
        attempt_limit = max((len(o.attempts) for o in outcomes), default=1) or 1
        config_hash = generate_config_hash(
            ConfigHashInput(
                task_manifests=[TaskManifestRef(id=task_id, content_hash=task_id) for task_id in task_ids],
                variants=[VariantSpec(variant_id=v, config=c) for v, c in variants.items()],
                execution=ExecutionParams(attempt_limit=attempt_limit),
            )
        )

        pass_rate_1 = stats.pass_rate_1 or 0.0
        pass_rate_2 = stats.pass_rate_2 or 0.0
        if not pass_rate_1 and not pass_rate_2:
            pass_rate_1, pass_rate_2 = _derive_pass_rates(outcomes)

        return RunRecord(
            run_id=run_id,
            executed_at=executed_at_from_run_id(run_id),
            config_hash=config_hash,
            task_set_hash=task_set_hash,
            total_tasks=len(task_ids),
            total_models=len(variants),
            total_cost=stats.total_cost,
            total_tokens=stats.total_tokens,
            total_duration_ms=stats.total_duration,
            pass_rate_1=pass_rate_1,
            pass_rate_2=pass_rate_2,
            overall_pass_rate=stats.overall_pass_rate,
            average_score=stats.average_score,
            metadata={
                "imported": True,
                "importedAt": datetime.now(timezone.utc).isoformat(),
                "originalStats": {
                    "perModel": list(stats.per_model),
                    "perTask": list(stats.per_task),
                },
            },
        )

    @staticmethod
    def _build_result(outcome: ExportOutcome, raw: dict[str, Any]) -> ResultRecord:
        prompt_tokens = 0
        completion_tokens = 0
        attempts: list[AttemptRecord] = []

        for attempt in outcome.attempts:
            usage = attempt.llm_response.usage if attempt.llm_response else None
            if usage is not None:
                prompt_tokens += usage.prompt_tokens
                completion_tokens += usage.completion_tokens
            attempts.append(
                AttemptRecord(
                    attempt_number=attempt.attempt_number,
                    success=attempt.success,
                    score=attempt.score,
                    tokens_used=attempt.tokens_used,
                    cost=attempt.cost,
                    duration_ms=attempt.duration,
                    compile_success=attempt.compilation_result.success if attempt.compilation_result else None,
                    test_success=attempt.test_result.success if attempt.test_result else None,
                    failure_reasons=list(attempt.failure_reasons),
                )
            )

        return ResultRecord(
            task_id=outcome.task_id,
            variant_id=outcome.context.resolved_variant_id,
            model=outcome.context.llm_model,
            provider=outcome.context.llm_provider,
            success=outcome.success,
            final_score=outcome.final_score,
            passed_attempt=outcome.passed_attempt_number or 0,
            total_tokens=outcome.total_tokens_used,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_cost=outcome.total_cost,
            total_duration_ms=outcome.total_duration,
            variant_config=outcome.context.variant_config,
            result_json=json.dumps(raw),
            attempts=attempts,
        )
