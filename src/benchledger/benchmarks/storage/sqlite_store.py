"""SQLite storage backend.

Persistent storage for benchmark history. Analytic queries run as SQL over
indexed columns and return the same results as the in-memory backend.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from benchledger.benchmarks.models import (
    AttemptRecord,
    CostBreakdown,
    ModelComparison,
    ResultRecord,
    RunRecord,
    TaskComparisonDetail,
    TaskSetSummary,
    TrendPoint,
    VariantRunGroup,
    Winner,
    require_fields,
    to_utc,
)
from benchledger.benchmarks.storage.schema import (
    SCHEMA_VERSION,
    create_schema,
    pending_migrations,
    record_version,
)
from benchledger.core.exceptions import (
    ConfigurationError,
    ConflictError,
    DuplicateResultError,
    DuplicateRunError,
    MalformedInputError,
    RunNotFoundError,
    StorageNotOpenError,
)
from benchledger.regression import Regression, RegressionOptions

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from benchledger.benchmarks.models import CostGroupBy

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

_RUN_COLUMNS = """
    run_id, executed_at, config_hash, task_set_hash,
    total_tasks, total_models, total_cost, total_tokens,
    total_duration_ms, pass_rate_1, pass_rate_2,
    overall_pass_rate, average_score, metadata_json
"""

_RESULT_COLUMNS = """
    id, run_id, task_id, variant_id, model, provider,
    success, final_score, passed_attempt,
    total_tokens, prompt_tokens, completion_tokens,
    total_cost, total_duration_ms,
    variant_config_json, result_json
"""

_COST_GROUP_EXPRESSIONS: dict[str, str] = {
    "model": "r.variant_id",
    "task": "r.task_id",
    "day": "strftime('%Y-%m-%d', runs.executed_at)",
    "week": "strftime('%Y-W%W', runs.executed_at)",
}

# Keeps IN (...) lists below SQLite's bound-parameter limit
_CHUNK_SIZE = 500


def _timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO timestamp, so text order equals time order."""
    return to_utc(value).isoformat(timespec="microseconds")


def _optional_bool(value: int | None) -> bool | None:
    return None if value is None else bool(value)


def _is_unique_violation(error: sqlite3.IntegrityError) -> bool:
    return str(error).startswith("UNIQUE constraint failed")


def _paging(sql: str, params: list[Any], limit: int | None, offset: int | None) -> str:
    has_limit = limit is not None and limit > 0
    has_offset = offset is not None and offset > 0
    if has_limit:
        sql += " LIMIT ?"
        params.append(limit)
    elif has_offset:
        sql += " LIMIT -1"
    if has_offset:
        sql += " OFFSET ?"
        params.append(offset)
    return sql


class SQLiteStorage:
    """SQLite-based storage for benchmark history.

    Opens the database file (creating parent directories), enables foreign
    keys and brings the schema to the current version.

    Example:
        >>> storage = SQLiteStorage("results/benchledger.db")
        >>> await storage.open()
        >>> await storage.persist_run(run)
        >>> await storage.persist_results(run.run_id, results)
        >>> trend = await storage.get_model_trend("openai/gpt-4o", limit=10)
        >>> await storage.close()
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the store.

        Args:
            path: Database file path, or ":memory:" for a private in-process database.
        """
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def path(self) -> str:
        """Database path."""
        return self._path

    # ============ Lifecycle ============

    async def open(self) -> None:
        """Open the database and create or migrate the schema. No-op if already open."""
        if self._conn is not None:
            return

        if self._path != IN_MEMORY:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        # Autocommit mode; multi-statement writes use explicit transactions
        conn = sqlite3.connect(self._path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        self._conn = conn

        try:
            self._init_schema()
        except Exception:
            conn.close()
            self._conn = None
            raise

        logger.info(f"Opened benchmark storage at {self._path}")

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def is_open(self) -> bool:
        """Check whether the database is open."""
        return self._conn is not None

    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageNotOpenError("Database not open. Call open() first.")
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block in one transaction, rolled back on any error."""
        conn = self._db()
        conn.execute("BEGIN")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def schema_version(self) -> int:
        """Highest schema version recorded in the database (0 if none)."""
        conn = self._db()
        table = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
        ).fetchone()
        if table is None:
            return 0
        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return int(row[0] or 0)

    def _init_schema(self) -> None:
        current = self.schema_version()

        if current == 0:
            with self._transaction() as conn:
                create_schema(conn)
            logger.debug(f"Created schema version {SCHEMA_VERSION} in {self._path}")
            return

        if current > SCHEMA_VERSION:
            raise ConfigurationError(
                f"Database {self._path} has schema version {current}, newer than supported {SCHEMA_VERSION}"
            )

        for migration in pending_migrations(current):
            with self._transaction() as conn:
                migration.apply(conn)
                record_version(conn, migration.version, migration.description)
            logger.debug(f"Applied migration {migration.version}: {migration.description}")

    # ============ Runs ============

    async def persist_run(self, run: RunRecord) -> None:
        """Persist a new run."""
        conn = self._db()
        require_fields(run)
        try:
            conn.execute(
                f"INSERT INTO runs ({_RUN_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    run.run_id,
                    _timestamp(run.executed_at),
                    run.config_hash,
                    run.task_set_hash,
                    run.total_tasks,
                    run.total_models,
                    run.total_cost,
                    run.total_tokens,
                    run.total_duration_ms,
                    run.pass_rate_1,
                    run.pass_rate_2,
                    run.overall_pass_rate,
                    run.average_score,
                    json.dumps(run.metadata) if run.metadata else None,
                ),
            )
        except sqlite3.IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateRunError(run.run_id) from e
            raise MalformedInputError(f"Run {run.run_id} rejected: {e}") from e

    async def get_run(self, run_id: str) -> RunRecord | None:
        """Get a run by id."""
        row = self._db().execute(f"SELECT {_RUN_COLUMNS} FROM runs WHERE run_id = ?", (run_id,)).fetchone()
        return self._row_to_run(row) if row is not None else None

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
        conn = self._db()
        sql = f"SELECT {_RUN_COLUMNS} FROM runs WHERE 1=1"
        params: list[Any] = []

        if config_hash is not None:
            sql += " AND config_hash = ?"
            params.append(config_hash)
        if task_set_hash is not None:
            sql += " AND task_set_hash = ?"
            params.append(task_set_hash)
        if since is not None:
            sql += " AND executed_at >= ?"
            params.append(_timestamp(since))
        if until is not None:
            sql += " AND executed_at <= ?"
            params.append(_timestamp(until))

        sql += " ORDER BY executed_at DESC, run_id DESC"
        sql = _paging(sql, params, limit, offset)

        return [self._row_to_run(row) for row in conn.execute(sql, params)]

    async def has_run(self, run_id: str) -> bool:
        """Check whether a run exists."""
        row = self._db().execute("SELECT 1 FROM runs WHERE run_id = ?", (run_id,)).fetchone()
        return row is not None

    async def delete_run(self, run_id: str) -> bool:
        """Delete a run; results and attempts cascade."""
        cursor = self._db().execute("DELETE FROM runs WHERE run_id = ?", (run_id,))
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_run(row: sqlite3.Row) -> RunRecord:
        return RunRecord(
            run_id=row["run_id"],
            executed_at=datetime.fromisoformat(row["executed_at"]),
            config_hash=row["config_hash"],
            task_set_hash=row["task_set_hash"],
            total_tasks=row["total_tasks"],
            total_models=row["total_models"],
            total_cost=row["total_cost"],
            total_tokens=row["total_tokens"],
            total_duration_ms=row["total_duration_ms"],
            pass_rate_1=row["pass_rate_1"],
            pass_rate_2=row["pass_rate_2"],
            overall_pass_rate=row["overall_pass_rate"],
            average_score=row["average_score"],
            metadata=json.loads(row["metadata_json"]) if row["metadata_json"] else {},
        )

    # ============ Results ============

    async def persist_results(self, run_id: str, results: Sequence[ResultRecord]) -> None:
        """Persist a batch of results in one transaction, all or nothing."""
        if not await self.has_run(run_id):
            raise RunNotFoundError(run_id)
        for result in results:
            require_fields(result)

        with self._transaction() as conn:
            for result in results:
                try:
                    cursor = conn.execute(
                        """
                        INSERT INTO results (
                          run_id, task_id, variant_id, model, provider,
                          success, final_score, passed_attempt,
                          total_tokens, prompt_tokens, completion_tokens,
                          total_cost, total_duration_ms,
                          variant_config_json, result_json
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            run_id,
                            result.task_id,
                            result.variant_id,
                            result.model,
                            result.provider,
                            int(result.success),
                            result.final_score,
                            result.passed_attempt,
                            result.total_tokens,
                            result.prompt_tokens,
                            result.completion_tokens,
                            result.total_cost,
                            result.total_duration_ms,
                            json.dumps(result.variant_config) if result.variant_config is not None else None,
                            result.result_json,
                        ),
                    )
                except sqlite3.IntegrityError as e:
                    if _is_unique_violation(e):
                        raise DuplicateResultError(run_id, result.task_id, result.variant_id) from e
                    raise MalformedInputError(f"Result for task {result.task_id} rejected: {e}") from e

                self._insert_attempts(conn, cursor.lastrowid, result)

    @staticmethod
    def _insert_attempts(conn: sqlite3.Connection, result_id: int | None, result: ResultRecord) -> None:
        for attempt in result.attempts:
            try:
                conn.execute(
                    """
                    INSERT INTO attempts (
                      result_id, attempt_number, success, score, tokens_used,
                      cost, duration_ms, compile_success, test_success, failure_reasons_json
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        result_id,
                        attempt.attempt_number,
                        int(attempt.success),
                        attempt.score,
                        attempt.tokens_used,
                        attempt.cost,
                        attempt.duration_ms,
                        None if attempt.compile_success is None else int(attempt.compile_success),
                        None if attempt.test_success is None else int(attempt.test_success),
                        json.dumps(attempt.failure_reasons) if attempt.failure_reasons else None,
                    ),
                )
            except sqlite3.IntegrityError as e:
                if not _is_unique_violation(e):
                    raise MalformedInputError(f"Attempt for task {result.task_id} rejected: {e}") from e
                raise ConflictError(
                    f"Attempt {attempt.attempt_number} repeated for task {result.task_id} / variant {result.variant_id}"
                ) from e

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
        conn = self._db()
        sql = f"SELECT {_RESULT_COLUMNS} FROM results WHERE 1=1"
        params: list[Any] = []

        if run_id is not None:
            sql += " AND run_id = ?"
            params.append(run_id)
        if task_id is not None:
            sql += " AND task_id = ?"
            params.append(task_id)
        if variant_id is not None:
            sql += " AND variant_id = ?"
            params.append(variant_id)
        if provider is not None:
            sql += " AND provider = ?"
            params.append(provider)
        if success is not None:
            sql += " AND success = ?"
            params.append(int(success))

        sql += " ORDER BY id DESC"
        sql = _paging(sql, params, limit, offset)

        rows = conn.execute(sql, params).fetchall()
        attempts = self._load_attempts([row["id"] for row in rows])
        return [self._row_to_result(row, attempts.get(row["id"], [])) for row in rows]

    def _load_attempts(self, result_ids: list[int]) -> dict[int, list[AttemptRecord]]:
        conn = self._db()
        attempts: dict[int, list[AttemptRecord]] = defaultdict(list)

        for start in range(0, len(result_ids), _CHUNK_SIZE):
            chunk = result_ids[start : start + _CHUNK_SIZE]
            placeholders = ", ".join("?" for _ in chunk)
            rows = conn.execute(
                f"""
                SELECT result_id, attempt_number, success, score, tokens_used, cost,
                       duration_ms, compile_success, test_success, failure_reasons_json
                FROM attempts
                WHERE result_id IN ({placeholders})
                ORDER BY result_id, attempt_number
                """,
                chunk,
            )
            for row in rows:
                attempts[row["result_id"]].append(
                    AttemptRecord(
                        attempt_number=row["attempt_number"],
                        success=bool(row["success"]),
                        score=row["score"],
                        tokens_used=row["tokens_used"],
                        cost=row["cost"],
                        duration_ms=row["duration_ms"],
                        compile_success=_optional_bool(row["compile_success"]),
                        test_success=_optional_bool(row["test_success"]),
                        failure_reasons=json.loads(row["failure_reasons_json"]) if row["failure_reasons_json"] else [],
                    )
                )

        return attempts

    @staticmethod
    def _row_to_result(row: sqlite3.Row, attempts: list[AttemptRecord]) -> ResultRecord:
        return ResultRecord(
            task_id=row["task_id"],
            variant_id=row["variant_id"],
            model=row["model"],
            provider=row["provider"],
            success=bool(row["success"]),
            final_score=row["final_score"],
            passed_attempt=row["passed_attempt"],
            total_tokens=row["total_tokens"],
            prompt_tokens=row["prompt_tokens"],
            completion_tokens=row["completion_tokens"],
            total_cost=row["total_cost"],
            total_duration_ms=row["total_duration_ms"],
            variant_config=json.loads(row["variant_config_json"]) if row["variant_config_json"] else None,
            result_json=row["result_json"],
            attempts=attempts,
        )

    async def get_variant_ids(self) -> list[str]:
        """Distinct variant ids, sorted."""
        rows = self._db().execute("SELECT DISTINCT variant_id FROM results ORDER BY variant_id")
        return [row[0] for row in rows]

    async def get_task_ids(self) -> list[str]:
        """Distinct task ids, sorted."""
        rows = self._db().execute("SELECT DISTINCT task_id FROM results ORDER BY task_id")
        return [row[0] for row in rows]

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
        conn = self._db()
        sql = """
            SELECT
              r.run_id,
              runs.executed_at,
              SUM(r.success) AS passed,
              COUNT(*) AS total,
              AVG(r.final_score) AS avg_score,
              SUM(r.total_cost) AS cost
            FROM results r
            JOIN runs ON r.run_id = runs.run_id
            WHERE r.variant_id = ?
        """
        params: list[Any] = [variant_id]

        if task_id is not None:
            sql += " AND r.task_id = ?"
            params.append(task_id)
        if since is not None:
            sql += " AND runs.executed_at >= ?"
            params.append(_timestamp(since))

        sql += " GROUP BY r.run_id, runs.executed_at ORDER BY runs.executed_at DESC, r.run_id DESC"
        sql = _paging(sql, params, limit, None)

        return [
            TrendPoint(
                run_id=row["run_id"],
                executed_at=datetime.fromisoformat(row["executed_at"]),
                passed=row["passed"],
                total=row["total"],
                avg_score=row["avg_score"],
                cost=row["cost"],
            )
            for row in conn.execute(sql, params)
        ]

    async def compare_models(self, variant1: str, variant2: str) -> ModelComparison:
        """Compare two variants on the latest result of every shared task."""
        conn = self._db()

        rows = conn.execute(
            """
            WITH latest AS (
              SELECT task_id, variant_id, final_score,
                     ROW_NUMBER() OVER (PARTITION BY task_id, variant_id ORDER BY id DESC) AS rn
              FROM results
              WHERE variant_id IN (?, ?)
            )
            SELECT l1.task_id, l1.final_score AS score1, l2.final_score AS score2
            FROM latest l1
            JOIN latest l2 ON l1.task_id = l2.task_id
            WHERE l1.variant_id = ? AND l2.variant_id = ?
              AND l1.rn = 1 AND l2.rn = 1
            ORDER BY l1.task_id
            """,
            (variant1, variant2, variant1, variant2),
        ).fetchall()

        per_task: list[TaskComparisonDetail] = []
        for row in rows:
            score1, score2 = row["score1"], row["score2"]
            winner: Winner = "variant1" if score1 > score2 else "variant2" if score2 > score1 else "tie"
            per_task.append(
                TaskComparisonDetail(
                    task_id=row["task_id"],
                    variant1_score=score1,
                    variant2_score=score2,
                    winner=winner,
                )
            )

        costs = {
            row["variant_id"]: row["cost"]
            for row in conn.execute(
                """
                SELECT variant_id, SUM(total_cost) AS cost
                FROM results
                WHERE variant_id IN (?, ?)
                GROUP BY variant_id
                """,
                (variant1, variant2),
            )
        }

        count = len(per_task) or 1
        return ModelComparison(
            variant1=variant1,
            variant2=variant2,
            variant1_wins=sum(1 for t in per_task if t.winner == "variant1"),
            variant2_wins=sum(1 for t in per_task if t.winner == "variant2"),
            ties=sum(1 for t in per_task if t.winner == "tie"),
            variant1_avg_score=sum(t.variant1_score for t in per_task) / count,
            variant2_avg_score=sum(t.variant2_score for t in per_task) / count,
            variant1_cost=costs.get(variant1, 0.0),
            variant2_cost=costs.get(variant2, 0.0),
            per_task=per_task,
        )

    async def detect_regressions(self, options: RegressionOptions | None = None) -> list[Regression]:
        """Detect task/variant pairs whose recent average score dropped."""
        conn = self._db()
        options = options or RegressionOptions()

        variant_filter = ""
        variant_params: list[Any] = []
        if options.variant_id is not None:
            variant_filter = "AND variant_id = ?"
            variant_params = [options.variant_id]

        params: list[Any] = [
            options.recent_window,
            options.baseline_window,
            options.recent_window,
            *variant_params,
            *variant_params,
            options.threshold,
        ]

        rows = conn.execute(
            f"""
            WITH recent_runs AS (
              SELECT run_id FROM runs ORDER BY executed_at DESC, run_id DESC LIMIT ?
            ),
            baseline_runs AS (
              SELECT run_id FROM runs ORDER BY executed_at DESC, run_id DESC LIMIT ? OFFSET ?
            ),
            recent AS (
              SELECT task_id, variant_id, AVG(final_score) AS recent_score
              FROM results
              WHERE run_id IN (SELECT run_id FROM recent_runs) {variant_filter}
              GROUP BY task_id, variant_id
            ),
            baseline AS (
              SELECT task_id, variant_id, AVG(final_score) AS baseline_score
              FROM results
              WHERE run_id IN (SELECT run_id FROM baseline_runs) {variant_filter}
              GROUP BY task_id, variant_id
            )
            SELECT
              r.task_id,
              r.variant_id,
              b.baseline_score,
              r.recent_score,
              (r.recent_score - b.baseline_score) / b.baseline_score AS change_ratio
            FROM recent r
            JOIN baseline b ON r.task_id = b.task_id AND r.variant_id = b.variant_id
            WHERE b.baseline_score > 0
              AND (r.recent_score - b.baseline_score) / b.baseline_score < -?
            ORDER BY change_ratio ASC, r.task_id, r.variant_id
            """,
            params,
        )

        return [
            Regression(
                task_id=row["task_id"],
                variant_id=row["variant_id"],
                baseline_score=row["baseline_score"],
                current_score=row["recent_score"],
                change_pct=row["change_ratio"] * 100,
            )
            for row in rows
        ]

    async def get_cost_breakdown(
        self,
        group_by: CostGroupBy,
        *,
        since: datetime | None = None,
        variant_id: str | None = None,
    ) -> list[CostBreakdown]:
        """Cost and token totals per group, most expensive first."""
        conn = self._db()
        group_expr = _COST_GROUP_EXPRESSIONS.get(group_by)
        if group_expr is None:
            raise ValueError(f"Unknown cost grouping: {group_by}")

        where = ""
        params: list[Any] = []
        if since is not None:
            where += " AND runs.executed_at >= ?"
            params.append(_timestamp(since))
        if variant_id is not None:
            where += " AND r.variant_id = ?"
            params.append(variant_id)

        rows = conn.execute(
            f"""
            SELECT
              {group_expr} AS group_key,
              SUM(r.total_cost) AS total_cost,
              SUM(r.total_tokens) AS total_tokens,
              COUNT(*) AS execution_count,
              SUM(r.total_cost) / COUNT(*) AS avg_cost,
              CASE
                WHEN SUM(r.success) > 0 THEN SUM(r.total_cost) / SUM(r.success)
                ELSE NULL
              END AS cost_per_success
            FROM results r
            JOIN runs ON r.run_id = runs.run_id
            WHERE 1=1 {where}
            GROUP BY group_key
            ORDER BY total_cost DESC, group_key ASC
            """,
            params,
        )

        return [
            CostBreakdown(
                group_key=row["group_key"],
                total_cost=row["total_cost"],
                total_tokens=row["total_tokens"],
                execution_count=row["execution_count"],
                avg_cost_per_execution=row["avg_cost"],
                cost_per_success=row["cost_per_success"],
            )
            for row in rows
        ]

    # ============ Task sets ============

    async def get_task_set_summaries(self) -> list[TaskSetSummary]:
        """One summary per task-set hash, most recently run first."""
        rows = self._db().execute(
            """
            WITH run_stats AS (
              SELECT
                task_set_hash,
                MIN(executed_at) AS first_run,
                MAX(executed_at) AS last_run,
                COUNT(*) AS run_count,
                AVG(overall_pass_rate) AS avg_pass_rate,
                AVG(average_score) AS avg_score
              FROM runs
              GROUP BY task_set_hash
            ),
            variant_counts AS (
              SELECT runs.task_set_hash, COUNT(DISTINCT r.variant_id) AS model_count
              FROM results r
              JOIN runs ON r.run_id = runs.run_id
              GROUP BY runs.task_set_hash
            )
            SELECT s.*, COALESCE(v.model_count, 0) AS model_count
            FROM run_stats s
            LEFT JOIN variant_counts v ON v.task_set_hash = s.task_set_hash
            ORDER BY s.last_run DESC, s.task_set_hash ASC
            """
        )

        return [
            TaskSetSummary(
                task_set_hash=row["task_set_hash"],
                first_run=datetime.fromisoformat(row["first_run"]),
                last_run=datetime.fromisoformat(row["last_run"]),
                run_count=row["run_count"],
                model_count=row["model_count"],
                avg_pass_rate=row["avg_pass_rate"],
                avg_score=row["avg_score"],
            )
            for row in rows
        ]

    async def get_runs_by_variant_for_task_set(self, task_set_hash: str) -> list[VariantRunGroup]:
        """Runs of one task set grouped by variant, ordered by variant id."""
        runs = await self.list_runs(task_set_hash=task_set_hash)

        rows = self._db().execute(
            """
            SELECT r.variant_id, r.run_id, MIN(r.provider) AS provider
            FROM results r
            JOIN runs ON r.run_id = runs.run_id
            WHERE runs.task_set_hash = ?
            GROUP BY r.variant_id, r.run_id
            """,
            (task_set_hash,),
        )

        variant_runs: dict[str, set[str]] = defaultdict(set)
        providers: dict[str, str] = {}
        for row in rows:
            variant_runs[row["variant_id"]].add(row["run_id"])
            current = providers.get(row["variant_id"])
            if current is None or row["provider"] < current:
                providers[row["variant_id"]] = row["provider"]

        return [
            VariantRunGroup(
                variant_id=variant_id,
                provider=providers[variant_id],
                runs=[run for run in runs if run.run_id in variant_runs[variant_id]],
            )
            for variant_id in sorted(variant_runs)
        ]
