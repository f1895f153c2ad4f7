"""SQLite schema and forward-only migrations.

Each Migration is a typed step keyed by the schema version it produces.
A fresh database gets every step applied inside one transaction and only
the current version recorded; an existing database gets the steps strictly
between its recorded version and SCHEMA_VERSION, each applied and recorded
in its own transaction.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class Migration:
    """One schema step.

    Attributes:
        version: Schema version this step produces.
        description: What the step changes.
        apply: Function executing the step's DDL on a connection.
    """

    version: int
    description: str
    apply: Callable[[sqlite3.Connection], None]


CREATE_SCHEMA_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
  version INTEGER PRIMARY KEY,
  description TEXT,
  applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
)
"""


def _create_runs_and_results(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS runs (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          run_id TEXT UNIQUE NOT NULL,
          executed_at TEXT NOT NULL,
          config_hash TEXT NOT NULL,
          task_set_hash TEXT NOT NULL,
          total_tasks INTEGER NOT NULL,
          total_models INTEGER NOT NULL,
          total_cost REAL NOT NULL,
          total_tokens INTEGER NOT NULL,
          total_duration_ms INTEGER NOT NULL,
          pass_rate_1 REAL NOT NULL,
          pass_rate_2 REAL NOT NULL,
          overall_pass_rate REAL NOT NULL,
          average_score REAL NOT NULL,
          metadata_json TEXT,
          created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
        """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS results (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          run_id TEXT NOT NULL REFERENCES runs(run_id) ON DELETE CASCADE,
          task_id TEXT NOT NULL,
          variant_id TEXT NOT NULL,
          model TEXT NOT NULL,
          provider TEXT NOT NULL,
          success INTEGER NOT NULL,
          final_score REAL NOT NULL,
          passed_attempt INTEGER NOT NULL,
          total_tokens INTEGER NOT NULL,
          prompt_tokens INTEGER NOT NULL,
          completion_tokens INTEGER NOT NULL,
          total_cost REAL NOT NULL,
          total_duration_ms INTEGER NOT NULL,
          variant_config_json TEXT,
          result_json TEXT,
          created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
          UNIQUE(run_id, task_id, variant_id)
        )
        """)
    for statement in (
        "CREATE INDEX IF NOT EXISTS idx_runs_executed_at ON runs(executed_at)",
        "CREATE INDEX IF NOT EXISTS idx_runs_config_hash ON runs(config_hash)",
        "CREATE INDEX IF NOT EXISTS idx_runs_task_set_hash ON runs(task_set_hash)",
        "CREATE INDEX IF NOT EXISTS idx_results_run_id ON results(run_id)",
        "CREATE INDEX IF NOT EXISTS idx_results_task_id ON results(task_id)",
        "CREATE INDEX IF NOT EXISTS idx_results_variant_id ON results(variant_id)",
        "CREATE INDEX IF NOT EXISTS idx_results_provider ON results(provider)",
        "CREATE INDEX IF NOT EXISTS idx_results_success ON results(success)",
    ):
        conn.execute(statement)


def _create_attempts(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS attempts (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          result_id INTEGER NOT NULL REFERENCES results(id) ON DELETE CASCADE,
          attempt_number INTEGER NOT NULL,
          success INTEGER NOT NULL,
          score REAL NOT NULL,
          tokens_used INTEGER NOT NULL,
          cost REAL NOT NULL,
          duration_ms INTEGER NOT NULL,
          compile_success INTEGER,
          test_success INTEGER,
          failure_reasons_json TEXT,
          UNIQUE(result_id, attempt_number)
        )
        """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_attempts_result_id ON attempts(result_id)")


def _create_views(conn: sqlite3.Connection) -> None:
    # Latest result per task/variant combination
    conn.execute("""
        CREATE VIEW IF NOT EXISTS latest_results AS
        SELECT r.*
        FROM results r
        WHERE r.id = (
          SELECT MAX(l.id) FROM results l
          WHERE l.task_id = r.task_id AND l.variant_id = r.variant_id
        )
        """)
    # All-time performance per variant
    conn.execute("""
        CREATE VIEW IF NOT EXISTS model_performance AS
        SELECT
          variant_id,
          provider,
          model,
          COUNT(*) AS total_executions,
          SUM(success) AS total_passed,
          ROUND(AVG(CAST(success AS REAL)) * 100, 1) AS pass_rate,
          ROUND(AVG(final_score), 1) AS avg_score,
          SUM(total_cost) AS total_cost,
          SUM(total_tokens) AS total_tokens
        FROM results
        GROUP BY variant_id, provider, model
        """)


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "runs and results tables with indexes", _create_runs_and_results),
    Migration(2, "per-attempt details table", _create_attempts),
    Migration(3, "latest_results and model_performance views", _create_views),
)

SCHEMA_VERSION = MIGRATIONS[-1].version


def pending_migrations(current_version: int) -> list[Migration]:
    """Migrations strictly newer than current_version, in ascending order."""
    return sorted(
        (m for m in MIGRATIONS if current_version < m.version <= SCHEMA_VERSION),
        key=lambda m: m.version,
    )


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the full current schema (caller owns the transaction)."""
    conn.execute(CREATE_SCHEMA_VERSION_TABLE)
    for migration in MIGRATIONS:
        migration.apply(conn)
    record_version(conn, SCHEMA_VERSION, "initial schema")


def record_version(conn: sqlite3.Connection, version: int, description: str) -> None:
    """Record that the schema reached version."""
    conn.execute(
        "INSERT INTO schema_version (version, description) VALUES (?, ?)",
        (version, description),
    )

