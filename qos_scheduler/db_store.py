"""
db_store.py

SQLite persistence for scheduler runs, task assignments and unassigned tasks.
Lets comparisons be queried offline without re-running the schedulers.

Usage:
    from qos_scheduler.db_store import ExperimentStore
    store = ExperimentStore("results.db")
    run_id = store.insert_run(policy="qos", seed=7, alpha=0.5, beta=0.5, vms=5, tasks=20)
    store.insert_assignments(run_id, result.assignments)
    store.insert_failures(run_id, result.failures)
    store.close()
"""
from __future__ import annotations

import sqlite3
from typing import Dict, List, Optional

from .models import AssignmentResult, SchedulingFailure


_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    run_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    policy      TEXT    NOT NULL,
    seed        INTEGER NOT NULL,
    alpha       REAL    NOT NULL,
    beta        REAL    NOT NULL,
    vms         INTEGER NOT NULL,
    tasks       INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT    NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS assignments (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id         INTEGER NOT NULL REFERENCES runs(run_id),
    task_id        INTEGER NOT NULL,
    vm_id          INTEGER NOT NULL,
    priority       INTEGER NOT NULL,
    length_mi      REAL    NOT NULL,
    deadline_sec   REAL    NOT NULL,
    budget         REAL    NOT NULL,
    execution_time REAL    NOT NULL,
    total_time     REAL    NOT NULL,
    cost           REAL    NOT NULL,
    start_time     REAL    NOT NULL,
    finish_time    REAL    NOT NULL,
    deadline_met   INTEGER NOT NULL,   -- 1 = met, 0 = missed
    budget_met     INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS failures (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id      INTEGER NOT NULL REFERENCES runs(run_id),
    task_id     INTEGER NOT NULL,
    reason      TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_assignments_run ON assignments(run_id);
CREATE INDEX IF NOT EXISTS idx_failures_run    ON failures(run_id);
"""


class ExperimentStore:
    """SQLite-backed store for experiment runs and scheduler assignments."""

    def __init__(self, db_path: str = "experiments.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # ------------------------------------------------------------------
    # Insert helpers
    # ------------------------------------------------------------------

    def insert_run(
        self,
        policy: str,
        seed: int,
        alpha: float,
        beta: float,
        vms: int,
        tasks: int = 0,
    ) -> int:
        """Insert a new run and return its run_id."""
        cur = self._conn.execute(
            "INSERT INTO runs (policy, seed, alpha, beta, vms, tasks) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (policy, seed, alpha, beta, vms, tasks),
        )
        self._conn.commit()
        return cur.lastrowid  # type: ignore[return-value]

    def insert_assignments(self, run_id: int, assignments: List[AssignmentResult]) -> None:
        rows = [
            (
                run_id,
                a.task.task_id,
                a.vm.vm_id,
                a.task.priority,
                a.task.length_mi,
                a.task.deadline_sec,
                a.task.budget,
                a.execution_time,
                a.total_time,
                a.cost,
                a.start_time,
                a.finish_time,
                1 if a.deadline_satisfied else 0,
                1 if a.budget_satisfied else 0,
            )
            for a in assignments
        ]
        self._conn.executemany(
            "INSERT INTO assignments "
            "(run_id, task_id, vm_id, priority, length_mi, deadline_sec, budget, "
            " execution_time, total_time, cost, start_time, finish_time, deadline_met, budget_met) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            rows,
        )
        self._conn.commit()

    def insert_failures(self, run_id: int, failures: List[SchedulingFailure]) -> None:
        self._conn.executemany(
            "INSERT INTO failures (run_id, task_id, reason) VALUES (?, ?, ?)",
            [(run_id, f.task.task_id, f.reason) for f in failures],
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def query_runs(
        self,
        policy: Optional[str] = None,
        seed: Optional[int] = None,
    ) -> List[Dict[str, object]]:
        """Return all matching runs as a list of dicts."""
        clauses: List[str] = []
        params: List[object] = []
        if policy is not None:
            clauses.append("policy = ?")
            params.append(policy)
        if seed is not None:
            clauses.append("seed = ?")
            params.append(seed)
        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        rows = self._conn.execute(f"SELECT * FROM runs {where} ORDER BY run_id", params).fetchall()
        return [dict(r) for r in rows]

    def per_vm_load(self, run_id: int) -> List[Dict[str, object]]:
        """Busy time, last finish time and task count per VM for a run."""
        rows = self._conn.execute(
            "SELECT vm_id, "
            "       SUM(total_time)  AS busy_time, "
            "       MAX(finish_time) AS last_finish, "
            "       COUNT(*)         AS task_count "
            "FROM assignments "
            "WHERE run_id = ? "
            "GROUP BY vm_id "
            "ORDER BY vm_id",
            (run_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def qos_summary(self, run_id: int) -> Dict[str, object]:
        """Counts of deadlines met, budgets met and fully satisfied tasks for a run."""
        row = self._conn.execute(
            "SELECT COUNT(*)                          AS tasks, "
            "       COALESCE(SUM(deadline_met), 0)    AS deadlines_met, "
            "       COALESCE(SUM(budget_met), 0)      AS budgets_met, "
            "       COALESCE(SUM(deadline_met * budget_met), 0) AS qos_satisfied, "
            "       COALESCE(SUM(cost), 0.0)          AS total_cost, "
            "       COALESCE(MAX(finish_time), 0.0)   AS makespan "
            "FROM assignments WHERE run_id = ?",
            (run_id,),
        ).fetchone()
        return dict(row)

    def close(self) -> None:
        self._conn.close()
