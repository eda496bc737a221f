import json

import pytest

from qos_scheduler.db_store import ExperimentStore
from qos_scheduler.event_logger import JsonlEventLogger
from qos_scheduler.exceptions import InvalidConfigurationError
from qos_scheduler.experiment import run_comparison, run_experiment, run_scalability
from qos_scheduler.models import Task, VM
from qos_scheduler.param_sweep import sweep
from qos_scheduler.scheduler import POLICIES, QoSAwareScheduler, SchedulerConfig
from qos_scheduler.simulate import generate_batch, validate_batch


def _key(result):
    return [(r.task.task_id, r.vm.vm_id, r.start_time, r.finish_time) for r in result.assignments]


def test_generate_batch_is_reproducible():
    tasks_a, vms_a = generate_batch(10, 5, seed=7)
    tasks_b, vms_b = generate_batch(10, 5, seed=7)

    assert tasks_a == tasks_b
    assert vms_a == vms_b
    assert [t.task_id for t in tasks_a] == list(range(1, 11))
    assert all(1000 <= t.length_mi <= 10000 for t in tasks_a)
    assert all(5 <= t.deadline_sec <= 20 for t in tasks_a)
    assert all(1 <= t.priority <= 10 for t in tasks_a)
    validate_batch(tasks_a, vms_a)


def test_validate_batch_rejects_bad_records():
    vms = [VM(vm_id=1, mips=1000.0, cost_per_second=0.1)]
    with pytest.raises(InvalidConfigurationError, match="deadline"):
        validate_batch([Task(task_id=1, length_mi=1000.0, deadline_sec=0.0, budget=1.0)], vms)
    with pytest.raises(InvalidConfigurationError, match="no VMs"):
        validate_batch([Task(task_id=1, length_mi=1000.0, deadline_sec=1.0, budget=1.0)], [])


def test_run_comparison_covers_all_policies():
    tasks, vms = generate_batch(15, 4, seed=19)
    config = SchedulerConfig(seed=42)

    evaluator, results = run_comparison(tasks, vms, config)

    assert list(results) == list(POLICIES)
    assert len(evaluator.scheduler_names) == len(POLICIES)
    for result in results.values():
        assert sorted(r.task.task_id for r in result.assignments) == [t.task_id for t in tasks]
    assert all(t.assigned_vm_id is None for t in tasks)


def test_parallel_comparison_matches_sequential():
    tasks, vms = generate_batch(15, 4, seed=23)
    config = SchedulerConfig(seed=42)

    _, sequential = run_comparison(tasks, vms, config)
    _, parallel = run_comparison(tasks, vms, config, parallel=True)

    for policy in POLICIES:
        assert _key(sequential[policy]) == _key(parallel[policy])


def test_run_comparison_without_policies():
    tasks, vms = generate_batch(4, 2, seed=7)

    evaluator, results = run_comparison(tasks, vms, SchedulerConfig(seed=1), policies=(), parallel=True)

    assert results == {}
    assert evaluator.scheduler_names == []


def test_run_experiment_persists_runs(tmp_path):
    db_path = tmp_path / "runs.db"
    summary = run_experiment(
        seeds=[7, 11],
        tasks=8,
        vms=3,
        config=SchedulerConfig(seed=42),
        out_db=str(db_path),
    )

    assert set(summary) == set(POLICIES)
    assert summary["qos"]["completed_tasks"] == 8

    store = ExperimentStore(str(db_path))
    try:
        runs = store.query_runs()
        assert len(runs) == 2 * len(POLICIES)
        qos_runs = store.query_runs(policy="qos", seed=7)
        assert len(qos_runs) == 1
        run_id = qos_runs[0]["run_id"]
        assert sum(row["task_count"] for row in store.per_vm_load(run_id)) == 8
        qos = store.qos_summary(run_id)
        assert qos["tasks"] == 8
        assert qos["qos_satisfied"] <= qos["deadlines_met"]
    finally:
        store.close()


def test_run_scalability_rows():
    rows = run_scalability([5, 10], [2], SchedulerConfig(seed=1))

    assert [(r["tasks"], r["vms"]) for r in rows] == [(5, 2), (10, 2)]
    assert all(f"{p}_ms" in rows[0] for p in POLICIES)


def test_sweep_grid():
    rows = sweep(alphas=[0.0, 1.0], seeds=[7], tasks=6, vms=3, constraint_modes=[(True, True)])

    assert [(r["alpha"], r["beta"]) for r in rows] == [(0.0, 1.0), (1.0, 0.0)]
    assert "qos_satisfaction_rate" in rows[0]


def test_jsonl_event_logger(tmp_path):
    tasks, vms = generate_batch(4, 2, seed=7)
    log_file = tmp_path / "logs" / "qos.jsonl"

    with JsonlEventLogger(str(log_file)) as logger:
        QoSAwareScheduler(logger=logger).schedule(tasks, vms)

    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert records[0]["event"] == "profile"
    assert sum(1 for r in records if r["event"] == "assign") == 4
    assert records[-1]["event"] == "schedule_done"
