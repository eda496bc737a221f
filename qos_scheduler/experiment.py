from __future__ import annotations

import argparse
import csv
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .metrics import PerformanceEvaluator, summarize_results
from .models import Task, VM, ScheduleResult
from .scheduler import POLICIES, SchedulerConfig, build_scheduler
from .simulate import generate_batch, validate_batch


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def run_comparison(
    tasks: List[Task],
    vms: List[VM],
    config: SchedulerConfig,
    policies: Sequence[str] = POLICIES,
    parallel: bool = False,
) -> Tuple[PerformanceEvaluator, Dict[str, ScheduleResult]]:
    """Schedule one batch with every policy and evaluate each run.

    Every scheduler copies the batch it is given, so the runs may share
    `tasks`/`vms` and may run on separate threads. Results are evaluated in
    `policies` order either way.
    """
    schedulers = [build_scheduler(p, config=config) for p in policies]

    if parallel and schedulers:
        with ThreadPoolExecutor(max_workers=len(schedulers)) as pool:
            futures = [pool.submit(s.schedule, tasks, vms) for s in schedulers]
            outcomes = [f.result() for f in futures]
    else:
        outcomes = [s.schedule(tasks, vms) for s in schedulers]

    evaluator = PerformanceEvaluator()
    results: Dict[str, ScheduleResult] = {}
    for scheduler, outcome in zip(schedulers, outcomes):
        evaluator.evaluate(scheduler.name, outcome.assignments, num_vms=len(vms))
        results[scheduler.policy_name] = outcome
    return evaluator, results


def run_experiment(
    seeds: List[int],
    tasks: int,
    vms: int,
    config: SchedulerConfig,
    parallel: bool = False,
    out_db: Optional[str] = None,
) -> Dict[str, Dict[str, float]]:
    reports: Dict[str, List[Dict[str, float]]] = {p: [] for p in POLICIES}

    store = None
    if out_db:
        from .db_store import ExperimentStore
        store = ExperimentStore(out_db)

    for seed in seeds:
        task_list, vm_list = generate_batch(tasks, vms, seed=seed)
        validate_batch(task_list, vm_list)
        _, results = run_comparison(task_list, vm_list, config, parallel=parallel)

        for policy, result in results.items():
            reports[policy].append(summarize_results(result, num_vms=vms))
            if store:
                run_id = store.insert_run(
                    policy=policy,
                    seed=seed,
                    alpha=config.alpha,
                    beta=config.beta,
                    vms=vms,
                    tasks=len(task_list),
                )
                store.insert_assignments(run_id, result.assignments)
                store.insert_failures(run_id, result.failures)

    if store:
        store.close()

    summary: Dict[str, Dict[str, float]] = {}
    keys = reports["qos"][0].keys() if reports["qos"] else []
    for policy, policy_reports in reports.items():
        summary[policy] = {k: round(_mean([r[k] for r in policy_reports]), 4) for k in keys}
    return summary


def run_scalability(
    task_counts: Sequence[int],
    vm_counts: Sequence[int],
    config: SchedulerConfig,
    seed: int = 7,
) -> List[Dict[str, float]]:
    """Wall-clock milliseconds per policy for each (tasks, vms) size."""
    rows: List[Dict[str, float]] = []
    for n_tasks in task_counts:
        for n_vms in vm_counts:
            task_list, vm_list = generate_batch(n_tasks, n_vms, seed=seed)
            row: Dict[str, float] = {"tasks": n_tasks, "vms": n_vms}
            for policy in POLICIES:
                scheduler = build_scheduler(policy, config=config)
                start = time.perf_counter()
                scheduler.schedule(task_list, vm_list)
                row[f"{policy}_ms"] = round((time.perf_counter() - start) * 1000.0, 3)
            rows.append(row)
    return rows


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tasks", type=int, default=20)
    parser.add_argument("--vms", type=int, default=5)
    parser.add_argument("--alpha", type=float, default=0.5)
    parser.add_argument("--beta", type=float, default=0.5)
    parser.add_argument("--no_deadline_constraint", action="store_true")
    parser.add_argument("--no_budget_constraint", action="store_true")
    parser.add_argument("--random_seed", type=int, default=42, help="Seed of the random baseline")
    parser.add_argument("--seeds", type=str, default="7,11,19,23,31")
    parser.add_argument("--parallel", action="store_true", help="Run the four schedulers on threads")
    parser.add_argument("--out_csv", type=str, default="")
    parser.add_argument(
        "--out_db",
        type=str,
        default="",
        help="SQLite database path to persist all assignments",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Print the comparison table and improvement analysis for the first seed",
    )
    parser.add_argument(
        "--scalability",
        action="store_true",
        help="Time every policy over a grid of batch sizes instead",
    )
    args = parser.parse_args()

    config = SchedulerConfig(
        alpha=args.alpha,
        beta=args.beta,
        enable_deadline_constraint=not args.no_deadline_constraint,
        enable_budget_constraint=not args.no_budget_constraint,
        seed=args.random_seed,
    )
    config.validate()
    seeds = [int(s.strip()) for s in args.seeds.split(",") if s.strip()]

    if args.scalability:
        rows = run_scalability([10, 20, 50, 100, 200], [3, 5, 10], config, seed=seeds[0] if seeds else 7)
        cols = ["tasks", "vms", *[f"{p}_ms" for p in POLICIES]]
        print("  ".join(f"{c:>10}" for c in cols))
        for row in rows:
            print("  ".join(f"{row[c]:>10}" for c in cols))
        return

    if args.report and seeds:
        task_list, vm_list = generate_batch(args.tasks, args.vms, seed=seeds[0])
        validate_batch(task_list, vm_list)
        evaluator, _ = run_comparison(task_list, vm_list, config, parallel=args.parallel)
        evaluator.print_comparison_table()
        evaluator.print_detailed_report()
        evaluator.print_improvement_analysis(evaluator.scheduler_names[0])

    summary = run_experiment(
        seeds=seeds,
        tasks=args.tasks,
        vms=args.vms,
        config=config,
        parallel=args.parallel,
        out_db=args.out_db or None,
    )

    print(f"\ntasks={args.tasks}, vms={args.vms}, alpha={args.alpha}, beta={args.beta}, seeds={seeds}")
    keys = list(summary["qos"].keys())
    print("policy, " + ", ".join(keys))
    for policy in POLICIES:
        r = summary[policy]
        print(f"{policy}, " + ", ".join(str(r[k]) for k in keys))

    if args.out_csv:
        csv_path = Path(args.out_csv)
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        with open(csv_path, "w", newline="", encoding="utf-8") as fp:
            writer = csv.writer(fp)
            writer.writerow(["policy", *keys])
            for policy in POLICIES:
                writer.writerow([policy, *[summary[policy][k] for k in keys]])
        print(f"saved_csv={csv_path}")


if __name__ == "__main__":
    main()
