"""
param_sweep.py

Sweep the alpha (time) weight of the QoS-aware scheduler, with beta = 1 - alpha,
under each constraint mode. Prints a sensitivity table and optionally writes a CSV.

Usage:
    python -m qos_scheduler.param_sweep
    python -m qos_scheduler.param_sweep --tasks 50 --vms 8 --out_csv sweep.csv
"""
from __future__ import annotations

import argparse
import csv
import itertools
from typing import Dict, List, Tuple

from .metrics import summarize_results
from .scheduler import QoSAwareScheduler, SchedulerConfig
from .simulate import generate_batch


_DEFAULT_ALPHAS = [0.0, 0.25, 0.5, 0.75, 1.0]
_DEFAULT_SEEDS = [7, 11, 19, 23, 31]
# (deadline constraint, budget constraint)
_CONSTRAINT_MODES: List[Tuple[bool, bool]] = [(True, True), (True, False), (False, True), (False, False)]


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def sweep(
    alphas: List[float],
    seeds: List[int],
    tasks: int,
    vms: int,
    constraint_modes: List[Tuple[bool, bool]] = _CONSTRAINT_MODES,
    target_metrics: Tuple[str, ...] = ("avg_time", "total_cost", "makespan", "qos_satisfaction_rate"),
) -> List[Dict[str, object]]:
    """Run the full grid and return one row per (alpha, constraint mode) pair."""
    rows: List[Dict[str, object]] = []

    for alpha, (deadline_on, budget_on) in itertools.product(alphas, constraint_modes):
        seed_results: List[Dict[str, float]] = []
        for seed in seeds:
            task_list, vm_list = generate_batch(tasks, vms, seed=seed)
            scheduler = QoSAwareScheduler(
                config=SchedulerConfig(
                    alpha=alpha,
                    beta=round(1.0 - alpha, 10),
                    enable_deadline_constraint=deadline_on,
                    enable_budget_constraint=budget_on,
                ),
            )
            seed_results.append(summarize_results(scheduler.schedule(task_list, vm_list), num_vms=vms))

        row: Dict[str, object] = {
            "alpha": alpha,
            "beta": round(1.0 - alpha, 10),
            "deadline_constraint": deadline_on,
            "budget_constraint": budget_on,
        }
        for metric in target_metrics:
            row[metric] = round(_mean([r[metric] for r in seed_results]), 4)
        rows.append(row)

    return rows


def _print_table(rows: List[Dict[str, object]], metrics: Tuple[str, ...]) -> None:
    col_keys = ["alpha", "beta", "deadline_constraint", "budget_constraint", *metrics]
    header = "  ".join(f"{k:>21}" for k in col_keys)
    print(header)
    print("-" * len(header))
    for row in rows:
        line = "  ".join(f"{str(row[k]):>21}" for k in col_keys)
        print(line)


def main() -> None:
    parser = argparse.ArgumentParser(description="Weight sensitivity sweep for the QoS-aware scheduler")
    parser.add_argument("--tasks", type=int, default=50)
    parser.add_argument("--vms", type=int, default=5)
    parser.add_argument("--seeds", type=str, default=",".join(str(s) for s in _DEFAULT_SEEDS))
    parser.add_argument(
        "--alphas",
        type=str,
        default=",".join(str(v) for v in _DEFAULT_ALPHAS),
        help="Comma-separated alpha values in [0, 1]; beta is 1 - alpha",
    )
    parser.add_argument("--out_csv", type=str, default="")
    args = parser.parse_args()

    seeds = [int(s.strip()) for s in args.seeds.split(",") if s.strip()]
    alphas = [float(v.strip()) for v in args.alphas.split(",") if v.strip()]
    for alpha in alphas:
        SchedulerConfig(alpha=alpha, beta=round(1.0 - alpha, 10)).validate()
    target_metrics: Tuple[str, ...] = ("avg_time", "total_cost", "makespan", "qos_satisfaction_rate")

    print(f"tasks={args.tasks}  vms={args.vms}  seeds={seeds}")
    print(f"alphas={alphas}\n")

    rows = sweep(
        alphas=alphas,
        seeds=seeds,
        tasks=args.tasks,
        vms=args.vms,
        target_metrics=target_metrics,
    )

    _print_table(rows, target_metrics)

    if args.out_csv:
        col_keys = ["alpha", "beta", "deadline_constraint", "budget_constraint", *target_metrics]
        with open(args.out_csv, "w", newline="", encoding="utf-8") as fp:
            writer = csv.DictWriter(fp, fieldnames=col_keys)
            writer.writeheader()
            writer.writerows(rows)
        print(f"\nsaved_csv={args.out_csv}")


if __name__ == "__main__":
    main()
