from __future__ import annotations

import argparse
import random
from pathlib import Path
from typing import List, Tuple

from .event_logger import JsonlEventLogger
from .exceptions import InvalidConfigurationError
from .metrics import summarize_results
from .models import Task, VM
from .scheduler import POLICIES, SchedulerConfig, build_scheduler

# (mips, cost per second, network latency)
_VM_PROFILES: List[Tuple[float, float, float]] = [
    (1000, 0.05, 0.10),  # low-cost, slow
    (2000, 0.08, 0.08),
    (3000, 0.12, 0.05),
    (4000, 0.15, 0.03),  # premium
    (1500, 0.06, 0.12),
]


def generate_tasks(n: int, seed: int) -> List[Task]:
    rng = random.Random(seed)
    tasks: List[Task] = []
    for i in range(1, n + 1):
        tasks.append(
            Task(
                task_id=i,
                length_mi=float(rng.randint(1000, 9999)),
                deadline_sec=rng.uniform(5, 20),
                budget=rng.uniform(0.5, 2.5),
                priority=rng.randint(1, 10),
            )
        )
    return tasks


def generate_vms(m: int, seed: int) -> List[VM]:
    rng = random.Random(seed + 1)
    vms: List[VM] = []
    for i in range(m):
        mips, cost, latency = _VM_PROFILES[i % len(_VM_PROFILES)]
        vms.append(
            VM(
                vm_id=i + 1,
                mips=mips + rng.uniform(-250, 250),
                cost_per_second=cost * rng.uniform(0.9, 1.1),
                network_latency_sec=latency * rng.uniform(0.8, 1.2),
                number_of_cores=rng.randint(1, 4),
            )
        )
    return vms


def generate_batch(n_tasks: int, n_vms: int, seed: int) -> Tuple[List[Task], List[VM]]:
    return generate_tasks(n_tasks, seed), generate_vms(n_vms, seed)


def validate_batch(tasks: List[Task], vms: List[VM]) -> None:
    """Reject out-of-range records before they reach a scheduler."""
    errors: List[str] = []
    if not tasks:
        errors.append("no tasks")
    if not vms:
        errors.append("no VMs")
    for task in tasks:
        if task.length_mi <= 0:
            errors.append(f"task {task.task_id}: invalid length")
        if task.deadline_sec <= 0:
            errors.append(f"task {task.task_id}: invalid deadline")
        if task.budget <= 0:
            errors.append(f"task {task.task_id}: invalid budget")
        if task.arrival_time < 0:
            errors.append(f"task {task.task_id}: invalid arrival time")
    for vm in vms:
        if vm.mips <= 0:
            errors.append(f"vm {vm.vm_id}: invalid mips")
        if vm.cost_per_second <= 0:
            errors.append(f"vm {vm.vm_id}: invalid cost per second")
        if vm.network_latency_sec < 0:
            errors.append(f"vm {vm.vm_id}: invalid network latency")
        if vm.number_of_cores < 1:
            errors.append(f"vm {vm.vm_id}: invalid core count")
    task_ids = [t.task_id for t in tasks]
    if len(set(task_ids)) != len(task_ids):
        errors.append("duplicate task ids")
    vm_ids = [v.vm_id for v in vms]
    if len(set(vm_ids)) != len(vm_ids):
        errors.append("duplicate vm ids")
    if errors:
        raise InvalidConfigurationError("; ".join(errors))


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tasks", type=int, default=20)
    parser.add_argument("--vms", type=int, default=5)
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--alpha", type=float, default=0.5)
    parser.add_argument("--beta", type=float, default=0.5)
    parser.add_argument("--no_deadline_constraint", action="store_true")
    parser.add_argument("--no_budget_constraint", action="store_true")
    parser.add_argument("--random_seed", type=int, default=42, help="Seed of the random baseline")
    parser.add_argument("--policy", choices=[*POLICIES, "all"], default="all")
    parser.add_argument("--show_profile", action="store_true", help="Print the QoS score matrix")
    parser.add_argument("--log_dir", type=str, default="")
    args = parser.parse_args()

    config = SchedulerConfig(
        alpha=args.alpha,
        beta=args.beta,
        enable_deadline_constraint=not args.no_deadline_constraint,
        enable_budget_constraint=not args.no_budget_constraint,
        seed=args.random_seed,
    )
    config.validate()
    tasks, vms = generate_batch(args.tasks, args.vms, seed=args.seed)
    validate_batch(tasks, vms)

    policies = list(POLICIES) if args.policy == "all" else [args.policy]

    for policy in policies:
        logger = None
        if args.log_dir:
            log_file = Path(args.log_dir) / f"{policy}_seed{args.seed}.jsonl"
            logger = JsonlEventLogger(str(log_file))

        scheduler = build_scheduler(policy, config=config, logger=logger)
        result = scheduler.schedule(tasks, vms)
        report = summarize_results(result, num_vms=len(vms))

        print(f"\npolicy={policy} ({scheduler.name}), seed={args.seed}")
        for r in result.assignments:
            status = "ok" if r.qos_satisfied else "violated"
            print(
                f"  task {r.task.task_id:>3} -> vm {r.vm.vm_id:<3} "
                f"time={r.total_time:.4f}s cost={r.cost:.4f} "
                f"[{r.start_time:.3f}, {r.finish_time:.3f}] {status}"
            )
        for k, v in report.items():
            print(f"{k}: {v}")
        if args.show_profile and policy == "qos":
            print("\nqos_score matrix:")
            print(scheduler.profiling.format_matrix("qos_score"))

        if logger:
            logger.close()


if __name__ == "__main__":
    main()
