from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .exceptions import MetricsNotFoundError
from .models import AssignmentResult, ScheduleResult


def _merge_coverage(intervals: list[tuple[float, float]]) -> float:
    if not intervals:
        return 0.0
    sorted_intervals = sorted(intervals, key=lambda x: x[0])
    covered = 0.0
    cur_start, cur_end = sorted_intervals[0]
    for start, end in sorted_intervals[1:]:
        if start > cur_end:
            covered += cur_end - cur_start
            cur_start, cur_end = start, end
        else:
            cur_end = max(cur_end, end)
    covered += cur_end - cur_start
    return covered


def _pct_change(baseline: float, value: float) -> float:
    """Relative improvement of value over baseline when lower is better."""
    if baseline == 0:
        return 0.0
    return (baseline - value) / baseline * 100.0


@dataclass
class PerformanceMetrics:
    total_tasks: int = 0
    # time metrics (total time, latency included)
    total_execution_time: float = 0.0
    average_execution_time: float = 0.0
    std_dev_time: float = 0.0
    makespan: float = 0.0
    average_latency: float = 0.0
    # cost metrics
    total_cost: float = 0.0
    average_cost: float = 0.0
    std_dev_cost: float = 0.0
    # QoS metrics
    deadlines_met: int = 0
    deadline_miss_rate: float = 0.0
    budgets_met: int = 0
    budget_violation_rate: float = 0.0
    qos_satisfied: int = 0
    qos_satisfaction_rate: float = 0.0
    # efficiency
    throughput: float = 0.0
    utilization: float = 0.0


def compute_metrics(
    results: Sequence[AssignmentResult],
    num_vms: Optional[int] = None,
) -> PerformanceMetrics:
    metrics = PerformanceMetrics()
    if not results:
        return metrics

    count = len(results)
    times = [r.total_time for r in results]
    costs = [r.cost for r in results]
    deadlines_met = sum(1 for r in results if r.deadline_satisfied)
    budgets_met = sum(1 for r in results if r.budget_satisfied)
    qos_satisfied = sum(1 for r in results if r.qos_satisfied)
    makespan = max(r.finish_time for r in results)

    metrics.total_tasks = count
    metrics.total_execution_time = sum(times)
    metrics.average_execution_time = metrics.total_execution_time / count
    metrics.std_dev_time = statistics.pstdev(times)
    metrics.makespan = makespan
    metrics.average_latency = sum(r.vm.network_latency_sec for r in results) / count
    metrics.total_cost = sum(costs)
    metrics.average_cost = metrics.total_cost / count
    metrics.std_dev_cost = statistics.pstdev(costs)
    metrics.deadlines_met = deadlines_met
    metrics.deadline_miss_rate = (count - deadlines_met) * 100.0 / count
    metrics.budgets_met = budgets_met
    metrics.budget_violation_rate = (count - budgets_met) * 100.0 / count
    metrics.qos_satisfied = qos_satisfied
    metrics.qos_satisfaction_rate = qos_satisfied * 100.0 / count
    metrics.throughput = count / makespan if makespan > 0 else 0.0

    if num_vms and num_vms > 0 and makespan > 0:
        per_vm_intervals: dict[int, list[tuple[float, float]]] = {}
        for r in results:
            per_vm_intervals.setdefault(r.vm.vm_id, []).append((r.start_time, r.finish_time))
        total_busy = sum(_merge_coverage(intervals) for intervals in per_vm_intervals.values())
        metrics.utilization = total_busy / (num_vms * makespan)
    return metrics


def summarize_results(result: ScheduleResult, num_vms: int | None = None) -> Dict[str, float]:
    m = compute_metrics(result.assignments, num_vms=num_vms)
    return {
        "completed_tasks": m.total_tasks,
        "unassigned_tasks": len(result.failures),
        "avg_time": round(m.average_execution_time, 4),
        "std_time": round(m.std_dev_time, 4),
        "total_cost": round(m.total_cost, 4),
        "avg_cost": round(m.average_cost, 4),
        "makespan": round(m.makespan, 4),
        "throughput": round(m.throughput, 4),
        "utilization": round(m.utilization, 4),
        "deadline_miss_rate": round(m.deadline_miss_rate, 2),
        "budget_violation_rate": round(m.budget_violation_rate, 2),
        "qos_satisfaction_rate": round(m.qos_satisfaction_rate, 2),
    }


@dataclass
class Improvement:
    baseline: str
    avg_time_pct: float
    total_cost_pct: float
    makespan_pct: float
    deadline_miss_pp: float
    qos_satisfaction_pp: float


class PerformanceEvaluator:
    """Collects metrics per scheduler name, in evaluation order, and compares them."""

    def __init__(self) -> None:
        self._metrics: Dict[str, PerformanceMetrics] = {}

    def evaluate(
        self,
        scheduler_name: str,
        results: Sequence[AssignmentResult],
        num_vms: Optional[int] = None,
    ) -> PerformanceMetrics:
        metrics = compute_metrics(results, num_vms=num_vms)
        # re-evaluating a name keeps its original position
        self._metrics[scheduler_name] = metrics
        return metrics

    def get(self, scheduler_name: str) -> PerformanceMetrics:
        try:
            return self._metrics[scheduler_name]
        except KeyError:
            raise MetricsNotFoundError(f"no metrics recorded for {scheduler_name!r}") from None

    @property
    def scheduler_names(self) -> List[str]:
        return list(self._metrics)

    def improvement_over(self, reference: str) -> List[Improvement]:
        """Deltas of `reference` against every other evaluated scheduler.

        Positive values are improvements: relative percentages for average
        time, total cost and makespan; percentage points for deadline miss
        rate and QoS satisfaction rate.
        """
        ref = self.get(reference)
        improvements: List[Improvement] = []
        for name, base in self._metrics.items():
            if name == reference:
                continue
            improvements.append(
                Improvement(
                    baseline=name,
                    avg_time_pct=_pct_change(base.average_execution_time, ref.average_execution_time),
                    total_cost_pct=_pct_change(base.total_cost, ref.total_cost),
                    makespan_pct=_pct_change(base.makespan, ref.makespan),
                    deadline_miss_pp=base.deadline_miss_rate - ref.deadline_miss_rate,
                    qos_satisfaction_pp=ref.qos_satisfaction_rate - base.qos_satisfaction_rate,
                )
            )
        return improvements

    def comparison_rows(self) -> List[Dict[str, object]]:
        return [
            {
                "scheduler": name,
                "avg_time": m.average_execution_time,
                "total_cost": m.total_cost,
                "makespan": m.makespan,
                "deadline_miss_rate": m.deadline_miss_rate,
                "budget_violation_rate": m.budget_violation_rate,
                "qos_satisfaction_rate": m.qos_satisfaction_rate,
            }
            for name, m in self._metrics.items()
        ]

    def print_comparison_table(self) -> None:
        print(
            f"{'Scheduler':<38} {'Avg Time(s)':>12} {'Total Cost':>12} {'Makespan':>12} "
            f"{'DL Miss%':>10} {'Budget Vio%':>12} {'QoS Sat%':>10}"
        )
        print("-" * 112)
        for row in self.comparison_rows():
            print(
                f"{row['scheduler']:<38} {row['avg_time']:>12.4f} {row['total_cost']:>12.4f} "
                f"{row['makespan']:>12.4f} {row['deadline_miss_rate']:>10.2f} "
                f"{row['budget_violation_rate']:>12.2f} {row['qos_satisfaction_rate']:>10.2f}"
            )

    def print_detailed_report(self) -> None:
        for name, m in self._metrics.items():
            print(f"\n--- {name} ---")
            print(f"tasks: {m.total_tasks}")
            print(f"total_time: {m.total_execution_time:.4f}  avg_time: {m.average_execution_time:.4f}  "
                  f"std_time: {m.std_dev_time:.4f}")
            print(f"makespan: {m.makespan:.4f}  avg_latency: {m.average_latency:.4f}")
            print(f"total_cost: {m.total_cost:.4f}  avg_cost: {m.average_cost:.4f}  std_cost: {m.std_dev_cost:.4f}")
            print(f"deadlines_met: {m.deadlines_met}/{m.total_tasks} (miss {m.deadline_miss_rate:.2f}%)")
            print(f"budgets_met: {m.budgets_met}/{m.total_tasks} (violation {m.budget_violation_rate:.2f}%)")
            print(f"qos_satisfaction: {m.qos_satisfaction_rate:.2f}%")
            print(f"throughput: {m.throughput:.4f} tasks/s  utilization: {m.utilization:.4f}")

    def print_improvement_analysis(self, reference: str) -> None:
        for imp in self.improvement_over(reference):
            print(f"\n--- {reference} vs {imp.baseline} ---")
            for label, value, unit in (
                ("avg_time", imp.avg_time_pct, "%"),
                ("total_cost", imp.total_cost_pct, "%"),
                ("makespan", imp.makespan_pct, "%"),
                ("deadline_miss_rate", imp.deadline_miss_pp, " pp"),
                ("qos_satisfaction", imp.qos_satisfaction_pp, " pp"),
            ):
                verdict = "improvement" if value >= 0 else "degradation"
                print(f"{label}: {value:.2f}{unit} {verdict}")
