from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .exceptions import NoVMAvailableError


def _ratio(value: float, limit: float) -> float:
    # a zero limit gives inf for any positive overshoot, 0 for nothing used
    if limit:
        return value / limit
    return float("inf") if value > 0 else 0.0


@dataclass
class Task:
    task_id: int
    length_mi: float
    deadline_sec: float
    budget: float
    priority: int = 5
    arrival_time: float = 0.0

    # filled in by whichever scheduler processes this copy
    assigned_vm_id: Optional[int] = None
    estimated_time: float = 0.0
    estimated_cost: float = 0.0
    deadline_met: bool = False
    budget_met: bool = False

    def __post_init__(self) -> None:
        self.priority = max(1, min(10, int(self.priority)))

    def record_assignment(self, result: "AssignmentResult") -> None:
        self.assigned_vm_id = result.vm.vm_id
        self.estimated_time = result.total_time
        self.estimated_cost = result.cost
        self.deadline_met = result.deadline_satisfied
        self.budget_met = result.budget_satisfied


@dataclass(frozen=True)
class VM:
    vm_id: int
    mips: float
    cost_per_second: float
    network_latency_sec: float = 0.0
    number_of_cores: int = 1
    # descriptive only, never packed against
    ram_mb: int = 2048
    bandwidth_mbps: int = 1000
    storage_mb: int = 10000

    def exec_time(self, length_mi: float) -> float:
        return length_mi / self.mips

    def total_time(self, length_mi: float) -> float:
        return self.exec_time(length_mi) + self.network_latency_sec

    def exec_cost(self, length_mi: float) -> float:
        return self.exec_time(length_mi) * self.cost_per_second


@dataclass(frozen=True)
class AssignmentResult:
    task: Task
    vm: VM
    execution_time: float
    total_time: float
    cost: float
    start_time: float = 0.0
    finish_time: float = 0.0

    @classmethod
    def build(cls, task: Task, vm: VM, start_time: float = 0.0) -> "AssignmentResult":
        total_time = vm.total_time(task.length_mi)
        return cls(
            task=task,
            vm=vm,
            execution_time=vm.exec_time(task.length_mi),
            total_time=total_time,
            cost=vm.exec_cost(task.length_mi),
            start_time=start_time,
            finish_time=start_time + total_time,
        )

    @property
    def deadline_satisfied(self) -> bool:
        return self.total_time <= self.task.deadline_sec

    @property
    def budget_satisfied(self) -> bool:
        return self.cost <= self.task.budget

    @property
    def qos_satisfied(self) -> bool:
        return self.deadline_satisfied and self.budget_satisfied

    def qos_score(self, alpha: float, beta: float) -> float:
        """Weighted score against this task's own deadline and budget (lower is better).

        Unlike the profiling score used for VM selection, this is neither
        normalized against the whole batch nor scaled by priority.
        """
        deadline = self.task.deadline_sec
        budget = self.task.budget
        deadline_penalty = 0.0
        if not self.deadline_satisfied:
            deadline_penalty = _ratio(self.total_time - deadline, deadline) * 10
        budget_penalty = 0.0
        if not self.budget_satisfied:
            budget_penalty = _ratio(self.cost - budget, budget) * 10
        return (
            alpha * _ratio(self.total_time, deadline)
            + beta * _ratio(self.cost, budget)
            + deadline_penalty
            + budget_penalty
        )


@dataclass
class SchedulingFailure:
    task: Task
    reason: str


@dataclass
class ScheduleResult:
    policy: str
    assignments: List[AssignmentResult] = field(default_factory=list)
    failures: List[SchedulingFailure] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    vm_load: Dict[int, float] = field(default_factory=dict)
    vm_task_count: Dict[int, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def by_task_id(self) -> Dict[int, AssignmentResult]:
        return {r.task.task_id: r for r in self.assignments}

    def raise_for_failures(self) -> None:
        if self.failures:
            ids = ", ".join(str(f.task.task_id) for f in self.failures)
            raise NoVMAvailableError(
                f"{self.policy}: {len(self.failures)} task(s) left unassigned ({ids})"
            )
