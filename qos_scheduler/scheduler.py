from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol

from .event_logger import EventLogger, NoopEventLogger
from .exceptions import EmptyBatchError, InvalidConfigurationError, UnknownPolicyError
from .models import Task, VM, AssignmentResult, SchedulingFailure, ScheduleResult
from .profiling import NO_VM, ProfilingEngine

NO_VM_AVAILABLE = "no_vm_available"


class Phase(str, Enum):
    READY = "ready"
    PROFILED = "profiled"
    ORDERED = "ordered"
    ASSIGNING = "assigning"
    DONE = "done"


@dataclass
class SchedulerConfig:
    alpha: float = 0.5
    beta: float = 0.5
    enable_deadline_constraint: bool = True
    enable_budget_constraint: bool = True
    seed: Optional[int] = None

    def validate(self) -> None:
        for name in ("alpha", "beta"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise InvalidConfigurationError(f"{name} must be within [0, 1], got {value}")


@dataclass
class SchedulerStats:
    tasks_scheduled: int = 0
    qos_satisfied: int = 0
    deadlines_met: int = 0
    budgets_met: int = 0

    def record(self, result: AssignmentResult) -> None:
        self.tasks_scheduled += 1
        if result.qos_satisfied:
            self.qos_satisfied += 1
        if result.deadline_satisfied:
            self.deadlines_met += 1
        if result.budget_satisfied:
            self.budgets_met += 1

    @property
    def deadline_miss_rate(self) -> float:
        if not self.tasks_scheduled:
            return 0.0
        return (self.tasks_scheduled - self.deadlines_met) * 100.0 / self.tasks_scheduled


@dataclass
class SchedulingSession:
    """Mutable state of one schedule() call, indexed by VM position."""

    tasks: List[Task]
    vms: List[VM]
    load: List[float] = field(default_factory=list)
    task_count: List[int] = field(default_factory=list)
    stats: SchedulerStats = field(default_factory=SchedulerStats)
    assignments: List[AssignmentResult] = field(default_factory=list)
    failures: List[SchedulingFailure] = field(default_factory=list)

    @classmethod
    def start(cls, tasks: List[Task], vms: List[VM]) -> "SchedulingSession":
        tasks = copy.deepcopy(list(tasks))
        vms = copy.deepcopy(list(vms))
        return cls(tasks=tasks, vms=vms, load=[0.0] * len(vms), task_count=[0] * len(vms))

    def assign(self, task: Task, vm_index: int) -> AssignmentResult:
        """Commit a task to the VM at vm_index, starting when that VM is next free."""
        vm = self.vms[vm_index]
        result = AssignmentResult.build(task, vm, start_time=self.load[vm_index])
        self.load[vm_index] = result.finish_time
        self.task_count[vm_index] += 1
        task.record_assignment(result)
        self.stats.record(result)
        self.assignments.append(result)
        return result

    def fail(self, task: Task, reason: str) -> None:
        self.failures.append(SchedulingFailure(task=task, reason=reason))

    def result(self, policy: str) -> ScheduleResult:
        return ScheduleResult(
            policy=policy,
            assignments=list(self.assignments),
            failures=list(self.failures),
            tasks=self.tasks,
            vm_load={vm.vm_id: self.load[i] for i, vm in enumerate(self.vms)},
            vm_task_count={vm.vm_id: self.task_count[i] for i, vm in enumerate(self.vms)},
        )


class TaskScheduler(Protocol):
    policy_name: str
    name: str
    description: str

    def schedule(self, tasks: List[Task], vms: List[VM]) -> ScheduleResult:
        ...


class QoSAwareScheduler:
    policy_name = "qos"
    name = "QoS-Aware Multi-Objective Scheduler"

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        logger: EventLogger | None = None,
    ):
        self.config = config or SchedulerConfig()
        self.logger = logger or NoopEventLogger()
        self.profiling = ProfilingEngine()
        self.stats = SchedulerStats()
        self.phase = Phase.READY

    @property
    def description(self) -> str:
        return (
            "Greedy assignment by profiled QoS score with a load penalty, "
            f"score = alpha*time + beta*cost (alpha={self.config.alpha}, beta={self.config.beta})"
        )

    def _priority_order(self, tasks: List[Task]) -> List[int]:
        return sorted(
            range(len(tasks)),
            key=lambda i: (-tasks[i].priority, tasks[i].deadline_sec),
        )

    def _passes_constraints(self, task_index: int, vm_index: int) -> bool:
        if self.config.enable_deadline_constraint and not self.profiling.deadline_feasible[task_index, vm_index]:
            return False
        if self.config.enable_budget_constraint and not self.profiling.budget_feasible[task_index, vm_index]:
            return False
        return True

    def _pick_vm(self, session: SchedulingSession, task_index: int, respect_constraints: bool) -> int:
        best_vm = NO_VM
        best_score = float("inf")
        for v in range(len(session.vms)):
            if respect_constraints and not self._passes_constraints(task_index, v):
                continue
            combined = float(self.profiling.qos_score[task_index, v]) * (1.0 + session.load[v] / 100.0)
            if best_vm == NO_VM or combined < best_score:
                best_score = combined
                best_vm = v
        return best_vm

    def _log_task(self, event_type: str, task: Task, **extra: object) -> None:
        self.logger.log(
            event_type,
            policy=self.policy_name,
            task_id=task.task_id,
            length_mi=task.length_mi,
            deadline_sec=task.deadline_sec,
            budget=task.budget,
            priority=task.priority,
            **extra,
        )

    def schedule(self, tasks: List[Task], vms: List[VM]) -> ScheduleResult:
        session = SchedulingSession.start(tasks, vms)
        self.stats = session.stats
        self.phase = Phase.READY

        try:
            self.profiling.initialize(session.tasks, session.vms)
        except EmptyBatchError:
            for task in session.tasks:
                session.fail(task, NO_VM_AVAILABLE)
                self._log_task("unassigned", task, reason=NO_VM_AVAILABLE)
            self.phase = Phase.DONE
            return session.result(self.policy_name)

        self.profiling.profile_all()
        self.profiling.compute_qos_scores(self.config.alpha, self.config.beta)
        self.phase = Phase.PROFILED
        self.logger.log(
            "profile",
            policy=self.policy_name,
            tasks=len(session.tasks),
            vms=len(session.vms),
            alpha=self.config.alpha,
            beta=self.config.beta,
        )

        order = self._priority_order(session.tasks)
        self.phase = Phase.ORDERED
        self.logger.log(
            "order",
            policy=self.policy_name,
            phase=self.phase.value,
            task_ids=[session.tasks[i].task_id for i in order],
        )

        self.phase = Phase.ASSIGNING
        for task_index in order:
            task = session.tasks[task_index]
            vm_index = self._pick_vm(session, task_index, respect_constraints=True)
            if vm_index == NO_VM:
                self._log_task("relax", task)
                vm_index = self._pick_vm(session, task_index, respect_constraints=False)

            result = session.assign(task, vm_index)
            self._log_task(
                "assign",
                task,
                vm_id=result.vm.vm_id,
                start_time=result.start_time,
                finish_time=result.finish_time,
                cost=result.cost,
                qos_satisfied=result.qos_satisfied,
            )

        self.logger.log(
            "schedule_done",
            policy=self.policy_name,
            tasks_scheduled=session.stats.tasks_scheduled,
            qos_satisfied=session.stats.qos_satisfied,
            deadlines_met=session.stats.deadlines_met,
            budgets_met=session.stats.budgets_met,
        )
        self.phase = Phase.DONE
        return session.result(self.policy_name)


def build_scheduler(
    policy: str,
    config: SchedulerConfig | None = None,
    logger: EventLogger | None = None,
) -> TaskScheduler:
    from .baselines import FCFSScheduler, MinMinScheduler, RandomScheduler

    config = config or SchedulerConfig()
    if policy == "qos":
        return QoSAwareScheduler(config=config, logger=logger)
    if policy == "fcfs":
        return FCFSScheduler(logger=logger)
    if policy == "random":
        return RandomScheduler(seed=config.seed, logger=logger)
    if policy == "minmin":
        return MinMinScheduler(logger=logger)
    raise UnknownPolicyError(f"unknown scheduling policy: {policy!r}")


POLICIES = ("qos", "fcfs", "random", "minmin")
