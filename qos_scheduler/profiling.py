"""
profiling.py

Per-batch task/VM profiling: execution time, total time, cost and QoS score
matrices of shape (n_tasks, n_vms), plus deadline/budget feasibility masks.

Usage:
    engine = ProfilingEngine()
    engine.initialize(tasks, vms)
    engine.profile_all()
    engine.compute_qos_scores(alpha=0.5, beta=0.5)
    best = engine.find_best_vm(0, require_feasible=True)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .exceptions import EmptyBatchError
from .models import Task, VM

NO_VM = -1
VIOLATION_PENALTY = 10.0


@dataclass
class VMProfile:
    vm_index: int
    vm_id: int
    execution_time: float
    total_time: float
    cost: float
    qos_score: float
    deadline_feasible: bool
    budget_feasible: bool

    @property
    def feasible(self) -> bool:
        return self.deadline_feasible and self.budget_feasible


@dataclass
class TaskProfile:
    task: Task
    vm_profiles: List[VMProfile] = field(default_factory=list)


class ProfilingEngine:
    def __init__(self) -> None:
        self.tasks: List[Task] = []
        self.vms: List[VM] = []
        self.exec_time: Optional[np.ndarray] = None
        self.total_time: Optional[np.ndarray] = None
        self.exec_cost: Optional[np.ndarray] = None
        self.qos_score: Optional[np.ndarray] = None
        self.deadline_feasible: Optional[np.ndarray] = None
        self.budget_feasible: Optional[np.ndarray] = None

    @property
    def shape(self) -> tuple[int, int]:
        return len(self.tasks), len(self.vms)

    def initialize(self, tasks: List[Task], vms: List[VM]) -> None:
        """Allocate zeroed matrices for the batch.

        Raises EmptyBatchError (and leaves every matrix unset) when either
        list is empty.
        """
        self.tasks = []
        self.vms = []
        self.exec_time = self.total_time = self.exec_cost = self.qos_score = None
        self.deadline_feasible = self.budget_feasible = None
        if not tasks or not vms:
            raise EmptyBatchError(
                f"cannot profile {len(tasks)} task(s) against {len(vms)} VM(s)"
            )

        self.tasks = list(tasks)
        self.vms = list(vms)
        shape = self.shape
        self.exec_time = np.zeros(shape, dtype=float)
        self.total_time = np.zeros(shape, dtype=float)
        self.exec_cost = np.zeros(shape, dtype=float)
        self.qos_score = np.zeros(shape, dtype=float)
        self.deadline_feasible = np.zeros(shape, dtype=bool)
        self.budget_feasible = np.zeros(shape, dtype=bool)

    def _require_initialized(self) -> None:
        if self.exec_time is None:
            raise EmptyBatchError("profiling engine has no batch; call initialize() first")

    def profile_all(self) -> None:
        """Fill the raw matrices for every (task, vm) pair.

        Each cell depends only on its own pair, so the whole fill is one
        broadcast over (n_tasks, 1) x (1, n_vms).
        """
        self._require_initialized()
        lengths = np.array([t.length_mi for t in self.tasks], dtype=float)[:, None]
        deadlines = np.array([t.deadline_sec for t in self.tasks], dtype=float)[:, None]
        budgets = np.array([t.budget for t in self.tasks], dtype=float)[:, None]
        mips = np.array([v.mips for v in self.vms], dtype=float)[None, :]
        latency = np.array([v.network_latency_sec for v in self.vms], dtype=float)[None, :]
        cost_rate = np.array([v.cost_per_second for v in self.vms], dtype=float)[None, :]

        self.exec_time[:, :] = lengths / mips
        self.total_time[:, :] = self.exec_time + latency
        self.exec_cost[:, :] = self.exec_time * cost_rate
        self.deadline_feasible[:, :] = self.total_time <= deadlines
        self.budget_feasible[:, :] = self.exec_cost <= budgets

    def compute_qos_scores(self, alpha: float, beta: float) -> None:
        """Score every cell; lower is better.

        Time and cost are normalized by the matrix-wide maxima (a zero
        maximum is replaced by 1). Deadline and budget violations each add
        ``(actual - limit) / limit * 10``. The row is then scaled by
        ``(11 - priority) / 10`` so high-priority tasks score lower.
        Must run after profile_all().
        """
        self._require_initialized()
        max_time = float(self.total_time.max())
        max_cost = float(self.exec_cost.max())
        max_time = max_time if max_time > 0 else 1.0
        max_cost = max_cost if max_cost > 0 else 1.0

        deadlines = np.array([t.deadline_sec for t in self.tasks], dtype=float)[:, None]
        budgets = np.array([t.budget for t in self.tasks], dtype=float)[:, None]
        priorities = np.array([t.priority for t in self.tasks], dtype=float)[:, None]

        score = alpha * (self.total_time / max_time) + beta * (self.exec_cost / max_cost)
        with np.errstate(divide="ignore", invalid="ignore"):
            deadline_violation = (self.total_time - deadlines) / deadlines
            budget_violation = (self.exec_cost - budgets) / budgets
        score = score + np.where(self.deadline_feasible, 0.0, deadline_violation * VIOLATION_PENALTY)
        score = score + np.where(self.budget_feasible, 0.0, budget_violation * VIOLATION_PENALTY)
        score = score * ((11 - priorities) / 10.0)
        self.qos_score[:, :] = score

    def is_feasible(self, task_index: int, vm_index: int) -> bool:
        return bool(
            self.deadline_feasible[task_index, vm_index]
            and self.budget_feasible[task_index, vm_index]
        )

    def find_best_vm(self, task_index: int, require_feasible: bool = False) -> int:
        """Index of the lowest-scoring VM for a task, or NO_VM.

        Ties go to the VM seen first.
        """
        self._require_initialized()
        best_vm = NO_VM
        best_score = float("inf")
        for v in range(len(self.vms)):
            if require_feasible and not self.is_feasible(task_index, v):
                continue
            score = float(self.qos_score[task_index, v])
            if best_vm == NO_VM or score < best_score:
                best_score = score
                best_vm = v
        return best_vm

    def find_feasible_vms(self, task_index: int) -> List[int]:
        self._require_initialized()
        mask = self.deadline_feasible[task_index] & self.budget_feasible[task_index]
        return [int(v) for v in np.flatnonzero(mask)]

    def task_profile(self, task_index: int) -> TaskProfile:
        self._require_initialized()
        profile = TaskProfile(task=self.tasks[task_index])
        for v, vm in enumerate(self.vms):
            profile.vm_profiles.append(
                VMProfile(
                    vm_index=v,
                    vm_id=vm.vm_id,
                    execution_time=float(self.exec_time[task_index, v]),
                    total_time=float(self.total_time[task_index, v]),
                    cost=float(self.exec_cost[task_index, v]),
                    qos_score=float(self.qos_score[task_index, v]),
                    deadline_feasible=bool(self.deadline_feasible[task_index, v]),
                    budget_feasible=bool(self.budget_feasible[task_index, v]),
                )
            )
        return profile

    def format_matrix(self, name: str, precision: int = 4) -> str:
        """Text table of one matrix (``exec_time``, ``total_time``, ``exec_cost`` or ``qos_score``)."""
        self._require_initialized()
        matrix = getattr(self, name)
        header = "          " + "".join(f"VM{vm.vm_id:<8}" for vm in self.vms)
        lines = [header]
        for t, task in enumerate(self.tasks):
            cells = "".join(f"{matrix[t, v]:.{precision}f}  " for v in range(len(self.vms)))
            lines.append(f"Task {task.task_id:<4} {cells}")
        return "\n".join(lines)
