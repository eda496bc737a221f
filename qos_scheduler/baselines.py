from __future__ import annotations

import random
import time
from typing import List, Optional

from .event_logger import EventLogger, NoopEventLogger
from .models import Task, VM, AssignmentResult, ScheduleResult
from .scheduler import NO_VM_AVAILABLE, SchedulingSession


class _BaselineScheduler:
    policy_name = "baseline"
    name = "Baseline"
    description = ""

    def __init__(self, logger: EventLogger | None = None):
        self.logger = logger or NoopEventLogger()

    def _log_assign(self, result: AssignmentResult) -> None:
        self.logger.log(
            "assign",
            policy=self.policy_name,
            task_id=result.task.task_id,
            vm_id=result.vm.vm_id,
            start_time=result.start_time,
            finish_time=result.finish_time,
            cost=result.cost,
            qos_satisfied=result.qos_satisfied,
        )

    def _start(self, tasks: List[Task], vms: List[VM]) -> SchedulingSession:
        session = SchedulingSession.start(tasks, vms)
        if not session.vms:
            for task in session.tasks:
                session.fail(task, NO_VM_AVAILABLE)
                self.logger.log(
                    "unassigned",
                    policy=self.policy_name,
                    task_id=task.task_id,
                    reason=NO_VM_AVAILABLE,
                )
        return session

    def _finish(self, session: SchedulingSession) -> ScheduleResult:
        self.logger.log(
            "schedule_done",
            policy=self.policy_name,
            tasks_scheduled=session.stats.tasks_scheduled,
            qos_satisfied=session.stats.qos_satisfied,
            deadlines_met=session.stats.deadlines_met,
            budgets_met=session.stats.budgets_met,
        )
        return session.result(self.policy_name)


class FCFSScheduler(_BaselineScheduler):
    policy_name = "fcfs"
    name = "First Come First Serve (FCFS)"
    description = (
        "Assigns tasks in input order with round-robin VM selection; "
        "ignores load and QoS constraints."
    )

    def schedule(self, tasks: List[Task], vms: List[VM]) -> ScheduleResult:
        session = self._start(tasks, vms)
        if session.vms:
            for i, task in enumerate(session.tasks):
                self._log_assign(session.assign(task, i % len(session.vms)))
        return self._finish(session)


class RandomScheduler(_BaselineScheduler):
    policy_name = "random"
    name = "Random Scheduling"
    description = (
        "Assigns each task to a uniformly random VM; "
        "ignores load and QoS constraints."
    )

    def __init__(self, seed: Optional[int] = None, logger: EventLogger | None = None):
        super().__init__(logger=logger)
        # drawn once so repeated schedule() calls still agree with each other
        self.seed = seed if seed is not None else int(time.time() * 1000)
        self.rng = random.Random(self.seed)

    def schedule(self, tasks: List[Task], vms: List[VM]) -> ScheduleResult:
        session = self._start(tasks, vms)
        self.rng = random.Random(self.seed)
        if session.vms:
            for task in session.tasks:
                vm_index = self.rng.randrange(len(session.vms))
                self._log_assign(session.assign(task, vm_index))
        return self._finish(session)


class MinMinScheduler(_BaselineScheduler):
    policy_name = "minmin"
    name = "Min-Min Scheduling"
    description = (
        "Repeatedly commits the unscheduled (task, VM) pair with the smallest "
        "completion time."
    )

    def schedule(self, tasks: List[Task], vms: List[VM]) -> ScheduleResult:
        session = self._start(tasks, vms)
        if not session.vms:
            return self._finish(session)

        unscheduled = list(session.tasks)
        while unscheduled:
            best_pos = -1
            best_vm = -1
            min_completion = float("inf")
            for pos, task in enumerate(unscheduled):
                for v, vm in enumerate(session.vms):
                    completion = session.load[v] + vm.total_time(task.length_mi)
                    if best_pos < 0 or completion < min_completion:
                        min_completion = completion
                        best_pos = pos
                        best_vm = v

            self._log_assign(session.assign(unscheduled.pop(best_pos), best_vm))
        return self._finish(session)
