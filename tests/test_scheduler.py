import pytest

from qos_scheduler.baselines import FCFSScheduler, MinMinScheduler, RandomScheduler
from qos_scheduler.event_logger import MemoryEventLogger
from qos_scheduler.exceptions import InvalidConfigurationError, NoVMAvailableError, UnknownPolicyError
from qos_scheduler.models import Task, VM
from qos_scheduler.scheduler import (
    NO_VM_AVAILABLE,
    Phase,
    QoSAwareScheduler,
    SchedulerConfig,
    build_scheduler,
)


def _task(task_id, length=1000.0, deadline=100.0, budget=100.0, priority=5):
    return Task(task_id=task_id, length_mi=length, deadline_sec=deadline, budget=budget, priority=priority)


def test_scenario_single_vm(three_tasks_one_vm):
    tasks, vms = three_tasks_one_vm
    result = QoSAwareScheduler().schedule(tasks, vms)

    assert [r.task.task_id for r in result.assignments] == [1, 2, 3]
    assert [r.execution_time for r in result.assignments] == [1.0, 2.0, 3.0]
    assert [r.deadline_satisfied for r in result.assignments] == [True, False, False]
    # cumulative busy time on the only VM
    assert [r.start_time for r in result.assignments] == [0.0, 1.0, 3.0]
    assert [r.finish_time for r in result.assignments] == [1.0, 3.0, 6.0]
    assert result.vm_load == {1: 6.0}
    assert result.vm_task_count == {1: 3}


def test_time_weight_prefers_fastest_vm(fast_and_cheap_vms):
    result = QoSAwareScheduler(SchedulerConfig(alpha=1.0, beta=0.0)).schedule([_task(1)], fast_and_cheap_vms)

    assert result.assignments[0].vm.vm_id == 1


def test_cost_weight_prefers_cheapest_vm(fast_and_cheap_vms):
    result = QoSAwareScheduler(SchedulerConfig(alpha=0.0, beta=1.0)).schedule([_task(1)], fast_and_cheap_vms)

    assert result.assignments[0].vm.vm_id == 2


def test_priority_then_deadline_ordering():
    tasks = [
        _task(1, priority=2, deadline=50.0),
        _task(2, priority=9, deadline=80.0),
        _task(3, priority=9, deadline=20.0),
        _task(4, priority=5, deadline=10.0),
    ]
    vms = [VM(vm_id=1, mips=1000.0, cost_per_second=0.1)]

    logger = MemoryEventLogger()
    scheduler = QoSAwareScheduler(logger=logger)

    result = scheduler.schedule(tasks, vms)

    assert [r.task.task_id for r in result.assignments] == [3, 2, 4, 1]
    (order_event,) = logger.of_type("order")
    assert order_event["phase"] == Phase.ORDERED.value
    assert order_event["task_ids"] == [3, 2, 4, 1]
    assert logger.records.index(order_event) < logger.records.index(logger.of_type("assign")[0])


def test_load_penalty_spreads_identical_tasks():
    vms = [
        VM(vm_id=1, mips=1000.0, cost_per_second=0.1),
        VM(vm_id=2, mips=1000.0, cost_per_second=0.1),
    ]
    result = QoSAwareScheduler().schedule([_task(1), _task(2)], vms)

    assert [r.vm.vm_id for r in result.assignments] == [1, 2]
    assert all(r.start_time == 0.0 for r in result.assignments)


def test_relaxation_assigns_infeasible_task(fast_and_cheap_vms):
    logger = MemoryEventLogger()
    task = _task(1, deadline=0.01, budget=0.001)

    result = QoSAwareScheduler(logger=logger).schedule([task], fast_and_cheap_vms)

    assert len(result.assignments) == 1
    assert result.assignments[0].qos_satisfied is False
    assert [e["task_id"] for e in logger.of_type("relax")] == [1]


@pytest.mark.parametrize(
    "deadline_on, budget_on, expected_vm",
    [
        (True, False, 1),   # only the fast VM meets the deadline
        (False, True, 2),   # only the cheap VM meets the budget
    ],
)
def test_constraint_toggles(fast_and_cheap_vms, deadline_on, budget_on, expected_vm):
    # fast VM: 0.5s / 0.5 cost; cheap VM: 1.0s / 0.1 cost
    task = _task(1, deadline=0.6, budget=0.2)
    config = SchedulerConfig(enable_deadline_constraint=deadline_on, enable_budget_constraint=budget_on)

    result = QoSAwareScheduler(config).schedule([task], fast_and_cheap_vms)

    assert result.assignments[0].vm.vm_id == expected_vm


def test_empty_vm_list_reports_failures():
    scheduler = QoSAwareScheduler()
    result = scheduler.schedule([_task(1), _task(2)], [])

    assert result.assignments == []
    assert [f.task.task_id for f in result.failures] == [1, 2]
    assert all(f.reason == NO_VM_AVAILABLE for f in result.failures)
    assert scheduler.phase == Phase.DONE
    with pytest.raises(NoVMAvailableError):
        result.raise_for_failures()


def test_inputs_are_not_mutated(mixed_batch):
    tasks, vms = mixed_batch
    result = QoSAwareScheduler().schedule(tasks, vms)

    assert all(t.assigned_vm_id is None for t in tasks)
    assert all(t.assigned_vm_id is not None for t in result.tasks)
    for r in result.assignments:
        assert r.task.estimated_time == r.total_time
        assert r.task.estimated_cost == r.cost
        assert r.task.deadline_met == r.deadline_satisfied
        assert r.task.budget_met == r.budget_satisfied


def test_repeated_schedule_resets_state(mixed_batch):
    tasks, vms = mixed_batch
    scheduler = QoSAwareScheduler()

    first = scheduler.schedule(tasks, vms)
    second = scheduler.schedule(tasks, vms)

    def key(result):
        return [(r.task.task_id, r.vm.vm_id, r.start_time, r.finish_time) for r in result.assignments]

    assert key(first) == key(second)
    assert scheduler.stats.tasks_scheduled == len(tasks)
    assert scheduler.phase == Phase.DONE


def test_statistics(three_tasks_one_vm):
    tasks, vms = three_tasks_one_vm
    scheduler = QoSAwareScheduler()
    scheduler.schedule(tasks, vms)

    assert scheduler.stats.tasks_scheduled == 3
    assert scheduler.stats.deadlines_met == 1
    assert scheduler.stats.budgets_met == 3
    assert scheduler.stats.qos_satisfied == 1
    assert scheduler.stats.deadline_miss_rate == pytest.approx(200.0 / 3)


def test_events_are_logged(mixed_batch):
    tasks, vms = mixed_batch
    logger = MemoryEventLogger()
    QoSAwareScheduler(logger=logger).schedule(tasks, vms)

    assert len(logger.of_type("profile")) == 1
    assert len(logger.of_type("assign")) == len(tasks)
    assert logger.records[-1]["event"] == "schedule_done"


def test_config_validation():
    SchedulerConfig(alpha=0.0, beta=1.0).validate()
    with pytest.raises(InvalidConfigurationError):
        SchedulerConfig(alpha=1.5).validate()
    with pytest.raises(InvalidConfigurationError):
        SchedulerConfig(beta=-0.1).validate()


def test_build_scheduler():
    config = SchedulerConfig(seed=3)

    assert isinstance(build_scheduler("qos", config), QoSAwareScheduler)
    assert isinstance(build_scheduler("fcfs", config), FCFSScheduler)
    assert isinstance(build_scheduler("minmin", config), MinMinScheduler)
    random_scheduler = build_scheduler("random", config)
    assert isinstance(random_scheduler, RandomScheduler)
    assert random_scheduler.seed == 3
    with pytest.raises(UnknownPolicyError):
        build_scheduler("round_robin", config)
