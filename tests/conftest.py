import pytest

from qos_scheduler.models import Task, VM


@pytest.fixture
def three_tasks_one_vm():
    """Three growing tasks with a 1s deadline on a single 1000 MIPS VM"""
    tasks = [
        Task(task_id=i + 1, length_mi=length, deadline_sec=1.0, budget=10.0, priority=5)
        for i, length in enumerate([1000.0, 2000.0, 3000.0])
    ]
    vms = [VM(vm_id=1, mips=1000.0, cost_per_second=0.1, network_latency_sec=0.0)]
    return tasks, vms


@pytest.fixture
def fast_and_cheap_vms():
    """A fast, expensive VM and a slow, cheap one"""
    return [
        VM(vm_id=1, mips=2000.0, cost_per_second=1.0, network_latency_sec=0.0),
        VM(vm_id=2, mips=1000.0, cost_per_second=0.1, network_latency_sec=0.0),
    ]


@pytest.fixture
def mixed_batch():
    tasks = [
        Task(task_id=1, length_mi=4000.0, deadline_sec=5.0, budget=1.0, priority=3),
        Task(task_id=2, length_mi=1000.0, deadline_sec=2.0, budget=0.5, priority=8),
        Task(task_id=3, length_mi=2500.0, deadline_sec=1.0, budget=0.05, priority=5),
        Task(task_id=4, length_mi=6000.0, deadline_sec=10.0, budget=2.0, priority=8),
        Task(task_id=5, length_mi=1500.0, deadline_sec=3.0, budget=0.3, priority=1),
        Task(task_id=6, length_mi=3000.0, deadline_sec=4.0, budget=0.8, priority=10),
        Task(task_id=7, length_mi=500.0, deadline_sec=0.5, budget=0.2, priority=5),
    ]
    vms = [
        VM(vm_id=1, mips=1000.0, cost_per_second=0.05, network_latency_sec=0.1),
        VM(vm_id=2, mips=2000.0, cost_per_second=0.08, network_latency_sec=0.08),
        VM(vm_id=3, mips=3000.0, cost_per_second=0.12, network_latency_sec=0.05),
    ]
    return tasks, vms
