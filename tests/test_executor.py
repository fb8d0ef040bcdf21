"""Tests for executors and parallel_for dispatch."""

import threading

import numpy as np
import pytest

from openfvm.core import (
    CPUExecutor, GPUExecutor, MemorySpace, ParallelConfig, SerialExecutor,
    all_executors, memory_space, parallel_for, parallel_reduce, same_memory_space
)


def test_executor_names():
    assert SerialExecutor().name == "SerialExecutor"
    assert CPUExecutor().name == "CPUExecutor"
    assert GPUExecutor().name == "GPUExecutor"
    assert str(GPUExecutor()) == "GPUExecutor"


def test_equality_by_tag():
    assert SerialExecutor() == SerialExecutor()
    assert CPUExecutor(ParallelConfig(num_threads=2)) == CPUExecutor()
    assert SerialExecutor() != CPUExecutor()
    assert CPUExecutor() != GPUExecutor()


def test_all_executors():
    assert [e.name for e in all_executors()] == ["SerialExecutor", "CPUExecutor", "GPUExecutor"]


def test_memory_spaces():
    assert memory_space(SerialExecutor()) is MemorySpace.HOST
    assert memory_space(CPUExecutor()) is MemorySpace.HOST
    assert memory_space(GPUExecutor()) is MemorySpace.DEVICE
    assert same_memory_space(SerialExecutor(), CPUExecutor())
    assert not same_memory_space(SerialExecutor(), GPUExecutor())


def test_per_variant_functions_cover_executor_types():
    for dispatcher in (parallel_for, memory_space):
        variants = set(dispatcher.registry) - {object}
        assert variants == {SerialExecutor, CPUExecutor, GPUExecutor}
    with pytest.raises(TypeError):
        memory_space("not an executor")


def test_unsupported_executor():
    with pytest.raises(TypeError):
        parallel_for("not an executor", 4, lambda start, stop: None)


def test_parallel_for_covers_range(executor):
    hits = np.zeros(103, dtype=np.int64)

    def kernel(start, stop):
        hits[start:stop] += 1

    parallel_for(executor, len(hits), kernel)
    assert np.all(hits == 1)


def test_parallel_for_empty_range(executor):
    calls = []
    parallel_for(executor, 0, lambda start, stop: calls.append((start, stop)))
    assert calls == []


def test_negative_size_rejected(executor):
    with pytest.raises(ValueError):
        parallel_for(executor, -1, lambda start, stop: None)


def test_cpu_executor_uses_chunks():
    ranges = []
    lock = threading.Lock()

    def kernel(start, stop):
        with lock:
            ranges.append((start, stop))

    parallel_for(CPUExecutor(ParallelConfig(num_threads=3, chunk_size=4)), 10, kernel)
    assert sorted(ranges) == [(0, 4), (4, 8), (8, 10)]


def test_cpu_serial_threshold():
    ranges = []
    config = ParallelConfig(num_threads=4, chunk_size=2, serial_threshold=100)
    parallel_for(CPUExecutor(config), 10, lambda start, stop: ranges.append((start, stop)))
    assert ranges == [(0, 10)]


def test_cpu_threads_reused_across_launches():
    executor = CPUExecutor(ParallelConfig(num_threads=2, chunk_size=1))
    workers = set()
    lock = threading.Lock()

    def kernel(start, stop):
        with lock:
            workers.add(threading.current_thread())

    for _ in range(5):
        parallel_for(executor, 8, kernel)
    assert 1 <= len(workers) <= 2
    assert threading.current_thread() not in workers


def test_gpu_launches_share_device_queue():
    queues = []
    for _ in range(3):
        parallel_for(GPUExecutor(), 4, lambda start, stop: queues.append(threading.current_thread()))
    assert all(queue is queues[0] for queue in queues)
    assert queues[0].name.startswith("device-queue")


def test_gpu_single_launch():
    ranges = []
    parallel_for(GPUExecutor(), 50, lambda start, stop: ranges.append((start, stop)))
    assert ranges == [(0, 50)]


def test_kernel_errors_propagate(executor):
    def kernel(start, stop):
        raise RuntimeError("kernel failed")

    with pytest.raises(RuntimeError, match="kernel failed"):
        parallel_for(executor, 20, kernel)


def test_parallel_reduce_sum(executor):
    values = np.arange(1000, dtype=np.int64)
    total = parallel_reduce(
        executor, len(values),
        lambda start, stop: int(values[start:stop].sum()),
        lambda a, b: a + b, 0
    )
    assert total == 499500


def test_parallel_reduce_in_chunk_order():
    config = ParallelConfig(num_threads=4, chunk_size=2)
    pieces = parallel_reduce(
        CPUExecutor(config), 7,
        lambda start, stop: [(start, stop)],
        lambda a, b: a + b, []
    )
    assert pieces == [(0, 2), (2, 4), (4, 6), (6, 7)]
