"""
Executors: Where Parallel Kernels Run

A closed set of backend tags selecting where data-parallel work executes:
- SerialExecutor: the calling thread
- CPUExecutor: a pool of host threads working on chunks of the index range
- GPUExecutor: a device queue owning its own memory space

The generic ``parallel_for`` primitive is defined exactly once per variant;
every other component dispatches its kernels through it and never branches
on executor identity itself.

A kernel is a callable ``kernel(start, stop)`` that processes the half-open
index range ``[start, stop)``. Kernels must only write to the slots of their
own range, which makes every result independent of how the range is split.
Worker threads are pooled per thread count and reused across launches, so a
kernel must not wait on another launch of the same executor.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache, singledispatch
from typing import Any, Callable, List, Union

from .config import ParallelConfig, create_work_chunks

logger = logging.getLogger(__name__)

Kernel = Callable[[int, int], Any]


class MemorySpace(Enum):
    """Memory space a Field buffer lives in."""
    HOST = "host"
    DEVICE = "device"


@dataclass(frozen=True)
class SerialExecutor:
    """Runs kernels on the calling thread."""

    @property
    def name(self) -> str:
        return "SerialExecutor"

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class CPUExecutor:
    """Runs kernels on a pool of host threads.

    The parallel configuration tunes the dispatch only; two CPU executors
    compare equal regardless of it.
    """

    config: ParallelConfig = field(default_factory=ParallelConfig, compare=False)

    @property
    def name(self) -> str:
        return "CPUExecutor"

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class GPUExecutor:
    """Runs kernels as single launches on a device queue with its own memory space."""

    @property
    def name(self) -> str:
        return "GPUExecutor"

    def __str__(self) -> str:
        return self.name


Executor = Union[SerialExecutor, CPUExecutor, GPUExecutor]

EXECUTOR_TYPES = (SerialExecutor, CPUExecutor, GPUExecutor)


def all_executors() -> List[Executor]:
    """One default-configured instance of every executor variant."""
    return [SerialExecutor(), CPUExecutor(), GPUExecutor()]


@lru_cache(maxsize=None)
def _host_pool(thread_count: int) -> ThreadPoolExecutor:
    """Worker pool shared by all CPU executors running ``thread_count`` threads."""
    logger.debug(f"Starting host pool with {thread_count} threads")
    return ThreadPoolExecutor(max_workers=thread_count, thread_name_prefix=f"host-{thread_count}")


@lru_cache(maxsize=None)
def _device_queue() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix="device-queue")


def _check_size(size: int) -> None:
    if size < 0:
        raise ValueError(f"Kernel range size must be non-negative, got {size}")


@singledispatch
def parallel_for(executor, size: int, kernel: Kernel) -> None:
    """Run ``kernel`` over ``range(size)`` on ``executor`` and wait for completion."""
    raise TypeError(f"Unsupported executor: {executor!r}")


@parallel_for.register
def _(executor: SerialExecutor, size: int, kernel: Kernel) -> None:
    _check_size(size)
    if size > 0:
        kernel(0, size)


@parallel_for.register
def _(executor: CPUExecutor, size: int, kernel: Kernel) -> None:
    _check_size(size)
    if size == 0:
        return

    config = executor.config
    chunks = create_work_chunks(size, config)
    if size < config.serial_threshold or len(chunks) <= 1:
        kernel(0, size)
        return

    pool = _host_pool(config.thread_count)
    logger.debug(f"Dispatching {len(chunks)} chunks of {size} items on {config.thread_count} threads")

    futures = [pool.submit(kernel, start, stop) for start, stop in chunks]
    wait(futures)

    # Re-raise the first kernel failure in the caller
    for future in futures:
        future.result()


@parallel_for.register
def _(executor: GPUExecutor, size: int, kernel: Kernel) -> None:
    _check_size(size)
    if size == 0:
        return

    # One launch over the full range; block until the queue drains
    _device_queue().submit(kernel, 0, size).result()


def parallel_reduce(executor: Executor, size: int, kernel: Callable[[int, int], Any],
                    combine: Callable[[Any, Any], Any], initial: Any) -> Any:
    """Reduce over ``range(size)``.

    ``kernel(start, stop)`` returns the partial result of its range. Partials
    are combined in range order, so the result does not depend on thread
    scheduling.
    """
    partials = {}

    def _partial(start: int, stop: int) -> None:
        partials[start] = kernel(start, stop)

    parallel_for(executor, size, _partial)

    result = initial
    for start in sorted(partials):
        result = combine(result, partials[start])
    return result


@singledispatch
def memory_space(executor) -> MemorySpace:
    """Memory space in which buffers of ``executor`` are allocated.

    Besides ``parallel_for`` this is the only function defined per executor
    variant. Components consult it, through ``same_memory_space``, solely to
    decide whether a buffer must be copied before a kernel on another
    executor may read it.
    """
    raise TypeError(f"Unsupported executor: {executor!r}")


@memory_space.register
def _(executor: SerialExecutor) -> MemorySpace:
    return MemorySpace.HOST


@memory_space.register
def _(executor: CPUExecutor) -> MemorySpace:
    return MemorySpace.HOST


@memory_space.register
def _(executor: GPUExecutor) -> MemorySpace:
    return MemorySpace.DEVICE


def same_memory_space(a: Executor, b: Executor) -> bool:
    """Whether buffers of ``a`` can be used directly by kernels on ``b``."""
    return memory_space(a) == memory_space(b)
