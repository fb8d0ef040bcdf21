"""Executors, configuration, value types and errors."""

from .config import ParallelConfig, WorkDistribution, create_work_chunks
from .errors import (
    OpenFVMError, TopologyError, FieldRangeError, ShapeMismatchError,
    ExecutorMismatchError, ResidencyError, StaleGeometryError, FieldAllocationError
)
from .executor import (
    Executor, SerialExecutor, CPUExecutor, GPUExecutor, MemorySpace,
    all_executors, parallel_for, parallel_reduce, memory_space, same_memory_space
)
from .primitives import scalar, label, vector, VSMALL, ROOT_VSMALL

__all__ = [
    'ParallelConfig',
    'WorkDistribution',
    'create_work_chunks',
    'OpenFVMError',
    'TopologyError',
    'FieldRangeError',
    'ShapeMismatchError',
    'ExecutorMismatchError',
    'ResidencyError',
    'StaleGeometryError',
    'FieldAllocationError',
    'Executor',
    'SerialExecutor',
    'CPUExecutor',
    'GPUExecutor',
    'MemorySpace',
    'all_executors',
    'parallel_for',
    'parallel_reduce',
    'memory_space',
    'same_memory_space',
    'scalar',
    'label',
    'vector',
    'VSMALL',
    'ROOT_VSMALL',
]
