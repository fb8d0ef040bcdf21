"""Shared fixtures: executors and small test meshes."""

import pytest

from meshes import make_distorted_box_mesh, make_two_tet_mesh
from openfvm.core import CPUExecutor, GPUExecutor, ParallelConfig, SerialExecutor

EXECUTORS = [
    SerialExecutor(),
    CPUExecutor(),
    CPUExecutor(ParallelConfig(num_threads=4, chunk_size=3)),
    GPUExecutor(),
]


def executor_id(executor):
    if isinstance(executor, CPUExecutor) and executor.config.chunk_size:
        return f"{executor.name}-chunk{executor.config.chunk_size}"
    return executor.name


@pytest.fixture(params=EXECUTORS, ids=executor_id)
def executor(request):
    """Every executor variant, plus a CPU executor forced into small chunks."""
    return request.param


@pytest.fixture
def two_tet_mesh(executor):
    return make_two_tet_mesh(executor)


@pytest.fixture
def distorted_mesh(executor):
    return make_distorted_box_mesh(executor)
