"""
OpenFVM - Backend-portable unstructured finite-volume meshes.

Mesh data model and geometry engine producing cell volumes and centroids,
face centroids and area vectors, interpolation weights and delta
coefficients on serial, host-parallel or accelerator executors.
"""

__version__ = "0.1.0"

from openfvm.core import (
    SerialExecutor, CPUExecutor, GPUExecutor, ParallelConfig, WorkDistribution,
    parallel_for, scalar, label, vector,
    OpenFVMError, TopologyError, FieldRangeError, ShapeMismatchError,
    ExecutorMismatchError, ResidencyError, StaleGeometryError, FieldAllocationError
)
from openfvm.fields import Field, SurfaceField, VolumeField, Database, FieldCollection, FieldDocument
from openfvm.mesh import (
    UnstructuredMesh, BoundaryMesh, GeometryScheme, GeometryState,
    BasicGeometryScheme, GeometrySchemeKernel,
    create_box_mesh, create_single_cell_mesh, create_1d_uniform_mesh,
    compute_quality_summary
)

__all__ = [
    "SerialExecutor", "CPUExecutor", "GPUExecutor", "ParallelConfig", "WorkDistribution",
    "parallel_for", "scalar", "label", "vector",
    "OpenFVMError", "TopologyError", "FieldRangeError", "ShapeMismatchError",
    "ExecutorMismatchError", "ResidencyError", "StaleGeometryError", "FieldAllocationError",
    "Field", "SurfaceField", "VolumeField", "Database", "FieldCollection", "FieldDocument",
    "UnstructuredMesh", "BoundaryMesh", "GeometryScheme", "GeometryState",
    "BasicGeometryScheme", "GeometrySchemeKernel",
    "create_box_mesh", "create_single_cell_mesh", "create_1d_uniform_mesh",
    "compute_quality_summary",
]
