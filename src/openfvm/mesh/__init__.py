"""Unstructured mesh, boundary mesh and geometry computation."""

from .connectivity import Connectivity, build_connectivity
from .boundary import BoundaryMesh
from .unstructured_mesh import UnstructuredMesh
from .geometry import BasicGeometryScheme, GeometrySchemeKernel, MeshTopology, PrimaryGeometry
from .geometry_scheme import GeometryScheme, GeometryState
from .generation import create_box_mesh, create_single_cell_mesh, create_1d_uniform_mesh
from .quality import compute_non_orthogonality, compute_quality_summary

__all__ = [
    'Connectivity',
    'build_connectivity',
    'BoundaryMesh',
    'UnstructuredMesh',
    'BasicGeometryScheme',
    'GeometrySchemeKernel',
    'MeshTopology',
    'PrimaryGeometry',
    'GeometryScheme',
    'GeometryState',
    'create_box_mesh',
    'create_single_cell_mesh',
    'create_1d_uniform_mesh',
    'compute_non_orthogonality',
    'compute_quality_summary',
]
