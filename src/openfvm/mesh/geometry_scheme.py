"""
Geometry Scheme: Lifecycle of Derived Mesh Geometry

A GeometryScheme pairs a mesh with one geometry algorithm and one executor.
It tracks whether the derived quantities match the current mesh points:
- STALE until the first ``update()`` and again after every point motion
- CURRENT after ``update()`` until the points move

``update()`` recomputes everything, writes primary and boundary geometry back
to the mesh and keeps the face fields (weights, delta coefficients and the
non-orthogonal variants) on the scheme.
"""

import logging
from enum import Enum
from typing import Optional

import numpy as np

from ..core.errors import StaleGeometryError
from ..core.executor import Executor, same_memory_space
from ..core.primitives import scalar, vector
from ..fields.domain_field import SurfaceField
from ..fields.field import Field
from .geometry import BasicGeometryScheme, GeometrySchemeKernel, MeshTopology
from .unstructured_mesh import UnstructuredMesh

logger = logging.getLogger(__name__)


class GeometryState(Enum):
    """Whether derived geometry reflects the current mesh points."""
    STALE = "stale"
    CURRENT = "current"


class GeometryScheme:
    """
    Derived-geometry container for an UnstructuredMesh.

    Args:
        mesh: Mesh whose geometry is derived; it must outlive the scheme
        kernel: Geometry algorithm (defaults to BasicGeometryScheme)
        executor: Executor running the kernels (defaults to the mesh's)
    """

    def __init__(self,
                 mesh: UnstructuredMesh,
                 kernel: Optional[GeometrySchemeKernel] = None,
                 executor: Optional[Executor] = None):
        self._mesh = mesh
        self._kernel = kernel if kernel is not None else BasicGeometryScheme()
        self._executor = executor if executor is not None else mesh.executor

        if not isinstance(self._kernel, GeometrySchemeKernel):
            raise TypeError(f"kernel must be a GeometrySchemeKernel, got {type(self._kernel).__name__}")

        self._revision: Optional[int] = None
        self._weights: Optional[SurfaceField] = None
        self._delta_coeffs: Optional[SurfaceField] = None
        self._non_orth_delta_coeffs: Optional[SurfaceField] = None
        self._non_orth_correction_vectors: Optional[SurfaceField] = None

        logger.debug(f"GeometryScheme created with {self._kernel.name} on {self._executor}")

    # Properties

    @property
    def mesh(self) -> UnstructuredMesh:
        return self._mesh

    @property
    def kernel(self) -> GeometrySchemeKernel:
        return self._kernel

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def state(self) -> GeometryState:
        if self._revision is not None and self._revision == self._mesh.points_revision:
            return GeometryState.CURRENT
        return GeometryState.STALE

    @property
    def is_current(self) -> bool:
        return self.state is GeometryState.CURRENT

    # Update

    def _resident(self, array: np.ndarray) -> np.ndarray:
        """``array`` as seen from the scheme's memory space."""
        if same_memory_space(self._mesh.executor, self._executor):
            return array
        return Field.from_array(self._executor, array).device_view()

    def _topology(self) -> MeshTopology:
        mesh = self._mesh
        conn = mesh.connectivity
        return MeshTopology(
            n_cells=mesh.n_cells,
            n_faces=mesh.n_faces,
            n_internal_faces=mesh.n_internal_faces,
            points=self._resident(mesh.points.device_view()),
            owner=self._resident(mesh.face_owner.device_view()),
            neighbour=self._resident(mesh.face_neighbour.device_view()),
            face_point_offsets=self._resident(conn.face_point_offsets),
            face_points=self._resident(conn.face_points),
            face_next_points=self._resident(conn.face_next_points),
            cell_face_offsets=self._resident(conn.cell_face_offsets),
            cell_faces=self._resident(conn.cell_faces),
            cell_face_signs=self._resident(conn.cell_face_signs),
        )

    def _surface_field(self, name: str, dtype) -> SurfaceField:
        mesh = self._mesh
        return SurfaceField(self._executor, mesh.n_faces, mesh.n_internal_faces,
                            mesh.boundary_mesh.offset, dtype, name=name)

    def update(self) -> None:
        """Recompute all derived geometry from the current mesh points."""
        mesh = self._mesh
        revision = mesh.points_revision
        logger.info(f"Updating geometry ({self._kernel.name}) for {mesh.n_cells} cells, "
                    f"{mesh.n_faces} faces on {self._executor}")

        topology = self._topology()
        geometry = self._kernel.update_mesh_geometry(self._executor, topology)
        boundary = self._kernel.update_boundary_geometry(self._executor, topology, geometry)

        weights = self._surface_field("weights", scalar)
        delta_coeffs = self._surface_field("deltaCoeffs", scalar)
        non_orth_delta_coeffs = self._surface_field("nonOrthDeltaCoeffs", scalar)
        non_orth_correction_vectors = self._surface_field("nonOrthCorrectionVectors", vector)

        self._kernel.update_weights(self._executor, topology, geometry, weights)
        self._kernel.update_delta_coeffs(self._executor, topology, geometry, delta_coeffs)
        self._kernel.update_non_orth_delta_coeffs(self._executor, topology, geometry, non_orth_delta_coeffs)
        self._kernel.update_non_orth_correction_vectors(
            self._executor, topology, geometry, non_orth_correction_vectors
        )

        for field in (weights, delta_coeffs, non_orth_delta_coeffs, non_orth_correction_vectors):
            field.set_read_only()

        boundary["weights"] = weights.boundary_field.value
        boundary["delta_coeffs"] = delta_coeffs.boundary_field.value
        mesh._assign_geometry(revision, boundary, **geometry.as_dict())

        self._weights = weights
        self._delta_coeffs = delta_coeffs
        self._non_orth_delta_coeffs = non_orth_delta_coeffs
        self._non_orth_correction_vectors = non_orth_correction_vectors
        self._revision = revision

    # Derived face fields

    def _current(self, field: Optional[SurfaceField], name: str) -> SurfaceField:
        if not self.is_current or field is None:
            raise StaleGeometryError(f"{name} is stale; call GeometryScheme.update() first")
        return field

    def weights(self) -> SurfaceField:
        return self._current(self._weights, "weights")

    def delta_coeffs(self) -> SurfaceField:
        return self._current(self._delta_coeffs, "deltaCoeffs")

    def non_orth_delta_coeffs(self) -> SurfaceField:
        return self._current(self._non_orth_delta_coeffs, "nonOrthDeltaCoeffs")

    def non_orth_correction_vectors(self) -> SurfaceField:
        return self._current(self._non_orth_correction_vectors, "nonOrthCorrectionVectors")

    def __repr__(self) -> str:
        return (f"GeometryScheme(kernel={self._kernel.name}, executor={self._executor}, "
                f"state={self.state.value})")
