"""
Unstructured Finite-Volume Mesh

Face-based (owner/neighbour) mesh representation:
- Faces ``[0, n_internal_faces)`` are internal and have an owner and a neighbour
- Faces ``[n_internal_faces, n_faces)`` are boundary faces, grouped by patch
- Each face carries its point loop, ordered so the right-hand normal points
  out of the owner cell
- Primary geometry (cell volumes and centres, face centres and area vectors)
  is derived by a GeometryScheme and held here read-only
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..core.errors import StaleGeometryError, TopologyError
from ..core.executor import Executor, SerialExecutor
from ..core.primitives import label, vector
from ..fields.field import Field
from .boundary import BoundaryMesh
from .connectivity import Connectivity, build_connectivity

logger = logging.getLogger(__name__)

GEOMETRY_FIELDS = ("cell_volumes", "cell_centres", "face_centres", "face_areas", "mag_face_areas")


def _as_labels(values: Any, what: str) -> np.ndarray:
    array = np.asarray(values)
    if array.size == 0:
        return np.zeros(0, dtype=np.int64)
    if array.dtype.kind not in "iu":
        raise TopologyError(f"{what} must hold integer indices, got dtype {array.dtype}")
    return array.astype(np.int64).ravel()


def _as_points(values: Any) -> np.ndarray:
    points = np.asarray(values, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 3:
        raise TopologyError(f"Points must have shape (n_points, 3), got {points.shape}")
    return points


class UnstructuredMesh:
    """
    Unstructured mesh of polyhedral cells described by their faces.

    Args:
        points: Point coordinates [n_points, 3]
        faces: One point-index loop per face
        owner: Owner cell of every face [n_faces]
        neighbour: Neighbour cell of every internal face [n_internal_faces]
        patch_names: Boundary patch names
        patch_sizes: Number of boundary faces per patch
        n_cells: Number of cells (inferred from owner/neighbour if omitted)
        executor: Executor holding the mesh fields
    """

    def __init__(self,
                 points: np.ndarray,
                 faces: Sequence[Sequence[int]],
                 owner: Sequence[int],
                 neighbour: Sequence[int],
                 patch_names: Sequence[str],
                 patch_sizes: Sequence[int],
                 n_cells: Optional[int] = None,
                 executor: Executor = SerialExecutor()):
        points = _as_points(points)
        owner = _as_labels(owner, "owner")
        neighbour = _as_labels(neighbour, "neighbour")
        n_faces = len(faces)

        if len(owner) != n_faces:
            raise TopologyError(f"owner has {len(owner)} entries for {n_faces} faces")
        if len(neighbour) > n_faces:
            raise TopologyError(f"neighbour has {len(neighbour)} entries for only {n_faces} faces")

        if n_cells is None:
            n_cells = int(max(owner.max(initial=-1), neighbour.max(initial=-1))) + 1
        elif n_cells < 0:
            raise TopologyError(f"n_cells must be non-negative, got {n_cells}")

        for name, cells in (("owner", owner), ("neighbour", neighbour)):
            bad = np.flatnonzero((cells < 0) | (cells >= n_cells))
            if len(bad) > 0:
                raise TopologyError(
                    f"Face {int(bad[0])} has {name} {int(cells[bad[0]])} outside [0, {n_cells})"
                )

        self._executor = executor
        self._n_cells = int(n_cells)
        self._n_internal_faces = len(neighbour)
        self._connectivity = build_connectivity(faces, owner, neighbour, self._n_cells, len(points))

        self._points = self._frozen(Field.from_array(executor, points, vector))
        self._face_owner = self._frozen(Field.from_array(executor, owner, label))
        self._face_neighbour = self._frozen(Field.from_array(executor, neighbour, label))
        self._boundary_mesh = BoundaryMesh(
            executor, owner[self._n_internal_faces:], patch_names, patch_sizes
        )

        self._points_revision = 0
        self._geometry: Dict[str, Field] = {}
        self._geometry_revision: Optional[int] = None

        logger.info(f"Created mesh: {self._n_cells} cells, {n_faces} faces "
                    f"({self._n_internal_faces} internal), {len(points)} points, "
                    f"{self._boundary_mesh.n_patches} patches on {executor}")

    @classmethod
    def from_face_cells(cls,
                        points: np.ndarray,
                        faces: Sequence[Sequence[int]],
                        face_cells: Sequence[Tuple[int, int]],
                        patches: Sequence[Tuple[str, int]],
                        n_cells: Optional[int] = None,
                        executor: Executor = SerialExecutor()) -> "UnstructuredMesh":
        """
        Build a mesh from ``(owner, neighbour)`` pairs.

        Boundary faces carry neighbour -1 and must follow every internal face.
        ``patches`` lists ``(name, face count)`` in boundary-face order.
        """
        pairs = _as_labels(face_cells, "face_cells")
        if len(pairs) % 2 != 0:
            raise TopologyError("face_cells must hold (owner, neighbour) pairs")
        pairs = pairs.reshape(-1, 2)

        is_internal = pairs[:, 1] >= 0
        n_internal = int(np.argmin(is_internal)) if not is_internal.all() else len(pairs)
        if is_internal[n_internal:].any():
            face = n_internal + int(np.argmax(is_internal[n_internal:]))
            raise TopologyError(
                f"Internal face {face} follows boundary face {n_internal}; "
                f"internal faces must come first"
            )

        names = [name for name, _ in patches]
        sizes = [count for _, count in patches]
        return cls(points, faces, pairs[:, 0], pairs[:n_internal, 1], names, sizes,
                   n_cells=n_cells, executor=executor)

    @staticmethod
    def _frozen(field: Field) -> Field:
        field.set_read_only()
        return field

    # Counts

    @property
    def n_cells(self) -> int:
        return self._n_cells

    @property
    def n_faces(self) -> int:
        return self._face_owner.size

    @property
    def n_internal_faces(self) -> int:
        return self._n_internal_faces

    @property
    def n_boundary_faces(self) -> int:
        return self.n_faces - self._n_internal_faces

    @property
    def n_patches(self) -> int:
        return self._boundary_mesh.n_patches

    @property
    def n_points(self) -> int:
        return self._points.size

    # Topology

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def points(self) -> Field:
        return self._points

    @property
    def face_owner(self) -> Field:
        return self._face_owner

    @property
    def face_neighbour(self) -> Field:
        return self._face_neighbour

    @property
    def boundary_mesh(self) -> BoundaryMesh:
        return self._boundary_mesh

    @property
    def connectivity(self) -> Connectivity:
        return self._connectivity

    def face_points(self, face: int) -> List[int]:
        """Point loop of ``face``."""
        return self._connectivity.face_loop(face).tolist()

    # Motion

    @property
    def points_revision(self) -> int:
        """Counter bumped every time the points move."""
        return self._points_revision

    def move_points(self, new_points: np.ndarray) -> None:
        """Replace the point coordinates; derived geometry becomes stale."""
        new_points = _as_points(new_points)
        if new_points.shape != (self.n_points, 3):
            raise TopologyError(
                f"New points have shape {new_points.shape}, expected {(self.n_points, 3)}"
            )

        self._points = self._frozen(Field.from_array(self._executor, new_points, vector))
        self._points_revision += 1
        self._geometry = {}
        self._boundary_mesh._invalidate()
        logger.info(f"Mesh points moved (revision {self._points_revision}); geometry is stale")

    # Geometry

    @property
    def is_geometry_current(self) -> bool:
        return bool(self._geometry) and self._geometry_revision == self._points_revision

    def _assign_geometry(self, revision: int, boundary: Dict[str, Field], **fields: Field) -> None:
        """Store geometry a GeometryScheme derived from points ``revision``."""
        if revision != self._points_revision:
            raise StaleGeometryError(
                f"Geometry computed for points revision {revision}, "
                f"mesh is at revision {self._points_revision}"
            )
        missing = set(GEOMETRY_FIELDS) - set(fields)
        if missing:
            raise ValueError(f"Missing mesh geometry: {sorted(missing)}")

        self._geometry = {
            name: self._frozen(fields[name].copy_to_executor(self._executor))
            for name in GEOMETRY_FIELDS
        }
        self._boundary_mesh._assign_geometry(**boundary)
        self._geometry_revision = revision

    def _geometry_field(self, name: str) -> Field:
        if not self.is_geometry_current:
            raise StaleGeometryError(
                f"Mesh {name} is not available; call GeometryScheme.update() first"
            )
        return self._geometry[name]

    @property
    def cell_volumes(self) -> Field:
        return self._geometry_field("cell_volumes")

    @property
    def cell_centres(self) -> Field:
        return self._geometry_field("cell_centres")

    @property
    def face_centres(self) -> Field:
        return self._geometry_field("face_centres")

    @property
    def face_areas(self) -> Field:
        """Face area vectors, pointing out of the owner cell."""
        return self._geometry_field("face_areas")

    @property
    def mag_face_areas(self) -> Field:
        return self._geometry_field("mag_face_areas")

    def __repr__(self) -> str:
        return (f"UnstructuredMesh(points={self.n_points}, cells={self.n_cells}, "
                f"faces={self.n_faces}, internal_faces={self.n_internal_faces}, "
                f"patches={self._boundary_mesh.patch_names}, executor={self._executor})")
