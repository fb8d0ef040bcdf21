"""
Boundary Mesh: Patch-Partitioned Boundary Face Data

Boundary faces are the tail ``[n_internal_faces, n_faces)`` of the mesh face
list, grouped contiguously by patch. Patch ``p`` owns the entries
``offset[p]:offset[p + 1]`` of every per-boundary-face array:
- ``face_cells``: owner cell of each boundary face (topology)
- ``cf``, ``sf``, ``mag_sf``, ``nf``: face centre, area vector, area, unit normal
- ``cn``: centre of the adjacent cell
- ``delta``: patch-normal cell-to-face vector
- ``weights``, ``delta_coeffs``: interpolation weight and inverse distance
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..core.errors import FieldRangeError, StaleGeometryError, TopologyError
from ..core.executor import Executor
from ..core.primitives import label
from ..fields.field import Field

logger = logging.getLogger(__name__)

GEOMETRY_FIELDS = ("cf", "cn", "sf", "mag_sf", "nf", "delta", "weights", "delta_coeffs")


class BoundaryMesh:
    """Per-patch view of the boundary faces of an UnstructuredMesh.

    Args:
        executor: Executor holding the boundary arrays
        face_cells: Owner cell of each boundary face, in boundary-face order
        patch_names: One name per patch
        patch_sizes: Number of faces per patch, summing to ``len(face_cells)``
    """

    def __init__(self, executor: Executor, face_cells: np.ndarray,
                 patch_names: Sequence[str], patch_sizes: Sequence[int]):
        patch_names = [str(name) for name in patch_names]
        patch_sizes = np.asarray(patch_sizes, dtype=np.int64).ravel()
        n_boundary_faces = len(face_cells)

        if len(patch_names) != len(patch_sizes):
            raise TopologyError(
                f"Got {len(patch_names)} patch names for {len(patch_sizes)} patch sizes"
            )
        if len(set(patch_names)) != len(patch_names):
            raise TopologyError(f"Duplicate patch names in {patch_names}")
        if np.any(patch_sizes < 0):
            raise TopologyError(f"Patch sizes must be non-negative, got {patch_sizes.tolist()}")
        if int(patch_sizes.sum()) != n_boundary_faces:
            raise TopologyError(
                f"Patch sizes sum to {int(patch_sizes.sum())}, "
                f"expected {n_boundary_faces} boundary faces"
            )

        self._executor = executor
        self._patch_names = patch_names
        self._offset = np.zeros(len(patch_sizes) + 1, dtype=np.int64)
        np.cumsum(patch_sizes, out=self._offset[1:])
        self._offset.flags.writeable = False

        self._face_cells = Field.from_array(executor, face_cells, label)
        self._face_cells.set_read_only()
        self._geometry: Dict[str, Field] = {}

    # Patch layout

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def offset(self) -> np.ndarray:
        """Cumulative patch sizes, length ``n_patches + 1``."""
        return self._offset

    @property
    def n_patches(self) -> int:
        return len(self._patch_names)

    @property
    def n_boundary_faces(self) -> int:
        return int(self._offset[-1])

    @property
    def patch_names(self) -> List[str]:
        return list(self._patch_names)

    def patch_index(self, name: str) -> int:
        if name not in self._patch_names:
            raise KeyError(f"Unknown patch: {name}. Available patches: {self._patch_names}")
        return self._patch_names.index(name)

    def patch_range(self, patch: int) -> range:
        if not 0 <= patch < self.n_patches:
            raise FieldRangeError(f"Patch index {patch} out of range for {self.n_patches} patches")
        return range(int(self._offset[patch]), int(self._offset[patch + 1]))

    def patch_size(self, patch: int) -> int:
        return len(self.patch_range(patch))

    def _select(self, field: Field, patch: Optional[int]) -> Field:
        if patch is None:
            return field
        bounds = self.patch_range(patch)
        return Field.from_array(self._executor, field.device_view()[bounds.start:bounds.stop], field.dtype)

    # Topology

    def face_cells(self, patch: Optional[int] = None) -> Field:
        """Owner cells of all boundary faces, or a copy of one patch's."""
        return self._select(self._face_cells, patch)

    # Geometry

    @property
    def has_geometry(self) -> bool:
        return bool(self._geometry)

    def _assign_geometry(self, **fields: Field) -> None:
        """Store boundary geometry computed by a GeometryScheme."""
        missing = set(GEOMETRY_FIELDS) - set(fields)
        if missing:
            raise ValueError(f"Missing boundary geometry: {sorted(missing)}")

        geometry = {}
        for name in GEOMETRY_FIELDS:
            stored = fields[name].copy_to_executor(self._executor)
            stored.set_read_only()
            geometry[name] = stored
        self._geometry = geometry
        logger.debug(f"Boundary geometry stored for {self.n_patches} patches")

    def _invalidate(self) -> None:
        self._geometry = {}

    def _get(self, name: str, patch: Optional[int]) -> Field:
        if name not in self._geometry:
            raise StaleGeometryError(
                f"Boundary {name} is not available; call GeometryScheme.update() first"
            )
        return self._select(self._geometry[name], patch)

    def cf(self, patch: Optional[int] = None) -> Field:
        return self._get("cf", patch)

    def cn(self, patch: Optional[int] = None) -> Field:
        return self._get("cn", patch)

    def sf(self, patch: Optional[int] = None) -> Field:
        return self._get("sf", patch)

    def mag_sf(self, patch: Optional[int] = None) -> Field:
        return self._get("mag_sf", patch)

    def nf(self, patch: Optional[int] = None) -> Field:
        return self._get("nf", patch)

    def delta(self, patch: Optional[int] = None) -> Field:
        return self._get("delta", patch)

    def weights(self, patch: Optional[int] = None) -> Field:
        return self._get("weights", patch)

    def delta_coeffs(self, patch: Optional[int] = None) -> Field:
        return self._get("delta_coeffs", patch)

    def __repr__(self) -> str:
        return (f"BoundaryMesh(patches={self._patch_names}, "
                f"n_boundary_faces={self.n_boundary_faces})")
