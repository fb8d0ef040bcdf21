"""Domain fields: cell or face values plus patch-sliced boundary values."""

from typing import Any, Optional, Sequence

import numpy as np

from ..core.errors import FieldRangeError, TopologyError
from ..core.executor import Executor, parallel_for
from ..core.primitives import scalar
from .field import Field


def _offset_table(offset: Sequence[int]) -> np.ndarray:
    table = np.asarray(offset, dtype=np.int64)
    if table.ndim != 1 or table.size == 0 or table[0] != 0 or np.any(np.diff(table) < 0):
        raise TopologyError(f"Invalid patch offset table: {table.tolist()}")
    return table


class BoundaryData:
    """Per-boundary-face values grouped by patch through an offset table.

    Values of patch ``p`` occupy ``value[offset[p]:offset[p + 1]]``.
    """

    def __init__(self, executor: Executor, offset: Sequence[int], dtype: Any = scalar):
        self._offset = _offset_table(offset)
        self._offset.flags.writeable = False
        self._value = Field(executor, int(self._offset[-1]), dtype)

    @property
    def value(self) -> Field:
        return self._value

    @property
    def offset(self) -> np.ndarray:
        return self._offset

    @property
    def n_patches(self) -> int:
        return len(self._offset) - 1

    def patch_range(self, patch: int) -> range:
        if not 0 <= patch < self.n_patches:
            raise FieldRangeError(f"Patch index {patch} out of range for {self.n_patches} patches")
        return range(int(self._offset[patch]), int(self._offset[patch + 1]))

    def patch_values(self, patch: int) -> Field:
        """Copy of the values of one patch, on the same executor."""
        bounds = self.patch_range(patch)
        return Field.from_array(
            self._value.executor,
            self._value.device_view()[bounds.start:bounds.stop],
            self._value.dtype
        )


class SurfaceField:
    """Values on all faces of a mesh.

    ``internal_field`` holds one value per face; its tail
    ``[n_internal_faces, n_faces)`` repeats the boundary values so face loops
    can run over the full range. ``boundary_field`` holds the same boundary
    values sliced per patch.
    """

    def __init__(self, executor: Executor, n_faces: int, n_internal_faces: int,
                 offset: Sequence[int], dtype: Any = scalar, name: Optional[str] = None):
        if not 0 <= n_internal_faces <= n_faces:
            raise TopologyError(
                f"n_internal_faces={n_internal_faces} must lie in [0, n_faces={n_faces}]"
            )
        self.name = name
        self._n_internal_faces = n_internal_faces
        self._internal = Field(executor, n_faces, dtype)
        self._boundary = BoundaryData(executor, offset, dtype)
        if self._boundary.value.size != n_faces - n_internal_faces:
            raise TopologyError(
                f"Patch offsets cover {self._boundary.value.size} faces, "
                f"expected {n_faces - n_internal_faces} boundary faces"
            )

    @property
    def executor(self) -> Executor:
        return self._internal.executor

    @property
    def internal_field(self) -> Field:
        return self._internal

    @property
    def boundary_field(self) -> BoundaryData:
        return self._boundary

    @property
    def n_internal_faces(self) -> int:
        return self._n_internal_faces

    def patch_values(self, patch: int) -> Field:
        return self._boundary.patch_values(patch)

    def sync_boundary(self) -> None:
        """Copy the boundary tail of ``internal_field`` into the patch values."""
        source = self._internal.device_view()
        boundary = self._boundary.value.device_view()
        n_internal = self._n_internal_faces

        def kernel(start: int, stop: int) -> None:
            boundary[start:stop] = source[n_internal + start:n_internal + stop]

        parallel_for(self.executor, len(boundary), kernel)

    def set_read_only(self) -> None:
        self._internal.set_read_only()
        self._boundary.value.set_read_only()

    def __repr__(self) -> str:
        return (f"SurfaceField(name={self.name!r}, n_faces={self._internal.size}, "
                f"n_patches={self._boundary.n_patches}, executor={self.executor})")


class VolumeField:
    """Values at the cell centres of a mesh.

    ``internal_field`` holds one value per cell and ``boundary_field`` one
    value per boundary face, sliced per patch.
    """

    def __init__(self, executor: Executor, n_cells: int, offset: Sequence[int],
                 dtype: Any = scalar, name: Optional[str] = None):
        self.name = name
        self._internal = Field(executor, n_cells, dtype)
        self._boundary = BoundaryData(executor, offset, dtype)

    @classmethod
    def from_mesh(cls, mesh, dtype: Any = scalar, name: Optional[str] = None,
                  executor: Optional[Executor] = None) -> "VolumeField":
        """Zero-initialised field sized to ``mesh``, on its executor unless given."""
        return cls(executor or mesh.executor, mesh.n_cells, mesh.boundary_mesh.offset, dtype, name)

    @property
    def executor(self) -> Executor:
        return self._internal.executor

    @property
    def internal_field(self) -> Field:
        return self._internal

    @property
    def boundary_field(self) -> BoundaryData:
        return self._boundary

    @property
    def n_cells(self) -> int:
        return self._internal.size

    def patch_values(self, patch: int) -> Field:
        return self._boundary.patch_values(patch)

    def set_read_only(self) -> None:
        self._internal.set_read_only()
        self._boundary.value.set_read_only()

    def __repr__(self) -> str:
        return (f"VolumeField(name={self.name!r}, n_cells={self._internal.size}, "
                f"n_patches={self._boundary.n_patches}, executor={self.executor})")
