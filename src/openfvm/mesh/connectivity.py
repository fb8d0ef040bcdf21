"""
Compressed Connectivity Tables for Face-Based Meshes

Derives, once per topology, the flat (CSR) tables the geometry kernels
iterate over:
- Face -> point loops with the successor of every loop entry
- Cell -> face lists ordered as owned faces ascending, then neighboured faces
  ascending, with the orientation sign of each entry

Every table is read-only after construction. Per-face and per-cell sums are
segment reductions over these tables, so a chunk of faces or cells can be
processed independently of every other chunk.
"""

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from ..core.errors import TopologyError

logger = logging.getLogger(__name__)


def _freeze(*arrays: np.ndarray) -> None:
    for array in arrays:
        array.flags.writeable = False


@dataclass(frozen=True)
class Connectivity:
    """CSR face-point and cell-face tables.

    Attributes:
        face_point_offsets: Start of each face's loop in ``face_points`` (n_faces + 1)
        face_points: Concatenated point loops
        face_next_points: Successor of each ``face_points`` entry within its loop
        cell_face_offsets: Start of each cell's entries in ``cell_faces`` (n_cells + 1)
        cell_faces: Face of each cell entry
        cell_face_signs: +1 where the cell owns the face, -1 where it neighbours it
    """

    face_point_offsets: np.ndarray
    face_points: np.ndarray
    face_next_points: np.ndarray
    cell_face_offsets: np.ndarray
    cell_faces: np.ndarray
    cell_face_signs: np.ndarray

    @property
    def n_faces(self) -> int:
        return len(self.face_point_offsets) - 1

    @property
    def n_cells(self) -> int:
        return len(self.cell_face_offsets) - 1

    @property
    def face_sizes(self) -> np.ndarray:
        return np.diff(self.face_point_offsets)

    @property
    def cell_sizes(self) -> np.ndarray:
        return np.diff(self.cell_face_offsets)

    def face_loop(self, face: int) -> np.ndarray:
        return self.face_points[self.face_point_offsets[face]:self.face_point_offsets[face + 1]]

    def cell_face_list(self, cell: int) -> np.ndarray:
        return self.cell_faces[self.cell_face_offsets[cell]:self.cell_face_offsets[cell + 1]]


def build_face_points(faces: Sequence[Sequence[int]], n_points: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Flatten point loops into (offsets, points, next points)."""
    loops = [np.asarray(face, dtype=np.int64).ravel() for face in faces]
    sizes = np.array([len(loop) for loop in loops], dtype=np.int64)

    short = np.flatnonzero(sizes < 3)
    if len(short) > 0:
        raise TopologyError(
            f"Faces need at least 3 points; face {int(short[0])} has {int(sizes[short[0]])}"
        )

    offsets = np.zeros(len(loops) + 1, dtype=np.int64)
    np.cumsum(sizes, out=offsets[1:])
    points = np.concatenate(loops) if loops else np.zeros(0, dtype=np.int64)

    bad = np.flatnonzero((points < 0) | (points >= n_points))
    if len(bad) > 0:
        face = int(np.searchsorted(offsets, bad[0], side="right") - 1)
        raise TopologyError(
            f"Face {face} references point {int(points[bad[0]])} outside [0, {n_points})"
        )

    # Successor within each loop, wrapping the last point to the first
    position = np.arange(len(points), dtype=np.int64)
    starts = np.repeat(offsets[:-1], sizes)
    next_position = position + 1
    wrap = next_position == np.repeat(offsets[1:], sizes)
    next_position[wrap] = starts[wrap]
    next_points = points[next_position]

    return offsets, points, next_points


def build_cell_faces(owner: np.ndarray, neighbour: np.ndarray, n_cells: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Group faces by cell into (offsets, faces, signs)."""
    n_faces = len(owner)
    n_internal = len(neighbour)

    cells = np.concatenate([owner, neighbour])
    faces = np.concatenate([np.arange(n_faces, dtype=np.int64), np.arange(n_internal, dtype=np.int64)])
    signs = np.concatenate([np.ones(n_faces, dtype=np.int64), -np.ones(n_internal, dtype=np.int64)])

    # Stable sort keeps owned entries first, each group ascending by face
    order = np.argsort(cells, kind="stable")
    counts = np.bincount(cells, minlength=n_cells)

    empty = np.flatnonzero(counts == 0)
    if len(empty) > 0:
        raise TopologyError(f"Cell {int(empty[0])} has no faces")

    offsets = np.zeros(n_cells + 1, dtype=np.int64)
    np.cumsum(counts, out=offsets[1:])
    return offsets, faces[order], signs[order]


def build_connectivity(faces: Sequence[Sequence[int]], owner: np.ndarray, neighbour: np.ndarray,
                       n_cells: int, n_points: int) -> Connectivity:
    """Build the CSR tables for a validated owner/neighbour topology."""
    face_point_offsets, face_points, face_next_points = build_face_points(faces, n_points)
    cell_face_offsets, cell_faces, cell_face_signs = build_cell_faces(owner, neighbour, n_cells)

    _freeze(face_point_offsets, face_points, face_next_points,
            cell_face_offsets, cell_faces, cell_face_signs)

    logger.debug(f"Connectivity built: {len(face_point_offsets) - 1} faces with "
                 f"{len(face_points)} loop entries, {n_cells} cells")

    return Connectivity(
        face_point_offsets=face_point_offsets,
        face_points=face_points,
        face_next_points=face_next_points,
        cell_face_offsets=cell_face_offsets,
        cell_faces=cell_faces,
        cell_face_signs=cell_face_signs,
    )
