"""
Structured Mesh Builders

Creates hexahedral meshes in OpenFOAM face ordering:
- Internal faces sorted by owner, then by neighbour
- Boundary faces grouped by patch (left, right, bottom, top, back, front)
- Face loops ordered so area vectors point out of the owner cell

Points are numbered x-fastest, then y, then z; cells likewise.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..core.errors import TopologyError
from ..core.executor import Executor, SerialExecutor
from .unstructured_mesh import UnstructuredMesh

logger = logging.getLogger(__name__)

BOX_PATCHES = ("left", "right", "bottom", "top", "back", "front")


def _coordinates(n: int, length: float, origin: float,
                 explicit: Optional[Sequence[float]], axis: str) -> np.ndarray:
    if explicit is None:
        if n < 1:
            raise TopologyError(f"Need at least one cell along {axis}, got {n}")
        if length <= 0:
            raise TopologyError(f"Box length along {axis} must be positive, got {length}")
        return origin + np.linspace(0.0, length, n + 1)

    coords = np.asarray(explicit, dtype=np.float64).ravel()
    if len(coords) != n + 1:
        raise TopologyError(f"Expected {n + 1} {axis} coordinates for {n} cells, got {len(coords)}")
    if np.any(np.diff(coords) <= 0):
        raise TopologyError(f"{axis} coordinates must be strictly increasing")
    return coords


def _box_topology(nx: int, ny: int, nz: int):
    """Faces, owners, neighbours and per-patch face counts of an nx x ny x nz block."""

    def p(i, j, k):
        return i + (nx + 1) * (j + (ny + 1) * k)

    def c(i, j, k):
        return i + nx * (j + ny * k)

    faces: List[Tuple[int, ...]] = []
    owner: List[int] = []
    neighbour: List[int] = []

    # Internal faces, neighbours ascending: +x, +y, +z
    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                if i + 1 < nx:
                    faces.append((p(i + 1, j, k), p(i + 1, j + 1, k), p(i + 1, j + 1, k + 1), p(i + 1, j, k + 1)))
                    owner.append(c(i, j, k))
                    neighbour.append(c(i + 1, j, k))
                if j + 1 < ny:
                    faces.append((p(i, j + 1, k), p(i, j + 1, k + 1), p(i + 1, j + 1, k + 1), p(i + 1, j + 1, k)))
                    owner.append(c(i, j, k))
                    neighbour.append(c(i, j + 1, k))
                if k + 1 < nz:
                    faces.append((p(i, j, k + 1), p(i + 1, j, k + 1), p(i + 1, j + 1, k + 1), p(i, j + 1, k + 1)))
                    owner.append(c(i, j, k))
                    neighbour.append(c(i, j, k + 1))

    sizes = []

    # left (-x) and right (+x)
    for i, cell_i, outward in ((0, 0, False), (nx, nx - 1, True)):
        for k in range(nz):
            for j in range(ny):
                loop = (p(i, j, k), p(i, j + 1, k), p(i, j + 1, k + 1), p(i, j, k + 1))
                faces.append(loop if outward else loop[::-1])
                owner.append(c(cell_i, j, k))
        sizes.append(ny * nz)

    # bottom (-y) and top (+y)
    for j, cell_j, outward in ((0, 0, False), (ny, ny - 1, True)):
        for k in range(nz):
            for i in range(nx):
                loop = (p(i, j, k), p(i, j, k + 1), p(i + 1, j, k + 1), p(i + 1, j, k))
                faces.append(loop if outward else loop[::-1])
                owner.append(c(i, cell_j, k))
        sizes.append(nx * nz)

    # back (-z) and front (+z)
    for k, cell_k, outward in ((0, 0, False), (nz, nz - 1, True)):
        for j in range(ny):
            for i in range(nx):
                loop = (p(i, j, k), p(i + 1, j, k), p(i + 1, j + 1, k), p(i, j + 1, k))
                faces.append(loop if outward else loop[::-1])
                owner.append(c(i, j, cell_k))
        sizes.append(nx * ny)

    return faces, owner, neighbour, sizes


def _box_points(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    zz, yy, xx = np.meshgrid(z, y, x, indexing="ij")
    return np.column_stack([xx.ravel(), yy.ravel(), zz.ravel()])


def create_box_mesh(nx: int, ny: int, nz: int,
                    lengths: Tuple[float, float, float] = (1.0, 1.0, 1.0),
                    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0),
                    x: Optional[Sequence[float]] = None,
                    y: Optional[Sequence[float]] = None,
                    z: Optional[Sequence[float]] = None,
                    executor: Executor = SerialExecutor()) -> UnstructuredMesh:
    """
    Create a structured hexahedral box mesh.

    Args:
        nx, ny, nz: Number of cells along each axis
        lengths: Box extent along each axis (ignored for axes given explicitly)
        origin: Minimum corner of the box
        x, y, z: Optional explicit (graded) coordinates, ``n + 1`` values each
        executor: Executor holding the mesh fields

    Returns:
        Mesh with patches left, right, bottom, top, back and front
    """
    xs = _coordinates(nx, lengths[0], origin[0], x, "x")
    ys = _coordinates(ny, lengths[1], origin[1], y, "y")
    zs = _coordinates(nz, lengths[2], origin[2], z, "z")

    faces, owner, neighbour, sizes = _box_topology(nx, ny, nz)
    logger.info(f"Creating {nx}x{ny}x{nz} box mesh")

    return UnstructuredMesh(
        points=_box_points(xs, ys, zs),
        faces=faces,
        owner=owner,
        neighbour=neighbour,
        patch_names=BOX_PATCHES,
        patch_sizes=sizes,
        n_cells=nx * ny * nz,
        executor=executor,
    )


def create_single_cell_mesh(executor: Executor = SerialExecutor()) -> UnstructuredMesh:
    """Unit cube with one face per patch."""
    return create_box_mesh(1, 1, 1, executor=executor)


def create_1d_uniform_mesh(n_cells: int, executor: Executor = SerialExecutor(),
                           length: float = 1.0) -> UnstructuredMesh:
    """Row of ``n_cells`` cubes along x with patches left, right and sides."""
    if n_cells < 1:
        raise TopologyError(f"Need at least one cell, got {n_cells}")

    h = length / n_cells
    xs = _coordinates(n_cells, length, 0.0, None, "x")
    ys = np.array([0.0, h])
    zs = np.array([0.0, h])

    faces, owner, neighbour, sizes = _box_topology(n_cells, 1, 1)

    return UnstructuredMesh(
        points=_box_points(xs, ys, zs),
        faces=faces,
        owner=owner,
        neighbour=neighbour,
        patch_names=["left", "right", "sides"],
        patch_sizes=[sizes[0], sizes[1], sum(sizes[2:])],
        n_cells=n_cells,
        executor=executor,
    )
