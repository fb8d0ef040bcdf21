"""Small hand-built meshes shared by the tests."""

import numpy as np

from openfvm.core import SerialExecutor
from openfvm.mesh import UnstructuredMesh, create_box_mesh


def make_two_tet_mesh(executor=SerialExecutor()):
    """Two tetrahedra sharing the face (1, 2, 3); all faces are triangles."""
    points = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
        [1.0, 1.0, 1.0],
    ])
    faces = [
        (1, 2, 3),  # internal
        (0, 2, 1), (0, 1, 3), (0, 3, 2),  # base, owned by cell 0
        (1, 2, 4), (1, 4, 3), (2, 3, 4),  # cap, owned by cell 1
    ]
    face_cells = [(0, 1), (0, -1), (0, -1), (0, -1), (1, -1), (1, -1), (1, -1)]
    return UnstructuredMesh.from_face_cells(
        points, faces, face_cells, [("base", 3), ("cap", 3)], executor=executor
    )


def make_distorted_box_mesh(executor=SerialExecutor(), seed=42):
    """3x3x2 box with randomly displaced points (warped, non-orthogonal faces)."""
    mesh = create_box_mesh(3, 3, 2, lengths=(1.5, 1.2, 0.8), executor=executor)
    rng = np.random.default_rng(seed)
    points = mesh.points.copy_to_host().span().copy()
    points += rng.uniform(-0.08, 0.08, size=points.shape)
    mesh.move_points(points)
    return mesh
