"""Tests for point motion and geometry re-derivation."""

import numpy as np
import pytest

from openfvm.core import StaleGeometryError, TopologyError
from openfvm.mesh import GeometryScheme, create_box_mesh
from reference import ReferenceGeometry


def host(field):
    return field.copy_to_host().span()


def test_motion_marks_geometry_stale(executor):
    mesh = create_box_mesh(2, 2, 2, executor=executor)
    scheme = GeometryScheme(mesh)
    scheme.update()
    revision = mesh.points_revision

    mesh.move_points(host(mesh.points) * 1.5)

    assert mesh.points_revision == revision + 1
    assert not mesh.is_geometry_current
    assert not mesh.boundary_mesh.has_geometry
    with pytest.raises(StaleGeometryError):
        mesh.cell_volumes
    with pytest.raises(StaleGeometryError):
        mesh.boundary_mesh.nf(0)
    with pytest.raises(StaleGeometryError):
        scheme.delta_coeffs()


def test_update_after_motion_recomputes(executor):
    mesh = create_box_mesh(2, 2, 2, executor=executor)
    scheme = GeometryScheme(mesh)
    scheme.update()

    mesh.move_points(host(mesh.points) * 2.0)
    scheme.update()

    np.testing.assert_allclose(host(mesh.cell_volumes), 1.0, rtol=1e-12)
    n_internal = mesh.n_internal_faces
    np.testing.assert_allclose(host(scheme.delta_coeffs().internal_field)[:n_internal], 1.0, rtol=1e-12)
    np.testing.assert_allclose(host(mesh.boundary_mesh.delta_coeffs()), 2.0, rtol=1e-12)


def test_shear_motion_matches_reference(executor):
    mesh = create_box_mesh(3, 3, 1, executor=executor)
    points = host(mesh.points).copy()
    points[:, 0] += 0.3 * points[:, 1] ** 2
    mesh.move_points(points)

    scheme = GeometryScheme(mesh)
    scheme.update()
    reference = ReferenceGeometry(mesh)

    np.testing.assert_allclose(host(mesh.cell_centres), reference.cell_centres, rtol=0.0, atol=1e-16)
    np.testing.assert_allclose(host(scheme.non_orth_correction_vectors().internal_field),
                               reference.non_orth_correction_vectors, rtol=0.0, atol=1e-16)
    assert np.abs(reference.non_orth_correction_vectors).max() > 1e-3


def test_motion_does_not_change_topology():
    mesh = create_box_mesh(2, 1, 1)
    owner = mesh.face_owner.span().copy()
    mesh.move_points(mesh.points.span() + 1.0)
    np.testing.assert_array_equal(mesh.face_owner.span(), owner)
    assert mesh.points.read_only


def test_move_points_wrong_shape():
    mesh = create_box_mesh(2, 1, 1)
    with pytest.raises(TopologyError):
        mesh.move_points(np.zeros((mesh.n_points - 1, 3)))
    with pytest.raises(TopologyError):
        mesh.move_points(np.zeros((mesh.n_points, 2)))
    assert mesh.points_revision == 0


def test_scheme_cannot_publish_old_revision():
    mesh = create_box_mesh(2, 1, 1)
    with pytest.raises(StaleGeometryError):
        mesh._assign_geometry(mesh.points_revision + 1, {})
