"""
Geometry Kernels for Finite-Volume Meshes

Algorithms that derive mesh geometry from points and topology:
- Face centres and area vectors (triangle formula or a fan around the
  vertex average for polygons)
- Cell centres and volumes from face-based pyramid decomposition
- Interpolation weights and delta coefficients, including their
  non-orthogonal variants and correction vectors
- Boundary face geometry (patch-normal cell-to-face deltas)

Every routine dispatches through ``parallel_for`` and only writes the slots
of its own index range. Per-face and per-cell sums run over the CSR tables
in loop order, one term at a time, so results do not depend on how ranges
are chunked and match a sequential accumulation bit for bit.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict

import numpy as np

from ..core.executor import Executor, parallel_for
from ..core.primitives import ROOT_VSMALL, VSMALL, cross, dot, mag, scalar, vector
from ..fields.domain_field import SurfaceField
from ..fields.field import Field

logger = logging.getLogger(__name__)

# Lower bound of cos(non-orthogonality) used for the non-orthogonal delta coefficients
NON_ORTH_COS_LIMIT = 0.05


@dataclass(frozen=True)
class MeshTopology:
    """Points and topology tables resident in one executor's memory space."""

    n_cells: int
    n_faces: int
    n_internal_faces: int
    points: np.ndarray
    owner: np.ndarray
    neighbour: np.ndarray
    face_point_offsets: np.ndarray
    face_points: np.ndarray
    face_next_points: np.ndarray
    cell_face_offsets: np.ndarray
    cell_faces: np.ndarray
    cell_face_signs: np.ndarray

    @property
    def n_boundary_faces(self) -> int:
        return self.n_faces - self.n_internal_faces


@dataclass
class PrimaryGeometry:
    """Face and cell geometry computed on the scheme's executor."""

    face_centres: Field
    face_areas: Field
    mag_face_areas: Field
    cell_centres: Field
    cell_volumes: Field

    def as_dict(self) -> Dict[str, Field]:
        return {
            "cell_volumes": self.cell_volumes,
            "cell_centres": self.cell_centres,
            "face_centres": self.face_centres,
            "face_areas": self.face_areas,
            "mag_face_areas": self.mag_face_areas,
        }


def _internal_range(start: int, stop: int, n_internal: int) -> slice:
    return slice(start, max(start, min(stop, n_internal)))


def _boundary_range(start: int, stop: int, n_internal: int) -> slice:
    return slice(min(stop, max(start, n_internal)), stop)


def _unit(vectors: np.ndarray, magnitudes: np.ndarray) -> np.ndarray:
    return vectors / np.maximum(magnitudes, VSMALL)[:, None]


def _patch_delta(nf: np.ndarray, cf: np.ndarray, cn: np.ndarray) -> np.ndarray:
    """Cell-to-face vector projected on the face normal."""
    return nf * dot(nf, cf - cn)[:, None]


def _segment_sum(values: np.ndarray, local: np.ndarray, sizes: np.ndarray) -> np.ndarray:
    """Sum of each CSR segment of ``values``, added strictly left to right.

    Segment ``i`` covers ``values[local[i]:local[i] + sizes[i]]``; segments
    must not be empty.
    """
    total = values[local]
    for k in range(1, int(sizes.max())):
        rows = np.flatnonzero(sizes > k)
        total[rows] += values[local[rows] + k]
    return total


class GeometrySchemeKernel(ABC):
    """Algorithm computing mesh geometry for a GeometryScheme.

    Implementations receive the executor to dispatch on and topology already
    resident in that executor's memory space.
    """

    @abstractmethod
    def update_mesh_geometry(self, executor: Executor, topology: MeshTopology) -> PrimaryGeometry:
        """Face centres, face area vectors and magnitudes, cell centres and volumes."""

    @abstractmethod
    def update_boundary_geometry(self, executor: Executor, topology: MeshTopology,
                                 geometry: PrimaryGeometry) -> Dict[str, Field]:
        """Per-boundary-face ``cf``, ``cn``, ``sf``, ``mag_sf``, ``nf`` and ``delta``."""

    @abstractmethod
    def update_weights(self, executor: Executor, topology: MeshTopology,
                       geometry: PrimaryGeometry, weights: SurfaceField) -> None:
        pass

    @abstractmethod
    def update_delta_coeffs(self, executor: Executor, topology: MeshTopology,
                            geometry: PrimaryGeometry, delta_coeffs: SurfaceField) -> None:
        pass

    @abstractmethod
    def update_non_orth_delta_coeffs(self, executor: Executor, topology: MeshTopology,
                                     geometry: PrimaryGeometry, delta_coeffs: SurfaceField) -> None:
        pass

    @abstractmethod
    def update_non_orth_correction_vectors(self, executor: Executor, topology: MeshTopology,
                                           geometry: PrimaryGeometry,
                                           correction_vectors: SurfaceField) -> None:
        pass

    @property
    def name(self) -> str:
        return type(self).__name__


class BasicGeometryScheme(GeometrySchemeKernel):
    """Default geometry algorithm following the OpenFOAM conventions.

    Face geometry:
        triangles: Cf = (p0 + p1 + p2) / 3, Sf = (p1 - p0) x (p2 - p0) / 2
        polygons: fan of triangles around the vertex average; Cf is the
        area-weighted mean of the triangle centres, Sf half the sum of the
        triangle normals

    Cell geometry:
        pyramids from the mean of the face centres to every face; the centre is
        the volume-weighted mean of pyramid centres, the volume a third of the
        summed Sf . (Cf - cEst)
    """

    def update_mesh_geometry(self, executor: Executor, topology: MeshTopology) -> PrimaryGeometry:
        face_centres, face_areas, mag_face_areas = self._face_geometry(executor, topology)
        cell_centres, cell_volumes = self._cell_geometry(executor, topology, face_centres, face_areas)
        logger.debug(f"Primary geometry computed for {topology.n_faces} faces, "
                     f"{topology.n_cells} cells on {executor}")
        return PrimaryGeometry(
            face_centres=face_centres,
            face_areas=face_areas,
            mag_face_areas=mag_face_areas,
            cell_centres=cell_centres,
            cell_volumes=cell_volumes,
        )

    def _face_geometry(self, executor: Executor, topology: MeshTopology):
        n_faces = topology.n_faces
        face_centres = Field(executor, n_faces, vector)
        face_areas = Field(executor, n_faces, vector)
        mag_face_areas = Field(executor, n_faces, scalar)

        cf = face_centres.device_view()
        sf = face_areas.device_view()
        mag_sf = mag_face_areas.device_view()
        points = topology.points
        offsets = topology.face_point_offsets
        loop = topology.face_points
        next_loop = topology.face_next_points

        def kernel(start: int, stop: int) -> None:
            lo, hi = offsets[start], offsets[stop]
            first = offsets[start:stop]
            sizes = offsets[start + 1:stop + 1] - first
            local = first - lo

            p = points[loop[lo:hi]]
            p_next = points[next_loop[lo:hi]]

            centre_estimate = _segment_sum(p, local, sizes) / sizes[:, None]
            fc = np.repeat(centre_estimate, sizes, axis=0)

            n = cross(p_next - p, fc - p)
            a = mag(n)
            c = p + p_next + fc

            sum_n = _segment_sum(n, local, sizes)
            sum_a = _segment_sum(a, local, sizes)
            sum_ac = _segment_sum(a[:, None] * c, local, sizes)

            degenerate = sum_a < ROOT_VSMALL
            safe_a = np.where(degenerate, 1.0, sum_a)
            centres = np.where(degenerate[:, None], centre_estimate, (1.0 / 3.0) * sum_ac / safe_a[:, None])
            areas = np.where(degenerate[:, None], 0.0, 0.5 * sum_n)

            triangles = sizes == 3
            if triangles.any():
                t = first[triangles]
                p0 = points[loop[t]]
                p1 = points[loop[t + 1]]
                p2 = points[loop[t + 2]]
                centres[triangles] = (1.0 / 3.0) * (p0 + p1 + p2)
                areas[triangles] = 0.5 * cross(p1 - p0, p2 - p0)

            cf[start:stop] = centres
            sf[start:stop] = areas
            mag_sf[start:stop] = mag(areas)

        parallel_for(executor, n_faces, kernel)
        return face_centres, face_areas, mag_face_areas

    def _cell_geometry(self, executor: Executor, topology: MeshTopology,
                       face_centres: Field, face_areas: Field):
        n_cells = topology.n_cells
        cell_centres = Field(executor, n_cells, vector)
        cell_volumes = Field(executor, n_cells, scalar)

        cc = cell_centres.device_view()
        vols = cell_volumes.device_view()
        cf = face_centres.device_view()
        sf = face_areas.device_view()
        offsets = topology.cell_face_offsets
        cell_faces = topology.cell_faces
        signs = topology.cell_face_signs

        def kernel(start: int, stop: int) -> None:
            lo, hi = offsets[start], offsets[stop]
            sizes = offsets[start + 1:stop + 1] - offsets[start:stop]
            local = offsets[start:stop] - lo

            faces = cell_faces[lo:hi]
            fc = cf[faces]
            fs = sf[faces]

            c_est = _segment_sum(fc, local, sizes) / sizes[:, None]
            c_rep = np.repeat(c_est, sizes, axis=0)

            # Neighbour pyramids see the face from the other side
            pyr3_vol = np.maximum(signs[lo:hi] * dot(fs, fc - c_rep), VSMALL)
            pyr_centre = 0.75 * fc + 0.25 * c_rep

            sum_v = _segment_sum(pyr3_vol, local, sizes)
            sum_vc = _segment_sum(pyr3_vol[:, None] * pyr_centre, local, sizes)

            valid = np.abs(sum_v) > VSMALL
            safe_v = np.where(valid, sum_v, 1.0)
            cc[start:stop] = np.where(valid[:, None], sum_vc / safe_v[:, None], c_est)
            vols[start:stop] = sum_v * (1.0 / 3.0)

        parallel_for(executor, n_cells, kernel)
        return cell_centres, cell_volumes

    def update_boundary_geometry(self, executor: Executor, topology: MeshTopology,
                                 geometry: PrimaryGeometry) -> Dict[str, Field]:
        n_boundary = topology.n_boundary_faces
        n_internal = topology.n_internal_faces
        fields = {
            "cf": Field(executor, n_boundary, vector),
            "cn": Field(executor, n_boundary, vector),
            "sf": Field(executor, n_boundary, vector),
            "mag_sf": Field(executor, n_boundary, scalar),
            "nf": Field(executor, n_boundary, vector),
            "delta": Field(executor, n_boundary, vector),
        }
        out = {name: field.device_view() for name, field in fields.items()}

        cf = geometry.face_centres.device_view()
        sf = geometry.face_areas.device_view()
        mag_sf = geometry.mag_face_areas.device_view()
        cc = geometry.cell_centres.device_view()
        owner = topology.owner

        def kernel(start: int, stop: int) -> None:
            faces = slice(n_internal + start, n_internal + stop)
            nf = _unit(sf[faces], mag_sf[faces])
            cn = cc[owner[faces]]

            out["cf"][start:stop] = cf[faces]
            out["cn"][start:stop] = cn
            out["sf"][start:stop] = sf[faces]
            out["mag_sf"][start:stop] = mag_sf[faces]
            out["nf"][start:stop] = nf
            out["delta"][start:stop] = _patch_delta(nf, cf[faces], cn)

        parallel_for(executor, n_boundary, kernel)
        return fields

    def update_weights(self, executor: Executor, topology: MeshTopology,
                       geometry: PrimaryGeometry, weights: SurfaceField) -> None:
        """Owner-side linear interpolation weights.

        On internal faces ``w = |Sf . (Cn - Cf)| / (|Sf . (Cf - Co)| + |Sf . (Cn - Cf)|)``
        so that ``phi_f = w phi_O + (1 - w) phi_N``; boundary faces get 1.
        """
        w = weights.internal_field.device_view()
        cf = geometry.face_centres.device_view()
        sf = geometry.face_areas.device_view()
        cc = geometry.cell_centres.device_view()
        owner = topology.owner
        neighbour = topology.neighbour
        n_internal = topology.n_internal_faces

        def kernel(start: int, stop: int) -> None:
            faces = _internal_range(start, stop, n_internal)
            sfd_own = np.abs(dot(sf[faces], cf[faces] - cc[owner[faces]]))
            sfd_nei = np.abs(dot(sf[faces], cc[neighbour[faces]] - cf[faces]))
            total = sfd_own + sfd_nei
            resolved = total > ROOT_VSMALL
            ratio = sfd_nei / np.where(resolved, total, 1.0)
            w[faces] = np.clip(np.where(resolved, ratio, 0.5), 0.0, 1.0)

            w[_boundary_range(start, stop, n_internal)] = 1.0

        parallel_for(executor, topology.n_faces, kernel)
        weights.sync_boundary()

    def update_delta_coeffs(self, executor: Executor, topology: MeshTopology,
                            geometry: PrimaryGeometry, delta_coeffs: SurfaceField) -> None:
        """Inverse cell-centre distance; the patch-normal distance on boundary faces."""
        dc = delta_coeffs.internal_field.device_view()
        cf = geometry.face_centres.device_view()
        sf = geometry.face_areas.device_view()
        mag_sf = geometry.mag_face_areas.device_view()
        cc = geometry.cell_centres.device_view()
        owner = topology.owner
        neighbour = topology.neighbour
        n_internal = topology.n_internal_faces

        def kernel(start: int, stop: int) -> None:
            faces = _internal_range(start, stop, n_internal)
            dc[faces] = 1.0 / mag(cc[neighbour[faces]] - cc[owner[faces]])

            faces = _boundary_range(start, stop, n_internal)
            nf = _unit(sf[faces], mag_sf[faces])
            dc[faces] = 1.0 / mag(_patch_delta(nf, cf[faces], cc[owner[faces]]))

        parallel_for(executor, topology.n_faces, kernel)
        delta_coeffs.sync_boundary()

    def update_non_orth_delta_coeffs(self, executor: Executor, topology: MeshTopology,
                                     geometry: PrimaryGeometry, delta_coeffs: SurfaceField) -> None:
        """``1 / max(nf . d, 0.05 |d|)`` with ``d`` the owner-to-neighbour (or patch) delta."""
        dc = delta_coeffs.internal_field.device_view()
        cf = geometry.face_centres.device_view()
        sf = geometry.face_areas.device_view()
        mag_sf = geometry.mag_face_areas.device_view()
        cc = geometry.cell_centres.device_view()
        owner = topology.owner
        neighbour = topology.neighbour
        n_internal = topology.n_internal_faces

        def non_orth_coeffs(nf: np.ndarray, delta: np.ndarray) -> np.ndarray:
            return 1.0 / np.maximum(dot(nf, delta), NON_ORTH_COS_LIMIT * mag(delta))

        def kernel(start: int, stop: int) -> None:
            faces = _internal_range(start, stop, n_internal)
            delta = cc[neighbour[faces]] - cc[owner[faces]]
            dc[faces] = non_orth_coeffs(_unit(sf[faces], mag_sf[faces]), delta)

            faces = _boundary_range(start, stop, n_internal)
            nf = _unit(sf[faces], mag_sf[faces])
            dc[faces] = non_orth_coeffs(nf, _patch_delta(nf, cf[faces], cc[owner[faces]]))

        parallel_for(executor, topology.n_faces, kernel)
        delta_coeffs.sync_boundary()

    def update_non_orth_correction_vectors(self, executor: Executor, topology: MeshTopology,
                                           geometry: PrimaryGeometry,
                                           correction_vectors: SurfaceField) -> None:
        """``nf - d * non_orth_delta_coeff`` on internal faces, zero on boundary faces."""
        corr = correction_vectors.internal_field.device_view()
        sf = geometry.face_areas.device_view()
        mag_sf = geometry.mag_face_areas.device_view()
        cc = geometry.cell_centres.device_view()
        owner = topology.owner
        neighbour = topology.neighbour
        n_internal = topology.n_internal_faces

        def kernel(start: int, stop: int) -> None:
            faces = _internal_range(start, stop, n_internal)
            nf = _unit(sf[faces], mag_sf[faces])
            delta = cc[neighbour[faces]] - cc[owner[faces]]
            coeffs = 1.0 / np.maximum(dot(nf, delta), NON_ORTH_COS_LIMIT * mag(delta))
            corr[faces] = nf - delta * coeffs[:, None]

            corr[_boundary_range(start, stop, n_internal)] = 0.0

        parallel_for(executor, topology.n_faces, kernel)
        correction_vectors.sync_boundary()
