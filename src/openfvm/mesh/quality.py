"""Mesh quality statistics derived from current geometry."""

import logging
from typing import Any, Dict

import numpy as np

from ..core.errors import StaleGeometryError
from ..core.executor import Executor, parallel_for, parallel_reduce, same_memory_space
from ..core.primitives import ROOT_VSMALL, VSMALL, dot, mag, scalar
from ..fields.field import Field
from .geometry_scheme import GeometryScheme

logger = logging.getLogger(__name__)


def _on(executor: Executor, field: Field) -> Field:
    if same_memory_space(field.executor, executor):
        return field
    return field.copy_to_executor(executor)


def _count_below(field: Field, threshold: float) -> int:
    values = field.device_view()
    return int(parallel_reduce(
        field.executor, field.size,
        lambda start, stop: int(np.count_nonzero(values[start:stop] < threshold)),
        lambda a, b: a + b, 0
    ))


def compute_non_orthogonality(scheme: GeometryScheme) -> Field:
    """Angle in degrees between face normal and owner-to-neighbour vector, per internal face."""
    if not scheme.is_current:
        raise StaleGeometryError("Non-orthogonality needs current geometry; call update() first")

    mesh = scheme.mesh
    executor = scheme.executor
    n_internal = mesh.n_internal_faces

    angles = Field(executor, n_internal, scalar)
    out = angles.device_view()
    sf = _on(executor, mesh.face_areas).device_view()
    cc = _on(executor, mesh.cell_centres).device_view()
    owner = _on(executor, mesh.face_owner).device_view()
    neighbour = _on(executor, mesh.face_neighbour).device_view()

    def kernel(start: int, stop: int) -> None:
        d = cc[neighbour[start:stop]] - cc[owner[start:stop]]
        s = sf[start:stop]
        cos_theta = dot(s, d) / np.maximum(mag(s) * mag(d), VSMALL)
        out[start:stop] = np.degrees(np.arccos(np.clip(cos_theta, -1.0, 1.0)))

    parallel_for(executor, n_internal, kernel)
    return angles


def compute_quality_summary(scheme: GeometryScheme) -> Dict[str, Any]:
    """
    Summary statistics of cell volumes, face areas and non-orthogonality.

    ``negative_volumes`` counts cells whose pyramid decomposition collapsed
    (every pyramid clipped to the volume floor), which happens for inverted
    or degenerate cells.
    """
    angles = compute_non_orthogonality(scheme)
    mesh = scheme.mesh

    volumes = mesh.cell_volumes
    min_volume = float(volumes.min()) if volumes.size else 0.0
    max_volume = float(volumes.max()) if volumes.size else 0.0

    n_internal = angles.size
    summary = {
        'n_cells': mesh.n_cells,
        'n_faces': mesh.n_faces,
        'min_volume': min_volume,
        'max_volume': max_volume,
        'total_volume': float(volumes.sum()),
        'volume_ratio': max_volume / max(min_volume, VSMALL),
        'max_non_orthogonality': float(angles.max()) if n_internal else 0.0,
        'mean_non_orthogonality': float(angles.sum()) / n_internal if n_internal else 0.0,
        'negative_volumes': _count_below(volumes, ROOT_VSMALL),
        'zero_area_faces': _count_below(mesh.mag_face_areas, ROOT_VSMALL),
    }

    logger.info(f"Mesh quality: {summary['n_cells']} cells, volume ratio {summary['volume_ratio']:.3g}, "
                f"max non-orthogonality {summary['max_non_orthogonality']:.2f} deg")
    return summary
