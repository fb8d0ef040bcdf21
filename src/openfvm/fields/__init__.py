"""Executor-resident fields and the named field registry."""

from .field import Field
from .domain_field import BoundaryData, SurfaceField, VolumeField
from .collection import Database, FieldCollection, FieldDocument

__all__ = [
    'Field',
    'BoundaryData',
    'SurfaceField',
    'VolumeField',
    'Database',
    'FieldCollection',
    'FieldDocument',
]
