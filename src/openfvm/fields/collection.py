"""Named registry of live Fields, scoped to an explicit Database."""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Union

from .domain_field import SurfaceField, VolumeField
from .field import Field

logger = logging.getLogger(__name__)

AnyField = Union[Field, VolumeField, SurfaceField]


@dataclass
class FieldDocument:
    """A registered Field together with its solution-time bookkeeping."""

    name: str
    field: AnyField
    time_index: int = 0
    iteration_index: int = 0
    sub_cycle_index: int = 0


class Database:
    """Container of named FieldCollections.

    Passed explicitly to whoever needs it; there is no process-wide instance.
    """

    def __init__(self):
        self._collections: Dict[str, "FieldCollection"] = {}

    def collection_names(self) -> List[str]:
        return list(self._collections.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._collections

    def __len__(self) -> int:
        return len(self._collections)


class FieldCollection:
    """Name -> FieldDocument mapping stored in a Database."""

    def __init__(self, name: str):
        self.name = name
        self._documents: Dict[str, FieldDocument] = {}

    @classmethod
    def instance(cls, db: Database, name: str) -> "FieldCollection":
        """Get the collection ``name`` from ``db``, creating it on first use."""
        if name not in db._collections:
            logger.debug(f"Creating field collection '{name}'")
            db._collections[name] = cls(name)
        return db._collections[name]

    def insert(self, document: FieldDocument) -> FieldDocument:
        if document.name in self._documents:
            raise ValueError(f"Field '{document.name}' is already registered in '{self.name}'")
        self._documents[document.name] = document
        return document

    def register(self, name: str, field: AnyField, time_index: int = 0,
                 iteration_index: int = 0, sub_cycle_index: int = 0) -> FieldDocument:
        """Register ``field`` under ``name``."""
        return self.insert(FieldDocument(name, field, time_index, iteration_index, sub_cycle_index))

    def get(self, name: str) -> AnyField:
        return self.document(name).field

    def document(self, name: str) -> FieldDocument:
        if name not in self._documents:
            raise KeyError(f"Unknown field: {name}. "
                           f"Available fields: {list(self._documents.keys())}")
        return self._documents[name]

    def contains(self, name: str) -> bool:
        return name in self._documents

    def names(self) -> List[str]:
        return list(self._documents.keys())

    def remove(self, name: str) -> FieldDocument:
        document = self.document(name)
        del self._documents[name]
        return document

    def find(self, predicate: Callable[[FieldDocument], bool]) -> List[FieldDocument]:
        """Documents satisfying ``predicate``, in registration order."""
        return [doc for doc in self._documents.values() if predicate(doc)]

    def __contains__(self, name: str) -> bool:
        return self.contains(name)

    def __len__(self) -> int:
        return len(self._documents)
