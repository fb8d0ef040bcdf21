"""Exception hierarchy for openfvm.

Every error derives from ``OpenFVMError`` and from the builtin exception a
caller would naturally expect, so ``except ValueError`` keeps working.
"""


class OpenFVMError(Exception):
    """Base class for all openfvm errors."""


class TopologyError(OpenFVMError, ValueError):
    """Malformed or inconsistent mesh input."""


class FieldRangeError(OpenFVMError, IndexError):
    """Out-of-range element or patch access."""


class ShapeMismatchError(OpenFVMError, ValueError):
    """Arithmetic between Fields of different sizes."""


class ExecutorMismatchError(OpenFVMError, ValueError):
    """Operation between Fields living in different memory spaces."""


class ResidencyError(OpenFVMError, RuntimeError):
    """Host access to device-resident data without an explicit copy."""


class StaleGeometryError(OpenFVMError, RuntimeError):
    """Derived geometry read before GeometryScheme.update()."""


class FieldAllocationError(OpenFVMError, MemoryError):
    """Buffer allocation failed or was requested with an invalid size."""
