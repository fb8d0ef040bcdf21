"""
Value Types and Vector Primitives

Provides the element types stored in Fields and the row-wise vector
operations shared by the geometry kernels:
- ``scalar``, ``label`` and ``vector`` numpy dtypes
- Tolerances matching the OpenFOAM double-precision conventions
- Row-wise dot, cross and magnitude helpers on (n, 3) arrays
"""

import numpy as np

scalar = np.dtype(np.float64)
label = np.dtype(np.int64)
vector = np.dtype((np.float64, (3,)))

# Double precision tolerances (OpenFOAM doubleScalar.H)
VSMALL = 1.0e-300
ROOT_VSMALL = 1.0e-150


def element_shape(dtype: np.dtype) -> tuple:
    """Shape of a single element, () for scalars and (3,) for vectors."""
    return np.dtype(dtype).shape


def base_dtype(dtype: np.dtype) -> np.dtype:
    """Storage dtype of a (possibly sub-array) element type."""
    return np.dtype(dtype).base


def dot(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Row-wise inner product of two (n, 3) arrays."""
    return a[:, 0] * b[:, 0] + a[:, 1] * b[:, 1] + a[:, 2] * b[:, 2]


def cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Row-wise cross product of two (n, 3) arrays."""
    result = np.empty(np.broadcast_shapes(a.shape, b.shape), dtype=np.float64)
    result[:, 0] = a[:, 1] * b[:, 2] - a[:, 2] * b[:, 1]
    result[:, 1] = a[:, 2] * b[:, 0] - a[:, 0] * b[:, 2]
    result[:, 2] = a[:, 0] * b[:, 1] - a[:, 1] * b[:, 0]
    return result


def mag(a: np.ndarray) -> np.ndarray:
    """Row-wise Euclidean norm of an (n, 3) array."""
    return np.sqrt(dot(a, a))
