"""
Executor-Resident Fields

A Field owns one contiguous, fixed-length buffer of typed elements in the
memory space of the executor it was created on:
- Element types are numpy dtypes (``scalar``, ``label`` or the ``vector``
  sub-array type, which gives an (n, 3) buffer)
- Host access goes through ``span()`` or an explicit ``copy_to_host()``
- Kernels dispatched through ``parallel_for`` use ``device_view()``
- Arithmetic preserves size and executor and runs as a kernel
"""

import numbers
import operator
from typing import Any, Callable, Optional, Union

import numpy as np

from ..core.errors import (
    ExecutorMismatchError, FieldAllocationError, FieldRangeError,
    ResidencyError, ShapeMismatchError
)
from ..core.executor import (
    Executor, MemorySpace, SerialExecutor, memory_space, parallel_for,
    parallel_reduce, same_memory_space
)
from ..core.primitives import base_dtype, element_shape, scalar


def _expand(values: np.ndarray, ndim: int) -> np.ndarray:
    """Append unit axes so scalar rows broadcast against vector rows."""
    return values.reshape(values.shape + (1,) * (ndim - values.ndim))


class Field:
    """Fixed-size typed buffer living on an executor.

    Args:
        executor: Executor that owns the buffer
        size: Number of elements (must be non-negative)
        dtype: Element type; defaults to ``scalar``
    """

    def __init__(self, executor: Executor, size: int, dtype: Any = scalar):
        size = operator.index(size)
        if size < 0:
            raise FieldAllocationError(f"Cannot allocate a Field of negative size {size}")

        self._executor = executor
        self._dtype = np.dtype(dtype)
        self._size = size

        try:
            self._buffer = np.zeros((size,) + element_shape(self._dtype), dtype=base_dtype(self._dtype))
        except (MemoryError, ValueError) as exc:
            raise FieldAllocationError(
                f"Failed to allocate {size} elements of {self._dtype} on {executor}"
            ) from exc

    @classmethod
    def from_array(cls, executor: Executor, values: Any, dtype: Optional[Any] = None) -> "Field":
        """Create a Field holding a copy of host ``values``."""
        if dtype is None:
            host = np.asarray(values)
            if host.ndim == 0:
                raise ShapeMismatchError("Field values must be at least one-dimensional")
            dtype = np.dtype((host.dtype, host.shape[1:])) if host.ndim > 1 else host.dtype
        else:
            host = np.asarray(values, dtype=base_dtype(dtype))

        expected = element_shape(dtype)
        if host.ndim == 0 or host.shape[1:] != expected:
            raise ShapeMismatchError(
                f"Values of shape {host.shape} do not hold elements of shape {expected}"
            )

        result = cls(executor, host.shape[0], dtype)
        np.copyto(result._buffer, host)
        return result

    # Properties

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def size(self) -> int:
        return self._size

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def value_shape(self) -> tuple:
        return element_shape(self._dtype)

    @property
    def read_only(self) -> bool:
        return not self._buffer.flags.writeable

    def set_read_only(self) -> None:
        """Freeze the buffer; any later write raises ``ValueError``."""
        self._buffer.flags.writeable = False

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"Field(executor={self._executor}, size={self._size}, dtype={self._dtype})"

    # Residency

    def _require_host(self) -> None:
        if memory_space(self._executor) is not MemorySpace.HOST:
            raise ResidencyError(
                f"Field data lives on {self._executor}; use copy_to_host() before reading it"
            )

    def span(self) -> np.ndarray:
        """Host view of the whole buffer."""
        self._require_host()
        return self._buffer

    def device_view(self) -> np.ndarray:
        """Raw buffer for kernels running in this Field's memory space."""
        return self._buffer

    def copy_to_executor(self, executor: Executor) -> "Field":
        """Synchronous copy of this Field onto ``executor``."""
        result = Field(executor, self._size, self._dtype)
        np.copyto(result._buffer, self._buffer)
        return result

    def copy_to_host(self) -> "Field":
        """Synchronous host copy reflecting the current state."""
        return self.copy_to_executor(SerialExecutor())

    # Element access

    def _check_index(self, index: Any) -> int:
        index = operator.index(index)
        if index < 0 or index >= self._size:
            raise FieldRangeError(f"Index {index} out of range for Field of size {self._size}")
        return index

    def __getitem__(self, index: int) -> Any:
        self._require_host()
        value = self._buffer[self._check_index(index)]
        return value.copy() if isinstance(value, np.ndarray) else value

    def __setitem__(self, index: int, value: Any) -> None:
        self._require_host()
        self._buffer[self._check_index(index)] = value

    # Kernels

    def fill(self, value: Any) -> "Field":
        """Set every element to ``value``."""
        buffer = self._buffer

        def kernel(start: int, stop: int) -> None:
            buffer[start:stop] = value

        parallel_for(self._executor, self._size, kernel)
        return self

    def apply(self, func: Callable[[np.ndarray], np.ndarray]) -> "Field":
        """Set elements from ``func(indices)`` evaluated per index range."""
        buffer = self._buffer

        def kernel(start: int, stop: int) -> None:
            buffer[start:stop] = func(np.arange(start, stop))

        parallel_for(self._executor, self._size, kernel)
        return self

    def _reduce(self, ufunc: np.ufunc, initial: Any) -> Any:
        buffer = self._buffer
        return parallel_reduce(
            self._executor, self._size,
            lambda start, stop: ufunc.reduce(buffer[start:stop], axis=0),
            ufunc, initial
        )

    def sum(self) -> Any:
        return self._reduce(np.add, np.zeros(self.value_shape, dtype=self._buffer.dtype))

    def min(self) -> Any:
        if self._size == 0:
            raise ValueError("min() of an empty Field")
        return self._reduce(np.minimum, self._buffer.dtype.type(np.inf) if self._buffer.dtype.kind == "f"
                            else np.iinfo(self._buffer.dtype).max)

    def max(self) -> Any:
        if self._size == 0:
            raise ValueError("max() of an empty Field")
        return self._reduce(np.maximum, self._buffer.dtype.type(-np.inf) if self._buffer.dtype.kind == "f"
                            else np.iinfo(self._buffer.dtype).min)

    # Arithmetic

    def _check_compatible(self, other: "Field") -> None:
        if other._size != self._size:
            raise ShapeMismatchError(f"Field sizes differ: {self._size} and {other._size}")
        if not same_memory_space(self._executor, other._executor):
            raise ExecutorMismatchError(
                f"Fields live on {self._executor} and {other._executor}; copy one of them first"
            )

    def _operand(self, other: Union["Field", numbers.Number], ufunc: np.ufunc):
        """Return (rhs buffer or number, result element shape) for ``self <op> other``."""
        if isinstance(other, Field):
            self._check_compatible(other)
            if ufunc is np.multiply:
                try:
                    shape = np.broadcast_shapes(self.value_shape, other.value_shape)
                except ValueError:
                    raise ShapeMismatchError(
                        f"Cannot multiply elements of shape {self.value_shape} and {other.value_shape}"
                    ) from None
            elif other.value_shape != self.value_shape:
                raise ShapeMismatchError(
                    f"Element shapes differ: {self.value_shape} and {other.value_shape}"
                )
            else:
                shape = self.value_shape
            return other._buffer, shape
        if isinstance(other, numbers.Number):
            return other, self.value_shape
        return NotImplemented, None

    def _binary(self, other: Any, ufunc: np.ufunc, reflected: bool = False) -> "Field":
        rhs, shape = self._operand(other, ufunc)
        if rhs is NotImplemented:
            return NotImplemented

        lhs = self._buffer
        base = np.result_type(lhs.dtype, rhs.dtype if isinstance(rhs, np.ndarray) else rhs)
        result = Field(self._executor, self._size, np.dtype((base, shape)) if shape else base)
        out = result._buffer
        ndim = out.ndim

        def kernel(start: int, stop: int) -> None:
            a = _expand(lhs[start:stop], ndim)
            b = _expand(rhs[start:stop], ndim) if isinstance(rhs, np.ndarray) else rhs
            if reflected:
                a, b = b, a
            ufunc(a, b, out=out[start:stop])

        parallel_for(self._executor, self._size, kernel)
        return result

    def _inplace(self, other: Any, ufunc: np.ufunc) -> "Field":
        rhs, shape = self._operand(other, ufunc)
        if rhs is NotImplemented:
            return NotImplemented
        if shape != self.value_shape:
            raise ShapeMismatchError(
                f"In-place result of shape {shape} does not fit elements of shape {self.value_shape}"
            )

        lhs = self._buffer
        ndim = lhs.ndim

        def kernel(start: int, stop: int) -> None:
            b = _expand(rhs[start:stop], ndim) if isinstance(rhs, np.ndarray) else rhs
            ufunc(lhs[start:stop], b, out=lhs[start:stop])

        parallel_for(self._executor, self._size, kernel)
        return self

    def __add__(self, other):
        return self._binary(other, np.add)

    def __radd__(self, other):
        return self._binary(other, np.add, reflected=True)

    def __sub__(self, other):
        return self._binary(other, np.subtract)

    def __rsub__(self, other):
        return self._binary(other, np.subtract, reflected=True)

    def __mul__(self, other):
        return self._binary(other, np.multiply)

    def __rmul__(self, other):
        return self._binary(other, np.multiply, reflected=True)

    def __neg__(self):
        return self._binary(-1, np.multiply)

    def __iadd__(self, other):
        return self._inplace(other, np.add)

    def __isub__(self, other):
        return self._inplace(other, np.subtract)

    def __imul__(self, other):
        return self._inplace(other, np.multiply)
