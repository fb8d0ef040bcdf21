"""Tests for executor-resident Fields."""

import numpy as np
import pytest

from openfvm.core import (
    CPUExecutor, ExecutorMismatchError, FieldAllocationError, FieldRangeError,
    GPUExecutor, OpenFVMError, ResidencyError, SerialExecutor, ShapeMismatchError,
    label, scalar, vector
)
from openfvm.fields import Field


def host_values(field):
    return field.copy_to_host().span()


def test_zero_initialised(executor):
    field = Field(executor, 5)
    assert field.size == 5
    assert len(field) == 5
    assert field.dtype == scalar
    assert field.executor == executor
    assert np.all(host_values(field) == 0.0)


def test_vector_field_shape(executor):
    field = Field(executor, 4, vector)
    assert field.value_shape == (3,)
    assert host_values(field).shape == (4, 3)


def test_empty_field(executor):
    field = Field(executor, 0, label)
    assert field.size == 0
    assert field.copy_to_host().size == 0


def test_negative_size():
    with pytest.raises(FieldAllocationError):
        Field(SerialExecutor(), -1)


def test_allocation_error_is_memory_error():
    with pytest.raises(MemoryError):
        Field(SerialExecutor(), -3)


def test_copy_to_host_size(executor):
    field = Field.from_array(executor, [1.0, 2.0, 3.0])
    host = field.copy_to_host()
    assert host.size == field.size
    assert host.executor == SerialExecutor()
    np.testing.assert_array_equal(host.span(), [1.0, 2.0, 3.0])


def test_copy_is_a_snapshot(executor):
    field = Field.from_array(executor, [1.0, 2.0])
    host = field.copy_to_host()
    field.fill(7.0)
    np.testing.assert_array_equal(host.span(), [1.0, 2.0])


def test_from_array_infers_vector():
    field = Field.from_array(SerialExecutor(), np.ones((3, 3)))
    assert field.dtype == vector


def test_from_array_rejects_wrong_element_shape():
    with pytest.raises(ShapeMismatchError):
        Field.from_array(SerialExecutor(), np.ones((3, 2)), vector)


def test_span_requires_host():
    field = Field(GPUExecutor(), 3)
    with pytest.raises(ResidencyError):
        field.span()
    with pytest.raises(ResidencyError):
        field[0]


def test_element_access():
    field = Field(SerialExecutor(), 3)
    field[1] = 2.5
    assert field[1] == 2.5
    np.testing.assert_array_equal(field.span(), [0.0, 2.5, 0.0])


def test_vector_element_is_a_copy():
    field = Field.from_array(SerialExecutor(), np.arange(6.0).reshape(2, 3))
    value = field[1]
    value[0] = -1.0
    np.testing.assert_array_equal(field[1], [3.0, 4.0, 5.0])


@pytest.mark.parametrize("index", [3, 10, -1])
def test_out_of_range(index):
    field = Field(SerialExecutor(), 3)
    with pytest.raises(FieldRangeError):
        field[index]
    with pytest.raises(IndexError):
        field[index] = 1.0


def test_addition(executor):
    a = Field.from_array(executor, np.arange(10.0))
    b = Field.from_array(executor, np.full(10, 2.0))
    c = a + b
    assert c.executor == executor
    assert c.size == 10
    np.testing.assert_array_equal(host_values(c), np.arange(10.0) + 2.0)


def test_subtraction_and_scaling(executor):
    a = Field.from_array(executor, np.arange(10.0))
    b = Field.from_array(executor, np.ones(10))
    np.testing.assert_array_equal(host_values(a - b), np.arange(10.0) - 1.0)
    np.testing.assert_array_equal(host_values(a * 3.0), np.arange(10.0) * 3.0)
    np.testing.assert_array_equal(host_values(2.0 * a), np.arange(10.0) * 2.0)
    np.testing.assert_array_equal(host_values(-a), -np.arange(10.0))


def test_scalar_field_scales_vectors(executor):
    values = np.arange(12.0).reshape(4, 3)
    v = Field.from_array(executor, values, vector)
    s = Field.from_array(executor, [1.0, 2.0, 3.0, 4.0])
    np.testing.assert_array_equal(host_values(v * s), values * np.array([1.0, 2.0, 3.0, 4.0])[:, None])
    np.testing.assert_array_equal(host_values(s * v), values * np.array([1.0, 2.0, 3.0, 4.0])[:, None])


def test_in_place_operations(executor):
    a = Field.from_array(executor, np.arange(5.0))
    b = Field.from_array(executor, np.ones(5))
    original = a
    a += b
    a *= 2.0
    a -= b
    assert a is original
    np.testing.assert_array_equal(host_values(a), (np.arange(5.0) + 1.0) * 2.0 - 1.0)


def test_in_place_vector_scaling(executor):
    v = Field.from_array(executor, np.ones((3, 3)), vector)
    v *= Field.from_array(executor, [1.0, 2.0, 3.0])
    np.testing.assert_array_equal(host_values(v)[:, 0], [1.0, 2.0, 3.0])


def test_size_mismatch(executor):
    a = Field(executor, 3)
    b = Field(executor, 4)
    with pytest.raises(ShapeMismatchError):
        a + b
    with pytest.raises(ValueError):
        a += b


def test_element_shape_mismatch():
    with pytest.raises(ShapeMismatchError):
        Field(SerialExecutor(), 3, vector) + Field(SerialExecutor(), 3)


def test_memory_space_mismatch():
    with pytest.raises(ExecutorMismatchError):
        Field(SerialExecutor(), 3) + Field(GPUExecutor(), 3)


def test_host_executors_interoperate():
    c = Field.from_array(SerialExecutor(), [1.0, 2.0]) + Field.from_array(CPUExecutor(), [1.0, 1.0])
    np.testing.assert_array_equal(c.span(), [2.0, 3.0])


def test_errors_share_base_class():
    with pytest.raises(OpenFVMError):
        Field(SerialExecutor(), 2) + Field(SerialExecutor(), 5)


def test_fill_and_apply(executor):
    field = Field(executor, 20, label)
    field.apply(lambda index: index * index)
    np.testing.assert_array_equal(host_values(field), np.arange(20) ** 2)
    field.fill(3)
    assert np.all(host_values(field) == 3)


def test_reductions(executor):
    field = Field.from_array(executor, np.arange(1.0, 11.0))
    assert field.sum() == 55.0
    assert field.min() == 1.0
    assert field.max() == 10.0


def test_vector_sum(executor):
    field = Field.from_array(executor, np.ones((7, 3)), vector)
    np.testing.assert_array_equal(field.sum(), [7.0, 7.0, 7.0])


def test_read_only(executor):
    field = Field.from_array(executor, [1.0, 2.0])
    field.set_read_only()
    assert field.read_only
    with pytest.raises(ValueError):
        field.fill(0.0)
    with pytest.raises(ValueError):
        field += field.copy_to_executor(executor)
