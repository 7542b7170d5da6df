import copy
import ctypes
from array import array

import numpy as np
import pytest

from strided import (
    FunctionExpression,
    InvalidOperation,
    InvalidShape,
    Layout,
    Ownership,
    Pointer,
    Tensor,
    TensorAdaptor,
    adapt,
    adapt_pointer,
)


def test_adapt_list_writes_through():
    v = [0, 0, 0, 0]
    a1 = adapt(v, (2, 2))
    a1[0, 1] = 1
    assert v[a1.strides[1]] == 1
    assert v == [0, 1, 0, 0]


def test_adapt_list_with_explicit_strides():
    v = [0, 0, 0, 0]
    a2 = adapt(v, (2, 2), strides=(2, 1))
    a2[1, 0] = 1
    assert v[2] == 1


def test_adapt_defaults_to_flat_view():
    v0 = [0, 0, 0, 0]
    a0 = adapt(v0)
    assert a0.shape == (4,)
    a0[0] = 1
    a0[3] = 3
    assert v0 == [1, 0, 0, 3]
    assert a0.data is v0


def test_adapt_column_major():
    v = [0] * 6
    a = adapt(v, (2, 3), Layout.COLUMN_MAJOR)
    a[1, 0] = 5
    assert v[1] == 5
    assert a.strides == (1, 2)


def test_adaptors_over_same_buffer_alias():
    v = [0] * 4
    rows = adapt(v, (2, 2))
    cols = adapt(v, (2, 2), "column_major")
    rows[0, 1] = 8
    assert cols[1, 0] == 8


def test_adapt_grows_resizable_container():
    v = [1, 2]
    a = adapt(v, (2, 2))
    assert len(v) == 4
    assert v[:2] == [1, 2]
    a[1, 1] = 4
    assert v[3] == 4


def test_adapt_grows_array_module_container():
    values = array("d", [1.0])
    a = adapt(values, (3,))
    assert len(values) == 3
    assert a.dtype == np.float64
    a[2] = 2.5
    assert values[2] == 2.5


def test_adapt_one_dimensional_numpy_array():
    buffer = np.zeros(4)
    a = adapt(buffer, (2, 2))
    a[1, 1] = 5
    assert buffer[3] == 5
    assert a.data is buffer
    assert a.to_numpy().base is not None


def test_adapted_numpy_array_never_grows():
    buffer = np.arange(4.0)
    alias = buffer[:2]
    with pytest.raises(InvalidShape):
        adapt(buffer, (3, 3))
    a = adapt(buffer, (2, 2))
    view = a.to_numpy()
    with pytest.raises(InvalidShape):
        a.reshape((3, 3))
    with pytest.raises(InvalidOperation):
        a.assign(np.full(200000, 7.0))
    with pytest.raises(InvalidOperation):
        a.copy_from(Tensor((3, 3), 7.0))
    assert len(buffer) == 4
    assert a.shape == (2, 2)
    assert alias.tolist() == [0.0, 1.0]
    assert view.tolist() == [[0.0, 1.0], [2.0, 3.0]]


def test_adapted_numpy_array_can_receive_smaller_result():
    buffer = np.zeros(6)
    a = adapt(buffer, (2, 3))
    a.assign([[1, 2], [3, 4]])
    assert buffer.tolist() == [1.0, 2.0, 3.0, 4.0, 0.0, 0.0]
    assert a.data is buffer


def test_adapt_non_contiguous_numpy_view():
    base = np.arange(8.0)
    a = adapt(base[::2], (2, 2))
    assert [a[i, j] for i in range(2) for j in range(2)] == [0.0, 2.0, 4.0, 6.0]
    assert a.to_list() == [[0.0, 2.0], [4.0, 6.0]]
    assert Tensor(a).to_list() == [[0.0, 2.0], [4.0, 6.0]]
    a.to_numpy()[1, 1] = -1.0
    assert base[6] == -1.0
    assert base[7] == 7.0


def test_adapt_reversed_numpy_view():
    base = np.arange(4.0)
    a = adapt(base[::-1], (2, 2))
    assert a.to_list() == [[3.0, 2.0], [1.0, 0.0]]
    t = Tensor()
    t.assign(a)
    assert t.to_list() == [[3.0, 2.0], [1.0, 0.0]]
    a.assign([[9, 8], [7, 6]])
    assert base.tolist() == [6.0, 7.0, 8.0, 9.0]


def test_list_of_int_keeps_int_elements():
    v = [1, 2, 3]
    adapt(v).assign(FunctionExpression((3,), lambda i: i))
    assert v == [0, 1, 2]
    assert all(type(x) is int for x in v)
    w = [5, 6]
    adapt(w, (2,)).assign(adapt([1, 2, 3, 4], (2, 2)))
    assert w == [1, 2, 3, 4]
    assert all(type(x) is int for x in w)


def test_adapt_rejects_multidimensional_numpy_array():
    with pytest.raises(InvalidShape):
        adapt(np.zeros((2, 2)))


def test_adapt_rejects_immutable_sequence():
    with pytest.raises(InvalidOperation):
        adapt((1, 2, 3))


def test_pointer_no_ownership():
    data = Pointer.allocate(4, "int32")
    a1 = adapt_pointer(data, 4, Ownership.NONE, (2, 2))
    a1[0, 1] = 1
    assert data[a1.strides[1]] == 1
    a2 = adapt_pointer(data, 4, "no_ownership", (2, 2), strides=(2, 1))
    a2[1, 0] = 1
    assert data[2] == 1
    a2.close()
    assert data.valid


def test_pointer_over_ctypes_memory():
    data = (ctypes.c_double * 4)()
    a = adapt_pointer(data, 4, Ownership.NONE, (2, 2))
    a[1, 0] = 2.5
    assert data[2] == 2.5


def test_pointer_reinterprets_raw_bytes():
    raw = bytearray(16)
    a = adapt_pointer(Pointer(raw, "int32"), 4, shape=(2, 2))
    a[1, 1] = 7
    assert np.frombuffer(raw, dtype=np.int32)[3] == 7
    assert a.dtype == np.int32


def test_pointer_adaptor_flat_default():
    data = Pointer.allocate(4)
    a0 = adapt_pointer(data, 4, Ownership.NONE)
    a0[3] = 3
    assert data[3] == 3
    assert adapt(data).shape == (4,)


def test_pointer_acquire_ownership(release_counter):
    data = Pointer.allocate(4, "int32", deleter=release_counter)
    data2 = Pointer.allocate(4, "int32", deleter=release_counter)
    a1 = adapt_pointer(data, 4, Ownership.ACQUIRE, (2, 2))
    a1[0, 1] = 1
    assert data[a1.strides[1]] == 1
    a2 = adapt_pointer(data2, 4, Ownership.ACQUIRE, (2, 2), strides=(2, 1))
    a2[1, 0] = 1
    assert data2[2] == 1
    assert a1.ownership is Ownership.ACQUIRE
    a1.close()
    a2.close()
    assert release_counter.count == 2


def test_acquired_memory_is_released_exactly_once(release_counter, collect):
    data = Pointer.allocate(4, deleter=release_counter)
    a = adapt_pointer(data, 4, Ownership.ACQUIRE, (2, 2))
    a.close()
    a.close()
    del a
    collect()
    assert release_counter.count == 1
    assert data.released


def test_acquired_memory_released_on_collection(release_counter, collect):
    data = Pointer.allocate(4, deleter=release_counter)
    a = adapt_pointer(data, 4, Ownership.ACQUIRE, (2, 2))
    a[0, 0] = 1
    del a
    collect()
    assert release_counter.count == 1
    with pytest.raises(InvalidOperation):
        data[0]


def test_context_manager_releases_acquired_memory(release_counter):
    with adapt_pointer(Pointer.allocate(4, deleter=release_counter), 4, "acquire_ownership") as a:
        a[1] = 2.0
        assert not a.closed
    assert a.closed
    assert release_counter.count == 1
    with pytest.raises(InvalidOperation):
        a[1]


def test_non_owning_adaptor_never_releases(release_counter, collect):
    data = Pointer.allocate(4, deleter=release_counter)
    a = adapt_pointer(data, 4, Ownership.NONE, (2, 2))
    a.close()
    del a
    collect()
    assert release_counter.count == 0
    assert data.valid


def test_move_pointer_acquire_ownership(release_counter):
    data = Pointer.allocate(4, "int32", deleter=release_counter)
    a1 = adapt_pointer(data.move(), 4, Ownership.ACQUIRE, (2, 2))
    assert not data.valid
    with pytest.raises(InvalidOperation):
        data[0]
    a1[0, 1] = 1
    assert a1.data[a1.strides[1]] == 1
    a1.close()
    assert release_counter.count == 1


def test_pointer_cannot_be_acquired_twice(release_counter):
    data = Pointer.allocate(4, deleter=release_counter)
    a = adapt_pointer(data, 4, Ownership.ACQUIRE)
    with pytest.raises(InvalidOperation, match="already owned"):
        adapt_pointer(data, 4, Ownership.ACQUIRE)
    a.close()
    assert release_counter.count == 1


def test_acquired_pointer_cannot_be_moved(release_counter):
    data = Pointer.allocate(4, deleter=release_counter)
    memory = data.memory
    a = adapt_pointer(data, 4, Ownership.ACQUIRE)
    with pytest.raises(InvalidOperation, match="cannot be moved"):
        data.move()
    assert data.valid
    a.close()
    assert release_counter.released == [memory]


def test_failed_acquisition_leaves_pointer_with_caller(release_counter, collect):
    data = Pointer.allocate(4, deleter=release_counter)
    with pytest.raises(InvalidShape):
        adapt_pointer(data, 4, Ownership.NONE, (3, 3))
    with pytest.raises(InvalidShape):
        adapt_pointer(data, 4, Ownership.ACQUIRE, (2, 2), rank=3)
    collect()
    assert not data.acquired
    assert release_counter.count == 0


def test_pointer_length_exceeding_memory_is_rejected():
    with pytest.raises(InvalidShape):
        adapt_pointer(Pointer.allocate(2), 4)


def test_non_owning_pointer_reshape_cannot_grow():
    data = Pointer.allocate(4)
    a = adapt_pointer(data, 4, Ownership.NONE, (2, 2))
    with pytest.raises(InvalidShape):
        a.reshape((3, 3))
    assert a.shape == (2, 2)
    a.reshape((4,))
    assert a.strides == (1,)


def test_acquired_pointer_reshape_reallocates(release_counter):
    data = Pointer.allocate(4, deleter=release_counter)
    a = adapt_pointer(data, 4, Ownership.ACQUIRE, (2, 2))
    a[1, 1] = 4.0
    a.reshape((3, 3))
    assert release_counter.count == 1
    assert len(a.data) == 9
    assert a.data[3] == 4.0
    a.close()
    assert release_counter.count == 1


def test_copy_from_overwrites_referenced_container():
    v = [0] * 4
    a = adapt(v, (2, 2))
    source = Tensor.from_nested([[1, 2, 3], [4, 5, 6]])
    a.copy_from(source)
    assert a.data is v
    assert v == [1, 2, 3, 4, 5, 6]
    assert a.shape == (2, 3)
    assert a[1, 0] == 4


def test_copy_from_adaptor_copies_values_not_reference():
    v = [0] * 4
    w = [1, 2, 3, 4]
    a = adapt(v, (2, 2))
    b = adapt(w, (4,))
    a.copy_from(b)
    assert a.data is v
    assert v == [1, 2, 3, 4]
    w[0] = 99
    assert v[0] == 1


def test_copy_from_into_fixed_pointer_checks_size_first():
    data = Pointer(np.array([1.0, 2.0, 3.0, 4.0]))
    a = adapt_pointer(data, 4, Ownership.NONE, (2, 2))
    with pytest.raises(InvalidOperation):
        a.copy_from(Tensor((3, 3), 9.0))
    assert data.as_array().tolist() == [1.0, 2.0, 3.0, 4.0]
    assert a.shape == (2, 2)


def test_shallow_copy_of_borrowing_adaptor_aliases():
    v = [0] * 4
    a = adapt(v, (2, 2))
    b = copy.copy(a)
    b[0, 0] = 9
    assert v[0] == 9
    assert b.data is v


def test_shallow_copy_of_acquiring_adaptor_duplicates(release_counter):
    data = Pointer.allocate(4, deleter=release_counter)
    a = adapt_pointer(data, 4, Ownership.ACQUIRE, (2, 2))
    a[0, 0] = 1.0
    b = copy.copy(a)
    b[0, 0] = 2.0
    assert a[0, 0] == 1.0
    b.close()
    assert release_counter.count == 0
    a.close()
    assert release_counter.count == 1


def test_fixed_rank_adaptor():
    v = [0] * 4
    a = adapt(v, (2, 2), rank=2)
    with pytest.raises(InvalidShape):
        a.reshape((4,))
    with pytest.raises(InvalidShape):
        adapt(v, rank=2)


def test_adaptor_repr_mentions_ownership():
    a = adapt([0, 0])
    assert "no_ownership" in repr(a)
    assert isinstance(a, TensorAdaptor)
