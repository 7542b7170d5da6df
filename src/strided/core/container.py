from __future__ import annotations

import operator
from typing import Any, Optional, Protocol, Sequence, Tuple, Union

import numpy as np

from .config import StorageConfig
from .exceptions import InvalidOperation, OutOfRange
from .layout import Layout, StrideMeta, iter_indices
from .ownership import Storage

IndexKey = Union[int, Sequence[int]]


class StridedContainer(Protocol):
    """Contract shared by :class:`~strided.Tensor` and :class:`~strided.TensorAdaptor`."""

    can_rebind_storage: bool

    @property
    def shape(self) -> Tuple[int, ...]: ...

    @property
    def strides(self) -> Tuple[int, ...]: ...

    @property
    def backstrides(self) -> Tuple[int, ...]: ...

    @property
    def layout(self) -> Layout: ...

    @property
    def dtype(self) -> Optional[np.dtype]: ...

    @property
    def meta(self) -> StrideMeta: ...

    @property
    def storage(self) -> Storage: ...

    @property
    def config(self) -> StorageConfig: ...

    def element_at(self, index: IndexKey) -> Any: ...

    def set_element(self, index: IndexKey, value: Any) -> None: ...

    def reshape(self, shape: Any, layout: Any = None, *, strides: Any = None) -> Any: ...

    def assign(self, expr: Any) -> Any: ...


def normalize_index(key: Any, ndim: int) -> Tuple[int, ...]:
    if not isinstance(key, tuple):
        key = tuple(key) if isinstance(key, list) else (key,)
    for component in key:
        if component is Ellipsis or component is None or isinstance(component, slice):
            raise InvalidOperation("Slicing is not supported: index with integers only")
    try:
        index = tuple(operator.index(component) for component in key)
    except TypeError as exc:
        raise InvalidOperation(f"Index components must be integers, got {key!r}") from exc
    if len(index) != ndim:
        raise InvalidOperation(f"Index of rank {len(index)} used on a container of rank {ndim}")
    return index


class StridedAccessMixin:
    """
    Indexing and geometry accessors over ``self._meta`` and ``self._storage``.

    ``t[i, j]`` is the fast path: only the rank is checked, plus, when the
    config enables ``bounds_check``, that the final offset falls inside the
    buffer. ``at``/``set_at`` check every index against its extent.
    """

    _meta: StrideMeta
    _storage: Storage
    _config: StorageConfig

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._meta.shape

    @property
    def strides(self) -> Tuple[int, ...]:
        return self._meta.strides

    @property
    def backstrides(self) -> Tuple[int, ...]:
        return self._meta.backstrides

    @property
    def layout(self) -> Layout:
        return self._meta.layout

    @property
    def ndim(self) -> int:
        return self._meta.ndim

    @property
    def size(self) -> int:
        return self._meta.size

    @property
    def rank(self) -> Optional[int]:
        return self._meta.rank

    @property
    def dtype(self) -> Optional[np.dtype]:
        return self._storage.dtype

    @property
    def data(self) -> Any:
        return self._storage.target

    @property
    def config(self) -> StorageConfig:
        return self._config

    def _position(self, key: Any, checked: bool) -> int:
        index = normalize_index(key, self._meta.ndim)
        if checked:
            return self._meta.checked_offset(index)
        position = self._meta.offset(index)
        if self._config.bounds_check and not 0 <= position < len(self._storage):
            raise OutOfRange(
                f"Offset {position} is outside the buffer of {len(self._storage)} elements",
                index=index,
                shape=self._meta.shape,
            )
        return position

    def element_at(self, index: IndexKey) -> Any:
        return self._storage.read(self._position(index, checked=False))

    def set_element(self, index: IndexKey, value: Any) -> None:
        self._storage.write(self._position(index, checked=False), value)

    def at(self, *index: int) -> Any:
        return self._storage.read(self._position(index, checked=True))

    def set_at(self, index: IndexKey, value: Any) -> None:
        self._storage.write(self._position(index, checked=True), value)

    def evaluate(self, index: Sequence[int]) -> Any:
        return self.element_at(tuple(index))

    def __getitem__(self, key: Any) -> Any:
        return self.element_at(key)

    def __setitem__(self, key: Any, value: Any) -> None:
        self.set_element(key, value)

    def __len__(self) -> int:
        if not self._meta.ndim:
            raise TypeError("len() of a 0-d container")
        return self._meta.shape[0]

    def assign_into(self, tensor: Any) -> None:
        tensor.to_numpy()[...] = self.to_numpy()

    def to_list(self) -> Any:
        """Nested lists of the logical elements in row-major order."""
        return self.to_numpy().tolist()

    def to_numpy(self) -> np.ndarray:
        """Logical contents as an ndarray.

        Numpy-backed storage yields a writable strided view sharing memory with
        the buffer; any other referenced container yields a copy.
        """
        target = self._storage.target
        if isinstance(target, np.ndarray):
            return strided_view(target, self._meta)
        values = [self.element_at(index) for index in iter_indices(self._meta.shape)]
        return np.asarray(values, dtype=self.dtype).reshape(self._meta.shape)


def strided_view(buffer: np.ndarray, meta: StrideMeta) -> np.ndarray:
    step = buffer.strides[0]
    return np.lib.stride_tricks.as_strided(
        buffer,
        shape=meta.shape,
        strides=tuple(stride * step for stride in meta.strides),
        writeable=True,
    )
