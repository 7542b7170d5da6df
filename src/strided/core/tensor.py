from __future__ import annotations

from typing import Any, Optional, Sequence, Union

import numpy as np

from . import semantic
from .config import StorageConfig, resolve_config
from .container import StridedAccessMixin
from .exceptions import InvalidOperation
from .expression import ArrayExpression, Expression, as_expression, expression_dtype
from .layout import Layout, ShapeLike, StrideMeta, normalize_layout
from .literal import flatten_literal, literal_shape
from .ownership import OwnedStorage


class Tensor(StridedAccessMixin):
    """
    Dense N-dimensional container owning a flat numpy buffer.

    ``Tensor()`` holds a single default element with shape ``(1,)``.
    ``Tensor(shape)`` and ``Tensor(shape, value)`` allocate ``linear_size(shape)``
    elements laid out per ``layout``; passing ``strides`` instead sizes the
    buffer to the largest reachable offset. ``Tensor(expr)`` evaluates an
    expression (any object with ``shape`` and ``evaluate``).

    ``rank`` fixes the number of dimensions for the tensor's whole lifetime.
    """

    can_rebind_storage = True

    def __init__(
        self,
        shape: Union[ShapeLike, Expression, None] = None,
        value: Any = None,
        *,
        layout: Union[Layout, str, None] = None,
        strides: Optional[Sequence[int]] = None,
        dtype: Any = None,
        rank: Optional[int] = None,
        config: Optional[StorageConfig] = None,
    ):
        self._config = resolve_config(config)
        expr = None
        if isinstance(shape, Expression):
            if value is not None or strides is not None:
                raise InvalidOperation("A tensor built from an expression takes no value or strides")
            expr, shape = shape, None
            if dtype is None:
                dtype = expression_dtype(expr)
        if shape is None:
            shape = (1,) * rank if rank is not None else (1,)
        layout = normalize_layout(layout if layout is not None else self._config.layout)
        if strides is not None:
            self._meta = StrideMeta(shape, strides=strides, rank=rank)
        else:
            self._meta = StrideMeta(shape, layout, rank=rank)
        fill = self._config.fill_value if value is None else value
        dtype = np.dtype(dtype if dtype is not None else self._config.dtype)
        self._storage = OwnedStorage.allocate(self._meta.required_size, dtype, fill)
        if expr is not None:
            semantic.assign(self, expr)

    @classmethod
    def from_nested(
        cls,
        literal: Any,
        *,
        dtype: Any = None,
        rank: Optional[int] = None,
        config: Optional[StorageConfig] = None,
    ) -> "Tensor":
        """Build a row-major tensor from nested lists; ragged input raises ``InvalidShape``."""
        shape = literal_shape(literal)
        leaves = flatten_literal(literal)
        if dtype is None and leaves:
            dtype = np.asarray(leaves).dtype
        tensor = cls(shape, layout=Layout.ROW_MAJOR, dtype=dtype, rank=rank, config=config)
        tensor._storage.write_block(np.asarray(leaves, dtype=tensor.dtype))
        return tensor

    @classmethod
    def from_expression(
        cls,
        expr: Any,
        *,
        layout: Union[Layout, str, None] = None,
        dtype: Any = None,
        rank: Optional[int] = None,
        config: Optional[StorageConfig] = None,
    ) -> "Tensor":
        expr = as_expression(expr)
        return cls(expr, layout=layout, dtype=dtype, rank=rank, config=config)

    @classmethod
    def from_numpy(
        cls,
        array: np.ndarray,
        *,
        layout: Union[Layout, str, None] = None,
        config: Optional[StorageConfig] = None,
    ) -> "Tensor":
        return cls(ArrayExpression(array), layout=layout, config=config)

    @property
    def meta(self) -> StrideMeta:
        return self._meta

    @property
    def storage(self) -> OwnedStorage:
        return self._storage

    def reshape(
        self,
        shape: ShapeLike,
        layout: Union[Layout, str, None] = None,
        *,
        strides: Optional[Sequence[int]] = None,
    ) -> "Tensor":
        """Change the geometry; the buffer is reallocated only if its required length changes."""
        if strides is not None:
            planned = self._meta.plan_restride(shape, strides)
        else:
            if layout is None:
                layout = self.layout if self.layout is not Layout.DYNAMIC else self._config.layout
            planned = self._meta.plan_reshape(shape, layout)
        needed = planned.required_size
        if needed != len(self._storage):
            self._storage.resize(needed, self._config.fill_value)
        self._meta.assign(planned)
        return self

    def fill(self, value: Any) -> "Tensor":
        self._storage.fill(value)
        return self

    def assign(self, expr: Any) -> "Tensor":
        return semantic.assign(self, expr)

    def swap(self, other: "Tensor") -> None:
        """Exchange buffers and geometry with another owning tensor."""
        self._meta.check_rank(other.shape)
        other._meta.check_rank(self.shape)
        mine = self._meta.copy()
        self._meta.assign(other._meta)
        other._meta.assign(mine)
        self._storage.swap(other._storage)

    def copy(self) -> "Tensor":
        clone = Tensor.__new__(Tensor)
        clone._config = self._config
        clone._meta = self._meta.copy()
        clone._storage = self._storage.copy()
        return clone

    def __copy__(self) -> "Tensor":
        return self.copy()

    def __deepcopy__(self, memo: dict) -> "Tensor":
        clone = self.copy()
        memo[id(self)] = clone
        return clone

    def __repr__(self) -> str:
        return f"Tensor({self.to_list()!r}, layout={self.layout.value}, dtype={self.dtype})"
