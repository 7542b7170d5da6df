from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from .layout import ShapeLike, normalize_shape
from .literal import flatten_literal, literal_shape

if TYPE_CHECKING:
    from .tensor import Tensor


@runtime_checkable
class Expression(Protocol):
    """Anything a container can be assigned from.

    Implementations may also provide ``dtype`` and a bulk
    ``assign_into(tensor)`` that fills an owning tensor already reshaped to
    ``shape``; the per-element ``evaluate`` path is used otherwise.
    """

    @property
    def shape(self) -> Tuple[int, ...]: ...

    def evaluate(self, index: Sequence[int]) -> Any: ...


class ArrayExpression:
    def __init__(self, array: Any):
        self.array = np.asarray(array)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(int(dim) for dim in self.array.shape)

    @property
    def dtype(self) -> np.dtype:
        return self.array.dtype

    def evaluate(self, index: Sequence[int]) -> Any:
        return self.array[tuple(index)]

    def assign_into(self, tensor: "Tensor") -> None:
        tensor.to_numpy()[...] = self.array

    def __repr__(self) -> str:
        return f"ArrayExpression(shape={self.shape}, dtype={self.dtype})"


class FunctionExpression:
    """Expression whose element at ``(i, j, ...)`` is ``func(i, j, ...)``."""

    def __init__(self, shape: ShapeLike, func: Callable[..., Any], dtype: Any = None):
        self._shape = normalize_shape(shape)
        self.func = func
        self.dtype = None if dtype is None else np.dtype(dtype)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._shape

    def evaluate(self, index: Sequence[int]) -> Any:
        return self.func(*index)

    def __repr__(self) -> str:
        return f"FunctionExpression(shape={self._shape})"


def as_expression(value: Any) -> Expression:
    if isinstance(value, Expression):
        return value
    if isinstance(value, np.ndarray):
        return ArrayExpression(value)
    if isinstance(value, (list, tuple)):
        shape = literal_shape(value)
        leaves = flatten_literal(value)
        return ArrayExpression(np.asarray(leaves).reshape(shape))
    return ArrayExpression(np.asarray(value))


def expression_dtype(expr: Expression) -> Optional[np.dtype]:
    dtype = getattr(expr, "dtype", None)
    if dtype is None:
        return None
    return np.dtype(dtype)
