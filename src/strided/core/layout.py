from __future__ import annotations

import itertools
from enum import Enum
from typing import Iterator, Optional, Sequence, Tuple, Union

from .exceptions import InvalidOperation, InvalidShape, OutOfRange

Shape = Tuple[int, ...]
Strides = Tuple[int, ...]
ShapeLike = Union[int, Sequence[int]]


class Layout(str, Enum):
    ROW_MAJOR = "row_major"
    COLUMN_MAJOR = "column_major"
    DYNAMIC = "dynamic"


_LAYOUT_NAMES = {
    "row_major": Layout.ROW_MAJOR,
    "c": Layout.ROW_MAJOR,
    "column_major": Layout.COLUMN_MAJOR,
    "f": Layout.COLUMN_MAJOR,
    "dynamic": Layout.DYNAMIC,
}


def normalize_layout(layout: Union[Layout, str]) -> Layout:
    if isinstance(layout, Layout):
        return layout
    resolved = _LAYOUT_NAMES.get(str(layout).lower())
    if resolved is None:
        raise ValueError(f"Unsupported layout: {layout!r}")
    return resolved


def normalize_shape(shape: ShapeLike) -> Shape:
    if isinstance(shape, int):
        shape = (shape,)
    try:
        dims = tuple(int(dim) for dim in shape)
    except (TypeError, ValueError) as exc:
        raise InvalidShape(f"Shape must be a sequence of integers, got {shape!r}") from exc
    if any(dim < 0 for dim in dims):
        raise InvalidShape("Shape extents must be non-negative", shape=dims)
    return dims


def normalize_strides(strides: Sequence[int], shape: Shape) -> Strides:
    values = tuple(int(s) for s in strides)
    if len(values) != len(shape):
        raise InvalidShape("Strides rank does not match shape rank", shape=shape, strides=values)
    return values


def linear_size(shape: Sequence[int]) -> int:
    """Number of elements addressed by ``shape``; ``()`` is a scalar of size 1."""
    result = 1
    for dim in shape:
        result *= int(dim)
    return result


def compute_backstrides(shape: Sequence[int], strides: Sequence[int]) -> Strides:
    return tuple(
        0 if dim == 0 else int(stride) * (int(dim) - 1) for dim, stride in zip(shape, strides)
    )


def compute_strides(shape: Sequence[int], layout: Union[Layout, str] = Layout.ROW_MAJOR) -> Tuple[Strides, Strides]:
    """
    Derive ``(strides, backstrides)`` for a contiguous buffer.

    Row-major strides are accumulated right to left so the last dimension moves
    fastest; column-major strides left to right. A dimension of extent 0 gets
    stride 0: no index along it is ever valid.
    """
    layout = normalize_layout(layout)
    if layout is Layout.DYNAMIC:
        raise InvalidOperation("Dynamic layout has no derived strides; pass strides explicitly")
    dims = tuple(int(d) for d in shape)
    strides = [0] * len(dims)
    order = range(len(dims) - 1, -1, -1) if layout is Layout.ROW_MAJOR else range(len(dims))
    running = 1
    for axis in order:
        strides[axis] = 0 if dims[axis] == 0 else running
        running *= dims[axis]
    result = tuple(strides)
    return result, compute_backstrides(dims, result)


def infer_layout(shape: Sequence[int], strides: Sequence[int]) -> Layout:
    strides = tuple(int(s) for s in strides)
    for candidate in (Layout.ROW_MAJOR, Layout.COLUMN_MAJOR):
        if compute_strides(shape, candidate)[0] == strides:
            return candidate
    return Layout.DYNAMIC


def offset(index: Sequence[int], strides: Sequence[int]) -> int:
    result = 0
    for i, stride in zip(index, strides):
        result += int(i) * int(stride)
    return result


def checked_offset(index: Sequence[int], shape: Sequence[int], strides: Sequence[int]) -> int:
    index = tuple(index)
    if len(index) != len(shape):
        raise InvalidOperation(
            f"Index of rank {len(index)} used on a container of rank {len(shape)}"
        )
    for i, dim in zip(index, shape):
        if not 0 <= int(i) < int(dim):
            raise OutOfRange("Index out of bounds", index=index, shape=shape)
    return offset(index, strides)


def required_size(shape: Sequence[int], strides: Sequence[int]) -> int:
    """Smallest buffer length that holds every offset reachable through ``strides``."""
    if len(shape) != len(strides):
        raise InvalidShape("Strides rank does not match shape rank", shape=shape, strides=strides)
    if any(int(dim) == 0 for dim in shape):
        return 0
    highest = 0
    lowest = 0
    for dim, stride in zip(shape, strides):
        reach = int(stride) * (int(dim) - 1)
        if reach > 0:
            highest += reach
        else:
            lowest += reach
    if lowest < 0:
        raise InvalidShape(
            "Negative strides would address memory before the buffer start",
            shape=shape,
            strides=strides,
        )
    return highest + 1


def iter_indices(shape: Sequence[int], layout: Union[Layout, str] = Layout.ROW_MAJOR) -> Iterator[Shape]:
    """Yield every multi-index of ``shape`` in the traversal order of ``layout``."""
    layout = normalize_layout(layout)
    ranges = [range(int(dim)) for dim in shape]
    if layout is Layout.COLUMN_MAJOR:
        for rev in itertools.product(*reversed(ranges)):
            yield tuple(reversed(rev))
    else:
        yield from itertools.product(*ranges)


class StrideMeta:
    """Shape, strides, back-strides and layout of one container.

    Containers only mutate their geometry through ``reshape``, ``restride`` and
    ``assign`` so the three sequences always agree in length.
    """

    __slots__ = ("_shape", "_strides", "_backstrides", "_layout", "rank")

    def __init__(
        self,
        shape: ShapeLike = (1,),
        layout: Union[Layout, str] = Layout.ROW_MAJOR,
        *,
        strides: Optional[Sequence[int]] = None,
        rank: Optional[int] = None,
    ):
        self.rank = None if rank is None else int(rank)
        self._shape: Shape = ()
        self._strides: Strides = ()
        self._backstrides: Strides = ()
        self._layout = Layout.ROW_MAJOR
        if strides is not None:
            self.restride(shape, strides)
        else:
            self.reshape(shape, layout)

    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def strides(self) -> Strides:
        return self._strides

    @property
    def backstrides(self) -> Strides:
        return self._backstrides

    @property
    def layout(self) -> Layout:
        return self._layout

    @property
    def ndim(self) -> int:
        return len(self._shape)

    @property
    def size(self) -> int:
        return linear_size(self._shape)

    @property
    def required_size(self) -> int:
        return required_size(self._shape, self._strides)

    def check_rank(self, shape: Shape) -> None:
        if self.rank is not None and len(shape) != self.rank:
            raise InvalidShape(
                f"Container has fixed rank {self.rank}, got a shape of rank {len(shape)}",
                shape=shape,
            )

    def plan_reshape(self, shape: ShapeLike, layout: Union[Layout, str]) -> "StrideMeta":
        """Return the geometry ``reshape`` would produce without applying it."""
        planned = self.copy()
        planned.reshape(shape, layout)
        return planned

    def plan_restride(self, shape: ShapeLike, strides: Sequence[int]) -> "StrideMeta":
        planned = self.copy()
        planned.restride(shape, strides)
        return planned

    def reshape(self, shape: ShapeLike, layout: Union[Layout, str] = Layout.ROW_MAJOR) -> None:
        dims = normalize_shape(shape)
        self.check_rank(dims)
        layout = normalize_layout(layout)
        strides, backstrides = compute_strides(dims, layout)
        self._shape, self._strides, self._backstrides = dims, strides, backstrides
        self._layout = layout

    def restride(self, shape: ShapeLike, strides: Sequence[int]) -> None:
        dims = normalize_shape(shape)
        self.check_rank(dims)
        values = normalize_strides(strides, dims)
        required_size(dims, values)
        self._shape, self._strides = dims, values
        self._backstrides = compute_backstrides(dims, values)
        self._layout = infer_layout(dims, values)

    def assign(self, other: "StrideMeta") -> None:
        self.check_rank(other.shape)
        self._shape = other.shape
        self._strides = other.strides
        self._backstrides = other.backstrides
        self._layout = other.layout

    def copy(self) -> "StrideMeta":
        clone = StrideMeta.__new__(StrideMeta)
        clone.rank = self.rank
        clone._shape = self._shape
        clone._strides = self._strides
        clone._backstrides = self._backstrides
        clone._layout = self._layout
        return clone

    def offset(self, index: Sequence[int]) -> int:
        return offset(index, self._strides)

    def checked_offset(self, index: Sequence[int]) -> int:
        return checked_offset(index, self._shape, self._strides)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StrideMeta):
            return NotImplemented
        return self._shape == other._shape and self._strides == other._strides

    def __repr__(self) -> str:
        return (
            f"StrideMeta(shape={self._shape}, strides={self._strides}, "
            f"layout={self._layout.value})"
        )
