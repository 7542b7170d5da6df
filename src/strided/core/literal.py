from __future__ import annotations

from typing import Any, List, MutableSequence, Tuple

import numpy as np

from .exceptions import InvalidShape


def _is_nested(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _unwrap(literal: Any) -> Any:
    if isinstance(literal, np.ndarray):
        return literal.tolist()
    return literal


def literal_shape(literal: Any) -> Tuple[int, ...]:
    """
    Infer the shape of a nested list/tuple literal.

    The extents are read along the first element of every level; every sibling
    must then agree with them, otherwise the literal is ragged and
    :class:`InvalidShape` is raised. A bare scalar has shape ``()``.
    """
    literal = _unwrap(literal)
    shape: List[int] = []
    level = literal
    while _is_nested(level):
        shape.append(len(level))
        if not level:
            break
        level = level[0]
    _check_level(literal, tuple(shape), 0, ())
    return tuple(shape)


def _check_level(node: Any, shape: Tuple[int, ...], depth: int, path: Tuple[int, ...]) -> None:
    if depth == len(shape):
        if _is_nested(node):
            raise InvalidShape(f"Ragged nested literal: unexpected nesting at {path}", shape=shape)
        return
    if not _is_nested(node):
        raise InvalidShape(f"Ragged nested literal: scalar found at {path}", shape=shape)
    if len(node) != shape[depth]:
        raise InvalidShape(
            f"Ragged nested literal: length {len(node)} at {path}, expected {shape[depth]}",
            shape=shape,
        )
    for position, child in enumerate(node):
        _check_level(child, shape, depth + 1, path + (position,))


def flatten_literal(literal: Any) -> List[Any]:
    """Leaves of ``literal`` in row-major order, after checking it is not ragged."""
    literal = _unwrap(literal)
    literal_shape(literal)
    leaves: List[Any] = []
    _collect(literal, leaves)
    return leaves


def _collect(node: Any, leaves: List[Any]) -> None:
    if _is_nested(node):
        for child in node:
            _collect(child, leaves)
    else:
        leaves.append(node)


def nested_copy(destination: MutableSequence[Any], literal: Any, start: int = 0) -> int:
    """Copy the leaves of ``literal`` into ``destination`` from ``start``.

    Returns the cursor position after the last written element.
    """
    leaves = flatten_literal(literal)
    end = start + len(leaves)
    if end > len(destination):
        raise InvalidShape(
            f"Destination of length {len(destination)} cannot hold {len(leaves)} "
            f"elements from position {start}"
        )
    for position, value in enumerate(leaves, start):
        destination[position] = value
    return end
