from __future__ import annotations

from typing import Optional, Sequence


class StridedError(Exception):
    """Base class for strided-specific exceptions."""


class InvalidShape(StridedError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        shape: Optional[Sequence[int]] = None,
        strides: Optional[Sequence[int]] = None,
    ):
        detail = _format_geometry(shape=shape, strides=strides)
        super().__init__(f"{message}{detail}")
        self.shape = None if shape is None else tuple(shape)
        self.strides = None if strides is None else tuple(strides)


class OutOfRange(StridedError, IndexError):
    def __init__(
        self,
        message: str,
        *,
        index: Optional[Sequence[int]] = None,
        shape: Optional[Sequence[int]] = None,
    ):
        detail = _format_geometry(index=index, shape=shape)
        super().__init__(f"{message}{detail}")
        self.index = None if index is None else tuple(index)
        self.shape = None if shape is None else tuple(shape)


class InvalidOperation(StridedError, RuntimeError):
    pass


def _format_geometry(
    *,
    index: Optional[Sequence[int]] = None,
    shape: Optional[Sequence[int]] = None,
    strides: Optional[Sequence[int]] = None,
) -> str:
    parts = []
    if index is not None:
        parts.append(f"index {tuple(index)}")
    if shape is not None:
        parts.append(f"shape {tuple(shape)}")
    if strides is not None:
        parts.append(f"strides {tuple(strides)}")
    if not parts:
        return ""
    return f" ({', '.join(parts)})"
