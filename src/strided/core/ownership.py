from __future__ import annotations

import logging
import weakref
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Union

import numpy as np

from .exceptions import InvalidOperation, InvalidShape

logger = logging.getLogger(__name__)

Deleter = Callable[[Any], None]


class Ownership(str, Enum):
    NONE = "no_ownership"
    ACQUIRE = "acquire_ownership"


def normalize_ownership(ownership: Union[Ownership, str, None]) -> Ownership:
    if ownership is None:
        return Ownership.NONE
    if isinstance(ownership, Ownership):
        return ownership
    lowered = str(ownership).lower()
    for member in Ownership:
        if lowered in {member.value, member.name.lower()}:
            return member
    raise ValueError(f"Unsupported ownership policy: {ownership!r}")


def _flat_view(memory: Any, dtype: Optional[np.dtype]) -> np.ndarray:
    try:
        view = memoryview(memory)
    except TypeError as exc:
        raise InvalidOperation(
            f"Pointer memory must support the buffer protocol, got {type(memory).__name__}"
        ) from exc
    if view.readonly:
        raise InvalidOperation("Pointer memory is read-only")
    if not view.c_contiguous:
        raise InvalidShape("Pointer memory must be C-contiguous")
    flat = np.asarray(memory if isinstance(memory, np.ndarray) else view).reshape(-1)
    if dtype is not None and flat.dtype != dtype:
        flat = flat.view(dtype)
    return flat


class Pointer:
    """
    Handle over a raw block of memory.

    ``memory`` is any writable object exposing the buffer protocol (numpy
    arrays, ``ctypes`` arrays, ``bytearray``). ``dtype`` reinterprets the bytes
    when the object's own format is not the element type. ``deleter`` is called
    with ``memory`` when an acquiring adaptor releases the block.

    A handle stops being usable once it has been moved from or once the memory
    was released by the adaptor that acquired it.
    """

    def __init__(self, memory: Any, dtype: Any = None, *, deleter: Optional[Deleter] = None):
        self._memory = memory
        self._dtype = None if dtype is None else np.dtype(dtype)
        self._deleter = deleter
        self._valid = True
        self._acquired = False
        self._released = False

    @classmethod
    def allocate(cls, length: int, dtype: Any = "float64", *, deleter: Optional[Deleter] = None) -> "Pointer":
        return cls(np.zeros(int(length), dtype=np.dtype(dtype)), deleter=deleter)

    @property
    def valid(self) -> bool:
        return self._valid and not self._released

    @property
    def acquired(self) -> bool:
        return self._acquired

    @property
    def released(self) -> bool:
        return self._released

    @property
    def memory(self) -> Any:
        return self._memory

    def check_valid(self) -> None:
        if self._released:
            raise InvalidOperation("Pointer memory has already been released")
        if not self._valid:
            raise InvalidOperation("Pointer was moved from and can no longer be used")

    def as_array(self, length: Optional[int] = None) -> np.ndarray:
        self.check_valid()
        flat = _flat_view(self._memory, self._dtype)
        if length is None:
            return flat
        length = int(length)
        if length < 0 or length > flat.shape[0]:
            raise InvalidShape(
                f"Pointer holds {flat.shape[0]} elements, cannot expose {length}"
            )
        return flat[:length]

    def move(self) -> "Pointer":
        """Transfer the memory to a new handle and invalidate this one."""
        self.check_valid()
        if self._acquired:
            raise InvalidOperation("Pointer is owned by an adaptor and cannot be moved")
        moved = Pointer(self._memory, self._dtype, deleter=self._deleter)
        self._valid = False
        self._memory = None
        return moved

    def _claim(self) -> None:
        self.check_valid()
        if self._acquired:
            raise InvalidOperation("Pointer is already owned by another adaptor")
        self._acquired = True

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        logger.debug("Releasing acquired pointer memory (%s)", type(self._memory).__name__)
        if self._deleter is not None:
            self._deleter(self._memory)

    def __len__(self) -> int:
        return int(self.as_array().shape[0])

    def __getitem__(self, position: int) -> Any:
        return self.as_array()[position]

    def __setitem__(self, position: int, value: Any) -> None:
        self.as_array()[position] = value

    def __repr__(self) -> str:
        state = "released" if self._released else ("valid" if self._valid else "moved")
        return f"Pointer({type(self._memory).__name__}, {state})"


class Storage(Protocol):
    """Flat, linearly indexed buffer behind a container."""

    @property
    def target(self) -> Any: ...

    @property
    def dtype(self) -> Optional[np.dtype]: ...

    @property
    def resizable(self) -> bool: ...

    def __len__(self) -> int: ...

    def resize(self, length: int, fill: Any = 0) -> None: ...

    def read(self, position: int) -> Any: ...

    def write(self, position: int, value: Any) -> None: ...

    def read_block(self, length: Optional[int] = None) -> np.ndarray: ...

    def write_block(self, values: np.ndarray) -> None: ...

    def close(self) -> None: ...


class OwnedStorage:
    """Numpy buffer held exclusively by one tensor."""

    resizable = True

    def __init__(self, array: np.ndarray):
        self._array = array

    @classmethod
    def allocate(cls, length: int, dtype: Any, fill: Any = 0) -> "OwnedStorage":
        return cls(np.full(int(length), fill, dtype=np.dtype(dtype)))

    @property
    def target(self) -> np.ndarray:
        return self._array

    @property
    def dtype(self) -> np.dtype:
        return self._array.dtype

    def __len__(self) -> int:
        return int(self._array.shape[0])

    def resize(self, length: int, fill: Any = 0) -> None:
        length = int(length)
        current = len(self)
        if length == current:
            return
        fresh = np.full(length, fill, dtype=self._array.dtype)
        common = min(length, current)
        fresh[:common] = self._array[:common]
        logger.debug("Reallocating owned buffer from %d to %d elements", current, length)
        self._array = fresh

    def swap(self, other: "OwnedStorage") -> None:
        self._array, other._array = other._array, self._array

    def read(self, position: int) -> Any:
        return self._array[position]

    def write(self, position: int, value: Any) -> None:
        self._array[position] = value

    def read_block(self, length: Optional[int] = None) -> np.ndarray:
        return self._array[:length].copy()

    def write_block(self, values: np.ndarray) -> None:
        self._array[: len(values)] = values

    def fill(self, value: Any) -> None:
        self._array.fill(value)

    def copy(self) -> "OwnedStorage":
        return OwnedStorage(self._array.copy())

    def close(self) -> None:
        return None


class ContainerStorage:
    """
    Non-owning reference to an external sequence.

    The container keeps its identity for the lifetime of the storage: resizing
    grows or truncates it in place, never replaces it. Numpy arrays are never
    resized since the caller may hold views into their memory.
    """

    def __init__(self, container: Any):
        if isinstance(container, np.ndarray) and container.ndim != 1:
            raise InvalidShape(
                "Only one-dimensional numpy arrays can be adapted", shape=container.shape
            )
        if not (hasattr(container, "__len__") and hasattr(container, "__setitem__")):
            raise InvalidOperation(
                f"Cannot adapt {type(container).__name__}: it is not a mutable sequence"
            )
        self._container = container

    @property
    def target(self) -> Any:
        return self._container

    @property
    def dtype(self) -> Optional[np.dtype]:
        container = self._container
        if isinstance(container, np.ndarray):
            return container.dtype
        if isinstance(container, (bytes, bytearray)):
            return np.dtype(np.uint8)
        typecode = getattr(container, "typecode", None)
        if typecode is not None:
            try:
                return np.dtype(typecode)
            except TypeError:
                return None
        return None

    @property
    def resizable(self) -> bool:
        container = self._container
        if isinstance(container, np.ndarray):
            return False
        if callable(getattr(container, "resize", None)):
            return True
        return hasattr(container, "extend") and hasattr(container, "__delitem__")

    def __len__(self) -> int:
        return len(self._container)

    def resize(self, length: int, fill: Any = 0) -> None:
        length = int(length)
        container = self._container
        current = len(container)
        if length == current:
            return
        if not self.resizable:
            raise InvalidOperation(
                f"Referenced {type(container).__name__} of length {current} cannot be resized to {length}"
            )
        logger.debug(
            "Resizing referenced %s from %d to %d elements",
            type(container).__name__,
            current,
            length,
        )
        if callable(getattr(container, "resize", None)):
            container.resize(length)
        elif length < current:
            del container[length:]
        else:
            container.extend([fill] * (length - current))

    def read(self, position: int) -> Any:
        return self._container[position]

    def write(self, position: int, value: Any) -> None:
        self._container[position] = value

    def read_block(self, length: Optional[int] = None) -> np.ndarray:
        container = self._container
        if length is None:
            length = len(container)
        if isinstance(container, np.ndarray):
            return container[:length].copy()
        return np.asarray([container[position] for position in range(length)], dtype=self.dtype)

    def write_block(self, values: np.ndarray) -> None:
        container = self._container
        if isinstance(container, np.ndarray):
            container[: len(values)] = values
            return
        for position, value in enumerate(np.asarray(values).tolist()):
            container[position] = value

    def duplicate(self) -> "ContainerStorage":
        return self

    def close(self) -> None:
        return None


def _release_pointer(pointer: Pointer) -> None:
    pointer._release()


class PointerStorage:
    """
    Fixed-length view over :class:`Pointer` memory.

    With :attr:`Ownership.ACQUIRE` the storage becomes responsible for the
    block: the pointer's deleter runs exactly once, on :meth:`close` or when
    the storage is garbage collected, whichever happens first.
    """

    def __init__(
        self,
        pointer: Union[Pointer, Any],
        length: Optional[int] = None,
        ownership: Union[Ownership, str, None] = Ownership.NONE,
    ):
        if not isinstance(pointer, Pointer):
            pointer = Pointer(pointer)
        self.ownership = normalize_ownership(ownership)
        view = pointer.as_array(length)
        if self.ownership is Ownership.ACQUIRE:
            pointer._claim()
            logger.debug("Acquired ownership of %d-element pointer block", view.shape[0])
        self._pointer = pointer
        self._view = view
        self._finalizer: Optional[weakref.finalize] = None
        if self.ownership is Ownership.ACQUIRE:
            self._finalizer = weakref.finalize(self, _release_pointer, pointer)

    @property
    def pointer(self) -> Pointer:
        return self._pointer

    @property
    def closed(self) -> bool:
        return self._pointer.released

    def _check_open(self) -> None:
        if self.closed:
            raise InvalidOperation("Storage was closed and its memory released")

    @property
    def target(self) -> np.ndarray:
        self._check_open()
        return self._view

    @property
    def dtype(self) -> np.dtype:
        return self._view.dtype

    @property
    def resizable(self) -> bool:
        return self.ownership is Ownership.ACQUIRE and not self.closed

    def __len__(self) -> int:
        return int(self._view.shape[0])

    def resize(self, length: int, fill: Any = 0) -> None:
        self._check_open()
        length = int(length)
        current = len(self)
        if length == current:
            return
        if not self.resizable:
            raise InvalidOperation(
                f"Pointer storage of {current} elements is not owned and cannot be resized to {length}"
            )
        fresh = np.full(length, fill, dtype=self._view.dtype)
        common = min(length, current)
        fresh[:common] = self._view[:common]
        logger.debug("Reallocating acquired pointer block from %d to %d elements", current, length)
        self._finalizer()
        replacement = Pointer(fresh)
        replacement._claim()
        self._pointer = replacement
        self._view = fresh
        self._finalizer = weakref.finalize(self, _release_pointer, replacement)

    def read(self, position: int) -> Any:
        self._check_open()
        return self._view[position]

    def write(self, position: int, value: Any) -> None:
        self._check_open()
        self._view[position] = value

    def read_block(self, length: Optional[int] = None) -> np.ndarray:
        self._check_open()
        return self._view[:length].copy()

    def write_block(self, values: np.ndarray) -> None:
        self._check_open()
        self._view[: len(values)] = values

    def duplicate(self) -> "PointerStorage":
        """Storage for a copied adaptor: aliases when borrowed, deep-copies when owned."""
        self._check_open()
        if self.ownership is Ownership.NONE:
            return self
        return PointerStorage(Pointer(self._view.copy()), None, Ownership.ACQUIRE)

    def close(self) -> None:
        if self._finalizer is not None:
            self._finalizer()

    def detach(self) -> None:
        """Give the pointer back to the caller without releasing it."""
        if self._finalizer is not None and self._finalizer.detach() is not None:
            self._pointer._acquired = False
        self._finalizer = None
