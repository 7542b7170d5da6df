from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, Union

from . import semantic
from .config import StorageConfig, resolve_config
from .container import StridedAccessMixin, StridedContainer
from .exceptions import InvalidOperation, InvalidShape
from .layout import Layout, ShapeLike, StrideMeta, normalize_layout
from .ownership import ContainerStorage, Ownership, Pointer, PointerStorage, Storage

logger = logging.getLogger(__name__)


class TensorAdaptor(StridedAccessMixin):
    """
    Shaped, strided view over storage the adaptor does not allocate.

    The geometry belongs to the adaptor but the buffer identity is fixed by the
    wrapped object: writes through the adaptor land in the caller's container
    or pointer memory, and assignment copies into that storage instead of
    replacing it. Non-owning adaptors must not outlive the object they wrap.
    """

    can_rebind_storage = False

    def __init__(
        self,
        storage: Storage,
        shape: Optional[ShapeLike] = None,
        layout: Union[Layout, str, None] = None,
        *,
        strides: Optional[Sequence[int]] = None,
        rank: Optional[int] = None,
        config: Optional[StorageConfig] = None,
    ):
        self._config = resolve_config(config)
        self._storage = storage
        if shape is None:
            if strides is not None:
                raise InvalidShape("Strides given without a shape", strides=strides)
            shape = (len(storage),)
        if strides is not None:
            meta = StrideMeta(shape, strides=strides, rank=rank)
        else:
            layout = normalize_layout(layout if layout is not None else self._config.layout)
            meta = StrideMeta(shape, layout, rank=rank)
        self._ensure_capacity(meta)
        self._meta = meta

    @property
    def meta(self) -> StrideMeta:
        return self._meta

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def ownership(self) -> Ownership:
        return getattr(self._storage, "ownership", Ownership.NONE)

    def _ensure_capacity(self, meta: StrideMeta) -> None:
        needed = meta.required_size
        current = len(self._storage)
        if current >= needed:
            return
        if not self._storage.resizable:
            raise InvalidShape(
                f"Adapted buffer of {current} elements is too small, {needed} required",
                shape=meta.shape,
                strides=meta.strides,
            )
        logger.debug("Growing adapted buffer from %d to %d elements", current, needed)
        self._storage.resize(needed, self._config.fill_value)

    def reshape(
        self,
        shape: ShapeLike,
        layout: Union[Layout, str, None] = None,
        *,
        strides: Optional[Sequence[int]] = None,
    ) -> "TensorAdaptor":
        """Change the view geometry, growing the wrapped buffer only when it is too short."""
        if strides is not None:
            planned = self._meta.plan_restride(shape, strides)
        else:
            if layout is None:
                layout = self.layout if self.layout is not Layout.DYNAMIC else self._config.layout
            planned = self._meta.plan_reshape(shape, layout)
        self._ensure_capacity(planned)
        self._meta.assign(planned)
        return self

    def assign(self, expr: Any) -> "TensorAdaptor":
        return semantic.assign(self, expr)

    def copy_from(self, other: StridedContainer) -> "TensorAdaptor":
        """
        Copy the geometry and the whole buffer of ``other`` into this adaptor's
        storage. The wrapped object is overwritten, not replaced.
        """
        if self.closed:
            raise InvalidOperation("Cannot copy into an adaptor whose memory was released")
        source = other.storage
        needed = len(source)
        current = len(self._storage)
        if needed > current and not self._storage.resizable:
            raise InvalidOperation(
                f"Adapted buffer of {current} elements cannot receive {needed} elements"
            )
        self._meta.check_rank(other.shape)
        values = source.read_block()
        if needed != current and self._storage.resizable:
            self._storage.resize(needed, self._config.fill_value)
        self._meta.assign(other.meta)
        if self.dtype is not None and values.dtype != self.dtype:
            values = values.astype(self.dtype)
        self._storage.write_block(values)
        return self

    def close(self) -> None:
        """Release acquired memory now; a no-op for borrowed storage."""
        self._storage.close()

    @property
    def closed(self) -> bool:
        return bool(getattr(self._storage, "closed", False))

    def __enter__(self) -> "TensorAdaptor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __copy__(self) -> "TensorAdaptor":
        duplicate = getattr(self._storage, "duplicate", None)
        storage = duplicate() if callable(duplicate) else self._storage
        clone = TensorAdaptor.__new__(TensorAdaptor)
        clone._config = self._config
        clone._storage = storage
        clone._meta = self._meta.copy()
        return clone

    def __repr__(self) -> str:
        target = type(self._storage.target).__name__ if not self.closed else "released"
        return (
            f"TensorAdaptor(shape={self.shape}, strides={self.strides}, "
            f"ownership={self.ownership.value}, target={target})"
        )


def adapt(
    container: Any,
    shape: Optional[ShapeLike] = None,
    layout: Union[Layout, str, None] = None,
    *,
    strides: Optional[Sequence[int]] = None,
    rank: Optional[int] = None,
    config: Optional[StorageConfig] = None,
) -> TensorAdaptor:
    """
    Adapt an external sequence (list, ``array.array``, ``bytearray`` or 1-D
    numpy array) without taking ownership.

    Without ``shape`` the adaptor is a flat 1-D view of the container's current
    length. A resizable container that is too short for ``shape`` is grown.
    """
    if isinstance(container, Pointer):
        return adapt_pointer(
            container, None, Ownership.NONE, shape, layout, strides=strides, rank=rank, config=config
        )
    storage = ContainerStorage(container)
    return TensorAdaptor(storage, shape, layout, strides=strides, rank=rank, config=config)


def adapt_pointer(
    pointer: Any,
    length: Optional[int] = None,
    ownership: Union[Ownership, str, None] = Ownership.NONE,
    shape: Optional[ShapeLike] = None,
    layout: Union[Layout, str, None] = None,
    *,
    strides: Optional[Sequence[int]] = None,
    rank: Optional[int] = None,
    config: Optional[StorageConfig] = None,
) -> TensorAdaptor:
    """
    Adapt ``length`` elements of raw pointer memory.

    With ``Ownership.ACQUIRE`` the adaptor takes over the memory: the pointer's
    deleter runs once when the adaptor is closed or collected, and the caller
    must not release the block itself. Pass ``pointer.move()`` to make the
    transfer explicit; the moved-from handle is then unusable.
    """
    storage = PointerStorage(pointer, length, ownership)
    try:
        return TensorAdaptor(storage, shape, layout, strides=strides, rank=rank, config=config)
    except Exception:
        storage.detach()
        raise
