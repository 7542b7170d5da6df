from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

import numpy as np

from .config import StorageConfig
from .container import StridedContainer
from .exceptions import InvalidOperation
from .expression import Expression, as_expression, expression_dtype
from .layout import Layout, iter_indices, normalize_shape

if TYPE_CHECKING:
    from .tensor import Tensor

logger = logging.getLogger(__name__)


def temporary_layout(dest: StridedContainer) -> Layout:
    if dest.layout is Layout.DYNAMIC:
        return Layout.ROW_MAJOR
    return dest.layout


def fill_from_expression(tensor: "Tensor", expr: Expression) -> None:
    bulk = getattr(expr, "assign_into", None)
    if callable(bulk):
        bulk(tensor)
        return
    for index in iter_indices(tensor.shape, tensor.layout):
        tensor.set_element(index, expr.evaluate(index))


def evaluate(
    expr: Any,
    *,
    layout: Layout = Layout.ROW_MAJOR,
    dtype: Any = None,
    config: Optional[StorageConfig] = None,
) -> "Tensor":
    """Materialize ``expr`` into a fresh owning tensor of the expression's shape.

    Without an explicit or declared dtype the elements are evaluated first and
    the dtype is inferred from their values, so integers stay integers.
    """
    from .tensor import Tensor

    expr = as_expression(expr)
    shape = normalize_shape(expr.shape)
    if dtype is None:
        dtype = expression_dtype(expr)
    if dtype is None:
        indices = list(iter_indices(shape, layout))
        values = [expr.evaluate(index) for index in indices]
        if values:
            dtype = np.asarray(values).dtype
        tmp = Tensor(shape, layout=layout, dtype=dtype, config=config)
        for index, value in zip(indices, values):
            tmp.set_element(index, value)
        return tmp
    tmp = Tensor(shape, layout=layout, dtype=dtype, config=config)
    fill_from_expression(tmp, expr)
    return tmp


def assign(dest: Any, expr: Any) -> Any:
    """
    Extended assignment of ``expr`` into ``dest``.

    The expression is always evaluated into a temporary first, so ``dest`` may
    appear in ``expr`` and a failing evaluation leaves ``dest`` untouched. What
    happens next depends on ``dest.can_rebind_storage``:

    * owning tensors swap the temporary's buffer and geometry in;
    * adaptors keep their storage object, resize it to the temporary's length
      and copy the elements back, which costs an extra pass over the data.
    """
    expr = as_expression(expr)
    dest.meta.check_rank(normalize_shape(expr.shape))
    dtype = dest.dtype if dest.dtype is not None else expression_dtype(expr)
    tmp = evaluate(expr, layout=temporary_layout(dest), dtype=dtype, config=dest.config)
    if dest.can_rebind_storage:
        _rebind(dest, tmp)
    else:
        _copy_back(dest, tmp)
    return dest


def _rebind(dest: "Tensor", tmp: "Tensor") -> None:
    logger.debug("Assigning %s into owning tensor by buffer swap", tmp.shape)
    dest.swap(tmp)


def _copy_back(dest: Any, tmp: "Tensor") -> None:
    storage = dest.storage
    if getattr(storage, "closed", False):
        raise InvalidOperation("Cannot assign into an adaptor whose memory was released")
    needed = len(tmp.storage)
    current = len(storage)
    if needed > current and not storage.resizable:
        raise InvalidOperation(
            f"Adaptor storage holds {current} elements and cannot be resized to {needed}"
        )
    logger.debug(
        "Assigning %s into adaptor by copy-back (%d -> %d elements)", tmp.shape, current, needed
    )
    if needed != current and storage.resizable:
        storage.resize(needed, dest.config.fill_value)
    dest.meta.assign(tmp.meta)
    values = tmp.storage.read_block()
    if dest.dtype is not None and values.dtype != dest.dtype:
        values = values.astype(dest.dtype)
    storage.write_block(np.asarray(values))
