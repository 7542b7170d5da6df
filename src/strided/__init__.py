import logging

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _load_version

from .core.adaptor import TensorAdaptor, adapt, adapt_pointer
from .core.config import StorageConfig
from .core.container import StridedContainer
from .core.exceptions import InvalidOperation, InvalidShape, OutOfRange, StridedError
from .core.expression import ArrayExpression, Expression, FunctionExpression, as_expression
from .core.layout import (
    Layout,
    StrideMeta,
    checked_offset,
    compute_backstrides,
    compute_strides,
    iter_indices,
    linear_size,
    offset,
    required_size,
)
from .core.literal import flatten_literal, literal_shape, nested_copy
from .core.ownership import Ownership, Pointer
from .core.semantic import assign, evaluate
from .core.tensor import Tensor

logging.getLogger(__name__).addHandler(logging.NullHandler())

try:
    __version__ = _load_version("strided")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "Tensor",
    "TensorAdaptor",
    "adapt",
    "adapt_pointer",
    "Ownership",
    "Pointer",
    "Layout",
    "StrideMeta",
    "StorageConfig",
    "StridedContainer",
    "Expression",
    "ArrayExpression",
    "FunctionExpression",
    "as_expression",
    "assign",
    "evaluate",
    "compute_strides",
    "compute_backstrides",
    "checked_offset",
    "offset",
    "linear_size",
    "required_size",
    "iter_indices",
    "literal_shape",
    "flatten_literal",
    "nested_copy",
    "StridedError",
    "InvalidShape",
    "OutOfRange",
    "InvalidOperation",
    "__version__",
]
