from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional

import numpy as np

_LAYOUT_ALIASES = {
    "row_major": "row_major",
    "c": "row_major",
    "column_major": "column_major",
    "f": "column_major",
}


@dataclass(frozen=True)
class StorageConfig:
    """
    Defaults shared by owning tensors and adaptors.

    Key behaviors:
    * ``dtype`` is the element type used when a tensor allocates its own buffer
      and no explicit dtype is given.
    * ``layout`` picks the default traversal order (``"row_major"`` or
      ``"column_major"``; ``"C"``/``"F"`` are accepted as aliases).
    * ``fill_value`` initializes freshly allocated elements.
    * ``bounds_check`` keeps the unchecked ``t[i, j]`` accessors from reading or
      writing outside the buffer; per-dimension bounds are only enforced by
      ``at``/``set_at``.
    """

    dtype: str = "float64"
    layout: str = "row_major"
    fill_value: Any = 0
    bounds_check: bool = True

    def normalized(self) -> "StorageConfig":
        try:
            dtype = np.dtype(self.dtype).name
        except TypeError as exc:
            raise ValueError(f"Unsupported dtype: {self.dtype!r}") from exc
        layout = _LAYOUT_ALIASES.get(str(self.layout or "row_major").lower())
        if layout is None:
            raise ValueError(f"Unsupported default layout: {self.layout}")
        fill_value = self.fill_value
        if fill_value is None:
            fill_value = 0
        return replace(
            self,
            dtype=dtype,
            layout=layout,
            fill_value=fill_value,
            bounds_check=bool(self.bounds_check),
        )


DEFAULT_CONFIG = StorageConfig().normalized()


def resolve_config(config: Optional[StorageConfig]) -> StorageConfig:
    if config is None:
        return DEFAULT_CONFIG
    return config.normalized()
