"""Storage, layout and assignment core of strided."""

__all__ = [
    "adaptor",
    "config",
    "container",
    "exceptions",
    "expression",
    "layout",
    "literal",
    "ownership",
    "semantic",
    "tensor",
]
