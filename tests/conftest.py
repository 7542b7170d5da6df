import gc
from typing import Any, List

import pytest


class ReleaseCounter:
    """Deleter that records every block it is asked to free."""

    def __init__(self) -> None:
        self.released: List[Any] = []

    def __call__(self, memory: Any) -> None:
        self.released.append(memory)

    @property
    def count(self) -> int:
        return len(self.released)


@pytest.fixture
def release_counter() -> ReleaseCounter:
    return ReleaseCounter()


@pytest.fixture
def collect():
    def _collect() -> None:
        gc.collect()

    return _collect
