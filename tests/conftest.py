from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence

import pytest

from image_bisect.bisect import Layer


class CannedProbe:
    """In-memory probe returning preset outputs keyed by layer identifier."""

    def __init__(
        self,
        outputs: dict[str, str],
        delays: dict[str, float] | None = None,
        failures: dict[str, Exception] | None = None,
    ) -> None:
        self._outputs = outputs
        self._delays = delays or {}
        self._failures = failures or {}
        self._lock = threading.Lock()
        self.calls: list[str] = []
        self.skipped = 0
        self.active = 0
        self.max_active = 0

    def probe(self, layer_identifier: str) -> str:
        with self._lock:
            self.calls.append(layer_identifier)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            delay = self._delays.get(layer_identifier)
            if delay:
                time.sleep(delay)
            failure = self._failures.get(layer_identifier)
            if failure is not None:
                raise failure
            return self._outputs.get(layer_identifier, "")
        finally:
            with self._lock:
                self.active -= 1

    def notify_skipped(self, count: int) -> None:
        with self._lock:
            self.skipped += count


def lay(height: int) -> Layer:
    return Layer(height=height, identifier=str(height), display_command=f"RUN step {height}")


@pytest.fixture
def make_layers() -> Callable[[Sequence[int]], list[Layer]]:
    def build(heights: Sequence[int]) -> list[Layer]:
        return [lay(height) for height in heights]

    return build


@pytest.fixture
def make_probe() -> Callable[..., CannedProbe]:
    def build(
        heights: Sequence[int],
        outputs: Sequence[str],
        delays: dict[str, float] | None = None,
        failures: dict[str, Exception] | None = None,
    ) -> CannedProbe:
        mapping = {str(height): output for height, output in zip(heights, outputs, strict=True)}
        return CannedProbe(mapping, delays=delays, failures=failures)

    return build
