"""Probe capability contract and shared progress accounting."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol

ProgressListener = Callable[[int, int], None]


class Probe(Protocol):
    """Runs the fixed command against one layer.

    Implementations must be safe to call from several threads at once and
    should encode execution failures as output text rather than raising.
    """

    def probe(self, layer_identifier: str) -> str:
        """Return the combined output of the command on top of the layer."""
        ...

    def notify_skipped(self, count: int) -> None:
        """Record layers that will not be probed individually."""
        ...


class ProgressCounter:
    """Thread-safe counter of layers accounted for during a run."""

    def __init__(self, total: int, listener: ProgressListener | None = None) -> None:
        if total < 0:
            raise ValueError("Progress total must be >= 0.")
        self._total = total
        self._done = 0
        self._lock = threading.Lock()
        self._listener = listener

    @property
    def total(self) -> int:
        """Return the number of layers expected."""
        return self._total

    @property
    def done(self) -> int:
        """Return layers accounted for so far, capped at total."""
        with self._lock:
            return self._done

    def advance(self, count: int = 1) -> int:
        """Add count to the counter and return the new value."""
        if count < 0:
            raise ValueError("Progress can only advance by a non-negative count.")
        with self._lock:
            self._done = min(self._total, self._done + count)
            done = self._done
        if self._listener is not None:
            self._listener(done, self._total)
        return done


def stream_listener(write: Callable[[str], object]) -> ProgressListener:
    """Build a listener that reports progress lines through write."""

    def listener(done: int, total: int) -> None:
        write(f"progress: {done}/{total} layers\n")

    return listener
