"""Value objects shared by the bisection engine and its callers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True, order=True)
class Layer:
    """One step of an image history, ordered by height."""

    height: int
    identifier: str
    display_command: str

    def __str__(self) -> str:
        return f"{self.identifier} | {self.display_command!r}"


@dataclass(slots=True, frozen=True, order=True)
class ProbeResult:
    """Output observed when running the command on top of a layer."""

    layer: Layer
    output: str

    def __str__(self) -> str:
        return f"{self.layer} | {self.output}"


@dataclass(slots=True, frozen=True)
class Transition:
    """Boundary between two probed layers whose outputs differ.

    ``before`` is ``None`` when the whole probed range produced one output;
    ``after`` is then simply the last layer.
    """

    before: ProbeResult | None
    after: ProbeResult

    @property
    def is_noop(self) -> bool:
        """Return True when no change was detected across the range."""
        return self.before is None

    def __str__(self) -> str:
        if self.before is None:
            return f"-> {self.after}"
        return f"({self.before} -> {self.after})"
