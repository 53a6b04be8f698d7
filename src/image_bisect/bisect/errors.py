"""Error kinds raised by the bisection engine and orchestrator."""

from __future__ import annotations

from image_bisect.bisect.models import Layer, ProbeResult


class BisectError(Exception):
    """Base error for a bisection run, carrying a stable code."""

    code = "BISECT_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InsufficientLayersError(BisectError):
    """Raised before probing when fewer than two usable layers exist."""

    code = "INSUFFICIENT_LAYERS"

    def __init__(self, found: int) -> None:
        super().__init__(f"{found} layers found in cache - not enough layers to bisect.")
        self.found = found


class InconsistentProbeError(BisectError):
    """Raised when adjacent bracket outputs match although an ancestor saw them differ."""

    code = "INCONSISTENT_PROBE"

    def __init__(self, start: ProbeResult, end: ProbeResult) -> None:
        super().__init__(
            f"Layers {start.layer.height} and {end.layer.height} produced identical output "
            "inside a range already known to change; the probe is not deterministic."
        )
        self.start = start
        self.end = end


class ProbeFailedError(BisectError):
    """Raised when the probe itself fails instead of producing an output."""

    code = "PROBE_FAILED"

    def __init__(self, layer: Layer, reason: str) -> None:
        super().__init__(f"Probe failed for layer {layer.height} ({layer.identifier}): {reason}")
        self.layer = layer


class BranchFailedError(BisectError):
    """Raised when a branch fails with an error that is not a BisectError."""

    code = "BRANCH_FAILED"


class BranchAbortedError(BisectError):
    """Internal marker: a branch stopped because a sibling already failed."""

    code = "BRANCH_ABORTED"

    def __init__(self) -> None:
        super().__init__("Branch aborted after a failure elsewhere in the run.")
