"""Generalized bisection: find every output transition across ordered layers.

The outcome of probing is assumed to be piecewise constant along the layer
sequence. When both ends of a sub-range agree, every layer in between is
assumed to agree as well and is skipped without probing, so an A -> B -> A
flicker hidden inside a skipped range is not reported.
"""

from __future__ import annotations

from collections.abc import Sequence

from image_bisect.bisect.errors import (
    BisectError,
    InconsistentProbeError,
    InsufficientLayersError,
    ProbeFailedError,
)
from image_bisect.bisect.forkjoin import ForkJoin, create_executor
from image_bisect.bisect.models import Layer, ProbeResult, Transition
from image_bisect.probe.base import Probe


def find_transitions(
    layers: Sequence[Layer],
    probe: Probe,
    *,
    max_workers: int | None = None,
) -> list[Transition]:
    """Probe the layers and return every transition between output runs.

    Transitions are ordered left branch before right branch at every split,
    which is not necessarily height order; sort by ``after.layer.height`` for
    a report.

    A failing probe call raises ProbeFailedError. Any other failure during
    the run, such as from ``notify_skipped``, raises BranchFailedError.
    """
    if len(layers) < 2:
        raise InsufficientLayersError(found=len(layers))

    with create_executor(max_workers) as executor:
        forks = ForkJoin(executor)
        first, last = layers[0], layers[-1]
        start, end = forks.join(
            lambda: _probe_layer(first, probe, forks),
            lambda: _probe_layer(last, probe, forks),
        )
        if start.output == end.output:
            return [Transition(before=None, after=end)]
        return forks.run(lambda: bisect(tuple(layers[1:-1]), start, end, probe, forks))


def bisect(
    history: Sequence[Layer],
    start: ProbeResult,
    end: ProbeResult,
    probe: Probe,
    forks: ForkJoin,
) -> list[Transition]:
    """Find transitions strictly between two already probed, differing results."""
    size = len(history)
    if size == 0:
        if start.output == end.output:
            raise InconsistentProbeError(start=start, end=end)
        return [Transition(before=start, after=end)]

    half = size // 2
    mid = _probe_layer(history[half], probe, forks)

    if size == 1:
        results: list[Transition] = []
        if start.output != mid.output:
            results.append(Transition(before=start, after=mid))
        if mid.output != end.output:
            results.append(Transition(before=mid, after=end))
        return results

    if mid.output == start.output:
        probe.notify_skipped(_distance(start.layer, mid.layer))
        return bisect(history[half + 1 :], mid, end, probe, forks)
    if mid.output == end.output:
        probe.notify_skipped(_distance(mid.layer, end.layer))
        return bisect(history[:half], start, mid, probe, forks)

    left, right = forks.join(
        lambda: bisect(history[:half], start, mid, probe, forks),
        lambda: bisect(history[half + 1 :], mid, end, probe, forks),
    )
    return left + right


def _probe_layer(layer: Layer, probe: Probe, forks: ForkJoin) -> ProbeResult:
    forks.check()
    try:
        output = probe.probe(layer.identifier)
    except BisectError:
        raise
    except Exception as error:
        raise ProbeFailedError(layer=layer, reason=str(error) or type(error).__name__) from error
    return ProbeResult(layer=layer, output=output)


def _distance(lower: Layer, upper: Layer) -> int:
    return abs(upper.height - lower.height)
