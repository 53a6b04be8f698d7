"""Drives the bisection engine over a full image history."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from image_bisect.bisect.engine import find_transitions
from image_bisect.bisect.errors import InsufficientLayersError
from image_bisect.bisect.models import Layer, Transition
from image_bisect.image.history import HistoryEntry
from image_bisect.probe.base import Probe


@dataclass(slots=True, frozen=True)
class SkippedLayer:
    """History entry without a local identifier; never probed."""

    height: int
    created_by: str


@dataclass(slots=True, frozen=True)
class LayerPlan:
    """Usable layers in height order plus the entries left out."""

    layers: tuple[Layer, ...]
    skipped: tuple[SkippedLayer, ...]


@dataclass(slots=True, frozen=True)
class BisectReport:
    """Outcome of one run; transitions keep the engine's order."""

    layers: tuple[Layer, ...]
    skipped: tuple[SkippedLayer, ...]
    transitions: tuple[Transition, ...]


def build_layers(history: Sequence[HistoryEntry]) -> LayerPlan:
    """Convert newest-first history into height-ordered layers.

    Height counts from the base layer, so height 0 is the oldest entry.
    """
    layers: list[Layer] = []
    skipped: list[SkippedLayer] = []
    for height, entry in enumerate(reversed(history)):
        if entry.has_identifier and entry.layer_id is not None:
            layers.append(
                Layer(
                    height=height,
                    identifier=entry.layer_id,
                    display_command=entry.created_by,
                )
            )
        else:
            skipped.append(SkippedLayer(height=height, created_by=entry.created_by))
    return LayerPlan(layers=tuple(layers), skipped=tuple(skipped))


def run_bisect(
    plan: LayerPlan,
    probe: Probe,
    max_workers: int | None = None,
) -> BisectReport:
    """Bisect the usable layers of a plan; nothing is probed with fewer than two."""
    if len(plan.layers) < 2:
        raise InsufficientLayersError(found=len(plan.layers))
    transitions = find_transitions(plan.layers, probe, max_workers=max_workers)
    return BisectReport(
        layers=plan.layers,
        skipped=plan.skipped,
        transitions=tuple(transitions),
    )
