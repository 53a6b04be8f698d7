"""Generalized bisection over ordered image layers."""

from .engine import bisect, find_transitions
from .errors import (
    BisectError,
    BranchFailedError,
    InconsistentProbeError,
    InsufficientLayersError,
    ProbeFailedError,
)
from .forkjoin import DEFAULT_MAX_WORKERS, ForkJoin, create_executor
from .models import Layer, ProbeResult, Transition
from .orchestrator import BisectReport, LayerPlan, SkippedLayer, build_layers, run_bisect

__all__ = [
    "BisectError",
    "BisectReport",
    "BranchFailedError",
    "DEFAULT_MAX_WORKERS",
    "ForkJoin",
    "InconsistentProbeError",
    "InsufficientLayersError",
    "Layer",
    "LayerPlan",
    "ProbeFailedError",
    "ProbeResult",
    "SkippedLayer",
    "Transition",
    "bisect",
    "build_layers",
    "create_executor",
    "find_transitions",
    "run_bisect",
]
