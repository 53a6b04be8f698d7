"""Probe implementations and progress accounting."""

from .audited import AuditedProbe
from .base import Probe, ProgressCounter, ProgressListener, stream_listener
from .docker import DockerCliProbe, DockerUnavailableError, Runner

__all__ = [
    "AuditedProbe",
    "DockerCliProbe",
    "DockerUnavailableError",
    "Probe",
    "ProgressCounter",
    "ProgressListener",
    "Runner",
    "stream_listener",
]
