"""Probe decorator that records every probe and skip in the audit log."""

from __future__ import annotations

import time

from image_bisect.logging.audit import JsonlAuditLogger, summarize_output
from image_bisect.probe.base import Probe


class AuditedProbe:
    """Wraps a probe and logs its calls without altering results."""

    def __init__(self, inner: Probe, logger: JsonlAuditLogger, run_id: str) -> None:
        self._inner = inner
        self._logger = logger
        self._run_id = run_id

    def probe(self, layer_identifier: str) -> str:
        started = time.perf_counter()
        try:
            output = self._inner.probe(layer_identifier)
        except Exception as error:
            self._logger.record(
                self._run_id,
                "probe",
                layer=layer_identifier,
                ok=False,
                error_code=type(error).__name__,
                metadata={"elapsed_ms": _elapsed_ms(started)},
            )
            raise
        metadata = summarize_output(output)
        metadata["elapsed_ms"] = _elapsed_ms(started)
        self._logger.record(self._run_id, "probe", layer=layer_identifier, metadata=metadata)
        return output

    def notify_skipped(self, count: int) -> None:
        self._inner.notify_skipped(count)
        self._logger.record(self._run_id, "skip", metadata={"count": count})


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
