"""Structured JSONL audit log for bisection runs."""

from __future__ import annotations

import hashlib
import json
import threading
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

EVENT_KINDS = ("run_started", "probe", "skip", "run_finished", "run_failed")


@dataclass(slots=True, frozen=True)
class AuditEvent:
    """Sanitized record of one step of a bisection run."""

    timestamp: str
    run_id: str
    kind: str
    layer: str | None
    ok: bool
    error_code: str | None
    metadata: dict[str, object]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def summarize_output(output: str) -> dict[str, object]:
    """Describe a probe output without recording its content."""
    encoded = output.encode("utf-8", errors="replace")
    return {
        "output_length": len(output),
        "output_sha256": hashlib.sha256(encoded).hexdigest(),
        "output_lines": len(output.splitlines()),
    }


class JsonlAuditLogger:
    """Append-only JSONL audit logger and bounded reader.

    Appends are serialized with a lock; probes log from worker threads.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Return on-disk JSONL path."""
        return self._path

    def append(self, event: AuditEvent) -> None:
        """Append an event as one JSON object per line."""
        if event.kind not in EVENT_KINDS:
            raise ValueError(f"Unknown audit event kind: {event.kind}")
        line = json.dumps(asdict(event), sort_keys=True)
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.write("\n")

    def record(
        self,
        run_id: str,
        kind: str,
        layer: str | None = None,
        ok: bool = True,
        error_code: str | None = None,
        metadata: dict[str, object] | None = None,
    ) -> AuditEvent:
        """Build, append and return an event stamped with the current time."""
        event = AuditEvent(
            timestamp=utc_timestamp(),
            run_id=run_id,
            kind=kind,
            layer=layer,
            ok=ok,
            error_code=error_code,
            metadata=dict(metadata or {}),
        )
        self.append(event)
        return event

    def read(self, since: str | None = None, limit: int = 50) -> list[dict[str, object]]:
        """Read recent events, optionally filtered by timestamp lower bound."""
        if limit < 1:
            return []
        entries: list[dict[str, object]] = []
        if not self._path.exists():
            return entries
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    record = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                if since is not None:
                    ts = record.get("timestamp")
                    if not isinstance(ts, str) or ts < since:
                        continue
                entries.append(record)
        if len(entries) <= limit:
            return entries
        return entries[-limit:]
