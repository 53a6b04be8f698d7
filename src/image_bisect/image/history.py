"""Image layer history enumeration through the docker CLI."""

from __future__ import annotations

import json
from dataclasses import dataclass

from image_bisect.probe.docker import DockerUnavailableError, Runner, run_docker

MISSING_LAYER_ID = "<missing>"


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    """One entry of `docker history`, newest first."""

    layer_id: str | None
    created_by: str

    @property
    def has_identifier(self) -> bool:
        """Return True when the layer is cached locally and can be probed."""
        return bool(self.layer_id) and self.layer_id != MISSING_LAYER_ID


def parse_history_lines(text: str) -> list[HistoryEntry]:
    """Parse `docker history --format '{{json .}}'` output."""
    entries: list[HistoryEntry] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped:
            continue
        try:
            record = json.loads(stripped)
        except json.JSONDecodeError as error:
            raise ValueError(f"History line {line_number} is not valid JSON.") from error
        if not isinstance(record, dict):
            raise ValueError(f"History line {line_number} must be a JSON object.")
        layer_id = record.get("ID")
        created_by = record.get("CreatedBy", "")
        entries.append(
            HistoryEntry(
                layer_id=layer_id if isinstance(layer_id, str) and layer_id else None,
                created_by=created_by if isinstance(created_by, str) else str(created_by),
            )
        )
    return entries


def load_image_history(
    image: str,
    runner: Runner | None = None,
    docker_binary: str = "docker",
) -> list[HistoryEntry]:
    """Return the history of an image, newest layer first."""
    completed = run_docker(
        [docker_binary, "history", "--no-trunc", "--format", "{{json .}}", image],
        runner=runner,
    )
    if completed.returncode != 0:
        raise DockerUnavailableError(
            completed.stderr.strip() or f"docker history failed for image {image!r}"
        )
    return parse_history_lines(completed.stdout)
