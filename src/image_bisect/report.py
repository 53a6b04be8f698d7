"""Plain-text rendering of bisection results."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from image_bisect.bisect.models import Transition
from image_bisect.bisect.orchestrator import BisectReport, SkippedLayer

NOP_MARKER = " #(nop) "
OUTPUT_INDENT = "    "


def truncate(text: str, max_chars: int) -> str:
    """Cut a layer command to its first line and at most max_chars characters.

    Docker prefixes metadata-only steps with ``/bin/sh -c #(nop)``; only the
    part after the marker is kept.
    """
    if max_chars < 0:
        raise ValueError("max_chars must be >= 0.")
    lines = text.splitlines()
    line = lines[0] if lines else ""
    if NOP_MARKER in line:
        line = line.split(NOP_MARKER, 1)[1].strip()
    return line[:max_chars]


def sort_transitions(transitions: Iterable[Transition]) -> list[Transition]:
    """Return transitions in ascending height of their ``after`` layer."""
    return sorted(transitions, key=lambda transition: transition.after.layer.height)


def render_skipped(skipped: Sequence[SkippedLayer], width: int) -> list[str]:
    """Render history entries that had no local layer to probe."""
    return [f"{entry.height:<3}: {truncate(entry.created_by, width)}." for entry in skipped]


def render_report(report: BisectReport, width: int) -> list[str]:
    """Render every history height, expanding the layers that changed the output."""
    commands: dict[int, str] = {entry.height: entry.created_by for entry in report.skipped}
    for layer in report.layers:
        commands[layer.height] = layer.display_command

    caused: dict[int, Transition] = {}
    noop = False
    for transition in sort_transitions(report.transitions):
        caused[transition.after.layer.height] = transition
        noop = noop or transition.is_noop

    lines: list[str] = []
    if noop:
        lines.append("No layer changed the output.")
        lines.append("")
    for height in sorted(commands):
        command = truncate(commands[height], width)
        transition = caused.get(height)
        if transition is None:
            lines.append(f"{height}: {command}")
            continue
        label = "OUTPUT" if transition.is_noop else "CAUSED"
        lines.append(f"{height}: {command} {label}:")
        lines.append("")
        lines.extend(_indent(transition.after.output))
        lines.append("")
    return lines


def _indent(output: str) -> list[str]:
    body = output.rstrip("\n").splitlines()
    if not body:
        return [f"{OUTPUT_INDENT}<no output>"]
    return [f"{OUTPUT_INDENT}{line}" for line in body]
