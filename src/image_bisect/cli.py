"""Command-line entrypoint: find the image layers that change a command's output."""

from __future__ import annotations

import argparse
import shutil
import sys
import uuid
from pathlib import Path
from typing import TextIO

from image_bisect.bisect import DEFAULT_MAX_WORKERS, BisectError, build_layers, run_bisect
from image_bisect.config import BisectConfig, CliOverrides, load_effective_config
from image_bisect.image import load_image_history
from image_bisect.logging import JsonlAuditLogger
from image_bisect.probe import (
    AuditedProbe,
    DockerCliProbe,
    DockerUnavailableError,
    Probe,
    ProgressCounter,
    Runner,
    stream_listener,
)
from image_bisect.report import render_report, render_skipped

EXIT_OK = 0
EXIT_BISECT_FAILED = 1
EXIT_USAGE = 2
MIN_REPORT_WIDTH = 20


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for a bisection run."""
    parser = argparse.ArgumentParser(
        prog="image-bisect",
        description="Run a command against image layers, find which layers change the output.",
        epilog=(
            "Options must come before image_name. Everything after image_name is "
            "passed to the container as the command, including arguments starting with '-'."
        ),
    )
    parser.add_argument("image", metavar="image_name", help="Docker image name or id to use")
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command and args to call in the container (after image_name)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=int,
        default=None,
        help="Number of seconds to run each command for",
    )
    parser.add_argument(
        "--truncate",
        type=int,
        default=None,
        help="Max width of printed layer commands (default is term width)",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help=f"Max number of containers run in parallel (default {DEFAULT_MAX_WORKERS})",
    )
    parser.add_argument(
        "--docker-binary", default=None, help="Docker CLI executable to call (default docker)"
    )
    parser.add_argument("--config", default=None, help="Path to an image_bisect.toml file")
    parser.add_argument("--data-dir", default=None, help="Directory for the audit log")
    parser.add_argument("--no-audit", action="store_true", help="Disable the JSONL audit log")
    return parser


def main(
    argv: list[str] | None = None,
    runner: Runner | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Entrypoint for the image-bisect command."""
    out = stdout or sys.stdout
    err = stderr or sys.stderr
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_usage(err)
        err.write("error: a command to run in the container is required\n")
        return EXIT_USAGE

    overrides = CliOverrides(
        timeout_seconds=args.timeout,
        max_workers=args.max_workers,
        truncate=args.truncate,
        docker_binary=args.docker_binary,
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        audit_enabled=False if args.no_audit else None,
    )
    try:
        config = load_effective_config(
            work_dir=Path.cwd(),
            config_path=Path(args.config) if args.config is not None else None,
            overrides=overrides,
        )
    except ValueError as error:
        err.write(f"error[INVALID_CONFIG]: {error}\n")
        return EXIT_USAGE

    return run(args.image, list(args.command), config, runner=runner, out=out, err=err)


def run(
    image: str,
    command_line: list[str],
    config: BisectConfig,
    runner: Runner | None,
    out: TextIO,
    err: TextIO,
) -> int:
    """Bisect one image with an effective config and print the report."""
    width = report_width(config)
    try:
        history = load_image_history(
            image, runner=runner, docker_binary=config.probe.docker_binary
        )
    except (DockerUnavailableError, ValueError) as error:
        err.write(f"error[DOCKER_UNAVAILABLE]: {error}\n")
        return EXIT_BISECT_FAILED

    out.write(f"\nCommand to apply to layers:\n\n{command_line!r}\n\n")
    plan = build_layers(history)
    out.write("Skipped missing layers:\n\n")
    for line in render_skipped(plan.skipped, width):
        out.write(f"{line}\n")
    out.write("\nBisecting found layers (running command on the layers) ==>\n\n")
    out.flush()

    progress = ProgressCounter(total=len(history), listener=stream_listener(err.write))
    probe: Probe = DockerCliProbe(
        command_line=command_line,
        timeout_seconds=config.probe.timeout_seconds,
        progress=progress,
        docker_binary=config.probe.docker_binary,
        runner=runner,
    )
    run_id = uuid.uuid4().hex
    audit: JsonlAuditLogger | None = None
    if config.audit.enabled:
        try:
            audit = JsonlAuditLogger(path=config.audit.data_dir / "audit.jsonl")
            audit.record(
                run_id,
                "run_started",
                metadata={
                    "image": image,
                    "layer_count": len(plan.layers),
                    "skipped_count": len(plan.skipped),
                    "config": config.to_public_dict(),
                },
            )
        except OSError as error:
            err.write(f"error[AUDIT_UNAVAILABLE]: cannot write audit log: {error}\n")
            return EXIT_USAGE
        probe = AuditedProbe(probe, audit, run_id)

    try:
        report = run_bisect(plan, probe, max_workers=config.engine.max_workers)
    except BisectError as error:
        if audit is not None:
            audit.record(run_id, "run_failed", ok=False, error_code=error.code)
        err.write(f"error[{error.code}]: {error.message}\n")
        return EXIT_BISECT_FAILED

    if audit is not None:
        audit.record(
            run_id,
            "run_finished",
            metadata={
                "transition_count": len(report.transitions),
                "probed_or_skipped": progress.done,
            },
        )
    out.write("\nResults ==>\n\n")
    for line in render_report(report, width):
        out.write(f"{line}\n")
    return EXIT_OK


def report_width(config: BisectConfig) -> int:
    """Return configured truncation width, defaulting to terminal width."""
    if config.output.truncate is not None:
        return config.output.truncate
    columns = shutil.get_terminal_size().columns
    return max(MIN_REPORT_WIDTH, columns - 10)


if __name__ == "__main__":
    raise SystemExit(main())
