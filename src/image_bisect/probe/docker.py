"""Container lifecycle probe driven through the docker CLI."""

from __future__ import annotations

import subprocess
import uuid
from collections.abc import Callable, Sequence

from image_bisect.probe.base import ProgressCounter

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

CONTAINER_NAME_PREFIX = "image-bisect-"


class DockerUnavailableError(RuntimeError):
    """Raised when the docker CLI cannot be executed or refuses a request."""


def run_docker(
    args: Sequence[str],
    runner: Runner | None = None,
    timeout: float | None = None,
    merge_stderr: bool = False,
) -> subprocess.CompletedProcess[str]:
    """Run one docker CLI command and return the completed process."""
    run = runner or subprocess.run
    try:
        return run(
            list(args),
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
            text=True,
            timeout=timeout,
        )
    except (FileNotFoundError, PermissionError) as error:
        raise DockerUnavailableError(f"Cannot execute {args[0]!r}: {error}") from error


class DockerCliProbe:
    """Runs a fixed command in a fresh container created from a layer.

    Failures to create or start the container are returned as output text so
    the bisection compares them like any other output.
    """

    def __init__(
        self,
        command_line: Sequence[str],
        timeout_seconds: int,
        progress: ProgressCounter,
        docker_binary: str = "docker",
        runner: Runner | None = None,
    ) -> None:
        if not command_line:
            raise ValueError("Probe command line must not be empty.")
        self._command_line = tuple(command_line)
        self._timeout_seconds = timeout_seconds
        self._progress = progress
        self._docker = docker_binary
        self._runner = runner

    @property
    def command_line(self) -> tuple[str, ...]:
        """Return the command executed in every container."""
        return self._command_line

    def probe(self, layer_identifier: str) -> str:
        """Create, run and remove one container; return its combined output."""
        try:
            return self._run_container(layer_identifier)
        finally:
            self._progress.advance(1)

    def notify_skipped(self, count: int) -> None:
        """Advance progress for layers that will not be probed."""
        self._progress.advance(count)

    def _run_container(self, layer_identifier: str) -> str:
        name = f"{CONTAINER_NAME_PREFIX}{uuid.uuid4().hex[:12]}"
        created = self._docker_call(
            "create", "--name", name, layer_identifier, *self._command_line
        )
        if created.returncode != 0:
            return _failure_text(created)
        try:
            started = self._docker_call("start", name)
            if started.returncode != 0:
                return _failure_text(started)
            try:
                self._docker_call("wait", name, timeout=self._timeout_seconds)
            except subprocess.TimeoutExpired:
                # Still running: collect whatever it printed within the timeout.
                pass
            logs = self._docker_call("logs", name, merge_stderr=True)
            return logs.stdout or ""
        finally:
            self._docker_call("rm", "--force", name)

    def _docker_call(
        self,
        *args: str,
        timeout: float | None = None,
        merge_stderr: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        return run_docker(
            [self._docker, *args],
            runner=self._runner,
            timeout=timeout,
            merge_stderr=merge_stderr,
        )


def _failure_text(completed: subprocess.CompletedProcess[str]) -> str:
    text = (completed.stderr or completed.stdout or "").strip()
    return text or f"docker exited with status {completed.returncode}"
