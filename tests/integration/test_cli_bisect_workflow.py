from __future__ import annotations

import io
import json
import subprocess
import threading
from pathlib import Path

import pytest

from image_bisect.cli import build_arg_parser, main


class FakeDockerCli:
    """Answers the docker CLI calls made by a bisection run."""

    def __init__(self, history: list[tuple[str, str]], outputs: dict[str, str]) -> None:
        self._history = history
        self._outputs = outputs
        self._containers: dict[str, str] = {}
        self._lock = threading.Lock()
        self.created: list[str] = []

    def __call__(self, args: list[str], **_: object) -> subprocess.CompletedProcess[str]:
        verb = args[1]
        if verb == "history":
            lines = [
                json.dumps({"ID": layer, "CreatedBy": command}) for layer, command in self._history
            ]
            return subprocess.CompletedProcess(args, 0, "\n".join(lines) + "\n", "")
        if verb == "create":
            name, image = args[3], args[4]
            with self._lock:
                self._containers[name] = image
                self.created.append(image)
            return subprocess.CompletedProcess(args, 0, f"{name}\n", "")
        if verb == "logs":
            with self._lock:
                image = self._containers[args[2]]
            return subprocess.CompletedProcess(args, 0, self._outputs[image], None)
        return subprocess.CompletedProcess(args, 0, "", "")


HISTORY = [
    ("sha256:l3", "/bin/sh -c echo v2 > /version"),
    ("sha256:l2", "/bin/sh -c apk add curl"),
    ("<missing>", "/bin/sh -c #(nop) ENV A=1"),
    ("sha256:l0", "/bin/sh -c #(nop) ADD file:base in /"),
]


def _run(argv: list[str], fake: FakeDockerCli) -> tuple[int, str, str]:
    out = io.StringIO()
    err = io.StringIO()
    code = main(argv, runner=fake, stdout=out, stderr=err)
    return code, out.getvalue(), err.getvalue()


def test_cli_reports_layer_that_changed_output(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    fake = FakeDockerCli(
        HISTORY,
        {"sha256:l0": "v1\n", "sha256:l2": "v1\n", "sha256:l3": "v2\n"},
    )

    code, out, err = _run(["--truncate", "60", "demo:latest", "cat", "/version"], fake)

    assert code == 0
    assert "1  : ENV A=1." in out
    assert "3: /bin/sh -c echo v2 > /version CAUSED:" in out
    assert "    v2" in out
    assert "2: /bin/sh -c apk add curl\n" in out
    assert "0: ADD file:base in /\n" in out
    assert sorted(fake.created) == ["sha256:l0", "sha256:l2", "sha256:l3"]
    assert "progress:" in err

    audit_lines = (tmp_path / ".image_bisect" / "audit.jsonl").read_text(encoding="utf-8")
    kinds = [json.loads(line)["kind"] for line in audit_lines.splitlines()]
    assert kinds[0] == "run_started"
    assert kinds[-1] == "run_finished"
    assert kinds.count("probe") == 3
    assert "v2" not in audit_lines


def test_cli_fails_with_insufficient_layers_after_listing_skipped(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    fake = FakeDockerCli(
        [("sha256:only", "RUN only"), ("<missing>", "RUN base")],
        {"sha256:only": "x"},
    )

    code, out, err = _run(["--no-audit", "demo", "true"], fake)

    assert code == 1
    assert "error[INSUFFICIENT_LAYERS]: 1 layers found in cache" in err
    assert "0  : RUN base." in out
    assert fake.created == []
    assert not (tmp_path / ".image_bisect").exists()


def test_cli_requires_a_command(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    code, _, err = _run(["demo"], FakeDockerCli(HISTORY, {}))

    assert code == 2
    assert "command to run in the container is required" in err


def test_cli_rejects_invalid_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "image_bisect.toml").write_text("[engine]\nmax_workers = 0\n", encoding="utf-8")

    code, _, err = _run(["demo", "true"], FakeDockerCli(HISTORY, {}))

    assert code == 2
    assert "error[INVALID_CONFIG]" in err
    assert "engine.max_workers" in err


class DaemonGoneDockerCli(FakeDockerCli):
    """Serves image history but cannot execute docker for container calls."""

    def __call__(self, args: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        if args[1] == "create":
            raise FileNotFoundError(2, "No such file or directory", args[0])
        return super().__call__(args, **kwargs)


def test_cli_reports_engine_failure_and_audits_run_failed(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    fake = DaemonGoneDockerCli(HISTORY, {})

    code, out, err = _run(["--truncate", "60", "demo:latest", "cat", "/version"], fake)

    assert code == 1
    assert "error[PROBE_FAILED]:" in err
    assert "Traceback" not in err
    assert "1  : ENV A=1." in out
    assert "Results ==>" not in out

    audit_lines = (tmp_path / ".image_bisect" / "audit.jsonl").read_text(encoding="utf-8")
    events = [json.loads(line) for line in audit_lines.splitlines()]
    assert events[0]["kind"] == "run_started"
    assert events[-1]["kind"] == "run_failed"
    assert events[-1]["ok"] is False
    assert events[-1]["error_code"] == "PROBE_FAILED"


def test_cli_reports_unwritable_audit_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied", encoding="utf-8")
    fake = FakeDockerCli(HISTORY, {"sha256:l0": "v1\n", "sha256:l2": "v1\n", "sha256:l3": "v2\n"})

    code, _, err = _run(["--data-dir", str(blocker), "demo", "true"], fake)

    assert code == 2
    assert "error[AUDIT_UNAVAILABLE]" in err
    assert fake.created == []


def test_cli_help_says_options_precede_image(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])

    assert excinfo.value.code == 0
    help_text = " ".join(capsys.readouterr().out.split())
    assert "Options must come before image_name." in help_text
    assert "--max-workers" in help_text
    assert "Max number of containers run in parallel" in help_text
    assert "Docker CLI executable to call" in help_text


def test_cli_options_after_image_belong_to_command() -> None:
    args = build_arg_parser().parse_args(["demo", "-t", "5", "cat", "/x"])

    assert args.timeout is None
    assert args.command == ["-t", "5", "cat", "/x"]
