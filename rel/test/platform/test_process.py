from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

import rel.platform.process as process_mod
from rel.core.result import Err, Ok
from rel.platform.process import ProcessError, run


def _completed(returncode: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test_returns_stdout(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(process_mod.subprocess, "run", lambda *a, **k: _completed(0, "ok\n"))
    assert run(["terraform", "version"], cwd=tmp_path) == Ok("ok\n")


def test_non_zero_exit(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(process_mod.subprocess, "run", lambda *a, **k: _completed(2, "", "boom"))

    result = run(["terraform", "plan", "-input=false", "-out=tfplan"], cwd=tmp_path)

    assert result == Err(
        ProcessError(
            command=("terraform", "plan", "-input=false", "-out=tfplan"),
            returncode=2,
            stdout="",
            stderr="boom",
        )
    )
    assert isinstance(result, Err)
    assert str(result.error) == "terraform plan -input=false ... failed (exit 2)"


def test_timeout(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def slow(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise subprocess.TimeoutExpired(cmd="terraform", timeout=5)

    monkeypatch.setattr(process_mod.subprocess, "run", slow)

    result = run(["terraform", "apply"], cwd=tmp_path, timeout=5)
    assert isinstance(result, Err)
    assert result.error.returncode == -1
    assert result.error.stderr == "Command timed out after 5s"


def test_missing_binary(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def missing(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError("terraform")

    monkeypatch.setattr(process_mod.subprocess, "run", missing)

    result = run(["terraform", "init"], cwd=tmp_path)
    assert isinstance(result, Err)
    assert result.error.returncode == -1
