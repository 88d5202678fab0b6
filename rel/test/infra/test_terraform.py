from __future__ import annotations

import json
from pathlib import Path

import pytest

import rel.infra.terraform as terraform_mod
from rel.catalog import DEFAULT_ENVIRONMENTS
from rel.core.result import Err, Ok, Result
from rel.infra.terraform import TerraformCli
from rel.platform.process import ProcessError
from rel.services.release.collaborators import ProjectTarget

TARGET = ProjectTarget(
    project="terraform-infra",
    environment="dev",
    workspace="dev",
    var_file="dev.tfvars",
    working_directory="/opt/terraform/dev",
)


class FakeTerraform:
    def __init__(self, outputs: dict[str, str] | None = None, fail: str | None = None) -> None:
        self.calls: list[tuple[list[str], Path]] = []
        self.outputs = outputs or {}
        self.fail = fail

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        self.calls.append((cmd, cwd))
        verb = cmd[1]
        if verb == self.fail:
            return Err(
                ProcessError(
                    command=tuple(cmd),
                    returncode=1,
                    stdout="",
                    stderr="\n".join(f"line {i}" for i in range(30)),
                )
            )
        return Ok(self.outputs.get(verb, f"{verb} done\n"))


@pytest.fixture
def fake(monkeypatch: pytest.MonkeyPatch) -> FakeTerraform:
    runner = FakeTerraform()
    monkeypatch.setattr(terraform_mod, "run_process", runner)
    return runner


def _cli() -> TerraformCli:
    return TerraformCli(environments=DEFAULT_ENVIRONMENTS, base_dir=Path("/srv/tf"))


def test_init_selects_workspace(fake: FakeTerraform) -> None:
    result = _cli().init(TARGET)

    assert isinstance(result, Ok)
    assert [cmd for cmd, _ in fake.calls] == [
        ["terraform", "init", "-input=false"],
        ["terraform", "workspace", "select", "-or-create", "dev"],
    ]
    assert all(cwd == Path("/opt/terraform/dev") for _, cwd in fake.calls)
    assert result.value.output == "init done\nworkspace done\n"


def test_plan_arguments(fake: FakeTerraform) -> None:
    _cli().plan(TARGET)

    assert fake.calls[0][0] == [
        "terraform",
        "plan",
        "-input=false",
        "-var-file=dev.tfvars",
        "-var=environment=dev",
        "-out=tfplan",
    ]


def test_apply_uses_saved_plan(fake: FakeTerraform) -> None:
    _cli().apply(TARGET)
    assert fake.calls[0][0] == ["terraform", "apply", "-input=false", "-auto-approve", "tfplan"]


def test_read_only_commands(fake: FakeTerraform) -> None:
    cli = _cli()
    cli.validate(TARGET)
    cli.output(TARGET)
    cli.state(TARGET)

    assert [cmd[1:] for cmd, _ in fake.calls] == [["validate"], ["output", "-json"], ["state", "list"]]


def test_failure_keeps_stderr_tail(fake: FakeTerraform) -> None:
    fake.fail = "plan"

    result = _cli().plan(TARGET)

    assert isinstance(result, Err)
    assert result.error.message == "terraform plan failed (exit 1)"
    assert result.error.hint is not None
    lines = result.error.hint.splitlines()
    assert len(lines) == 20
    assert lines[0] == "line 10"
    assert lines[-1] == "line 29"


def test_custom_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    runner = FakeTerraform()
    monkeypatch.setattr(terraform_mod, "run_process", runner)
    cli = TerraformCli(environments=DEFAULT_ENVIRONMENTS, base_dir=Path("/srv"), binary="tofu")

    cli.validate(TARGET)
    assert runner.calls[0][0][0] == "tofu"


class TestBuild:
    def test_runs_full_sequence(self, fake: FakeTerraform) -> None:
        fake.outputs["output"] = json.dumps({"vpc_id": {"value": "vpc-1"}})

        result = _cli().build("test")

        assert isinstance(result, Ok)
        assert result.value.environment == "test"
        assert result.value.outputs == {"vpc_id": {"value": "vpc-1"}}
        verbs = [cmd[1] for cmd, _ in fake.calls]
        assert verbs == ["init", "workspace", "validate", "plan", "apply", "output"]
        assert all(cwd == Path("/srv/tf/test") for _, cwd in fake.calls)

    def test_stops_on_failure(self, fake: FakeTerraform) -> None:
        fake.fail = "validate"

        result = _cli().build("dev")

        assert isinstance(result, Err)
        assert result.error.message == "terraform validate failed (exit 1)"
        assert [cmd[1] for cmd, _ in fake.calls] == ["init", "workspace", "validate"]

    def test_invalid_output_json(self, fake: FakeTerraform) -> None:
        fake.outputs["output"] = "not json"

        result = _cli().build("dev")
        assert isinstance(result, Err)
        assert result.error.message.startswith("invalid terraform output")

    def test_unknown_environment(self, fake: FakeTerraform) -> None:
        result = _cli().build("staging")

        assert isinstance(result, Err)
        assert result.error.message == "unknown environment: staging"
        assert fake.calls == []
