"""Terraform adapter for the ``InfraBuilder`` interface.

Runs the ``terraform`` binary through ``rel.platform.process`` in each
project's working directory. Every command failure becomes a
``CollaboratorError`` carrying the tail of stderr.

Usage:
    infra = TerraformCli(environments=DEFAULT_ENVIRONMENTS, base_dir=Path("/opt/terraform"))
    match infra.plan(target):
        case Ok(result):
            print(result.output)
        case Err(e):
            print(f"plan failed: {e.message}")
"""

from __future__ import annotations

import json
from pathlib import Path

from rel.catalog import EnvironmentRegistry
from rel.core.result import Err, Ok, Result
from rel.core.structured import as_str_dict
from rel.platform.process import ProcessError
from rel.platform.process import run as run_process
from rel.services.release.collaborators import (
    CollaboratorError,
    InfraBuildResult,
    InfraCommandResult,
    ProjectTarget,
)

_TERRAFORM_TIMEOUT_SECONDS = 30 * 60.0
_STDERR_TAIL_LINES = 20

__all__ = ["TerraformCli"]


def _error(action: str, error: ProcessError) -> CollaboratorError:
    tail = "\n".join(error.stderr.strip().splitlines()[-_STDERR_TAIL_LINES:])
    return CollaboratorError(
        message=f"terraform {action} failed (exit {error.returncode})",
        hint=tail or None,
    )


class TerraformCli:
    def __init__(
        self,
        *,
        environments: EnvironmentRegistry,
        base_dir: Path,
        binary: str = "terraform",
        timeout: float = _TERRAFORM_TIMEOUT_SECONDS,
    ) -> None:
        self._environments = environments
        self._base_dir = base_dir
        self._binary = binary
        self._timeout = timeout

    def _run(self, action: str, args: list[str], cwd: Path) -> Result[str, CollaboratorError]:
        result = run_process([self._binary, *args], cwd=cwd, timeout=self._timeout)
        if isinstance(result, Err):
            return Err(_error(action, result.error))
        return result

    def _command(
        self, action: str, target: ProjectTarget, args: list[str]
    ) -> Result[InfraCommandResult, CollaboratorError]:
        cwd = Path(target.working_directory)
        result = self._run(action, args, cwd)
        if isinstance(result, Err):
            return result
        return Ok(InfraCommandResult(action=action, target=target, output=result.value))

    def init(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        """``terraform init`` followed by selecting (or creating) the workspace."""
        cwd = Path(target.working_directory)
        initialized = self._run("init", ["init", "-input=false"], cwd)
        if isinstance(initialized, Err):
            return initialized
        selected = self._run(
            "init", ["workspace", "select", "-or-create", target.workspace], cwd
        )
        if isinstance(selected, Err):
            return selected
        return Ok(
            InfraCommandResult(
                action="init", target=target, output=initialized.value + selected.value
            )
        )

    def plan(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._command(
            "plan",
            target,
            [
                "plan",
                "-input=false",
                f"-var-file={target.var_file}",
                f"-var=environment={target.environment}",
                "-out=tfplan",
            ],
        )

    def apply(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._command("apply", target, ["apply", "-input=false", "-auto-approve", "tfplan"])

    def validate(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._command("validate", target, ["validate"])

    def output(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._command("output", target, ["output", "-json"])

    def state(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._command("state", target, ["state", "list"])

    def build(self, environment: str) -> Result[InfraBuildResult, CollaboratorError]:
        """Full build of an environment's root module: init, validate, plan, apply, output."""
        env = self._environments.get(environment)
        if env is None:
            return Err(CollaboratorError(message=f"unknown environment: {environment}"))

        target = ProjectTarget(
            project="environment",
            environment=environment,
            workspace=env.terraform_workspace,
            var_file=env.terraform_var_file,
            working_directory=str(self._base_dir / environment),
        )
        for step in (self.init, self.validate, self.plan, self.apply):
            ran = step(target)
            if isinstance(ran, Err):
                return ran

        out = self.output(target)
        if isinstance(out, Err):
            return out
        try:
            parsed: object = json.loads(out.value.output or "{}")
        except json.JSONDecodeError as e:
            return Err(CollaboratorError(message=f"invalid terraform output: {e}"))
        outputs = as_str_dict(parsed) or {}
        return Ok(InfraBuildResult(environment=environment, outputs=outputs))
