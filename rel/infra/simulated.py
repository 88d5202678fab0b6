"""Simulated collaborators for dry runs and local use.

Deterministic: the same inputs always produce the same branch names, build
ids and execution ids. Nothing leaves the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rel.core.result import Err, Ok, Result
from rel.services.release.collaborators import (
    BranchResult,
    BuildArtifact,
    CheckResult,
    CollaboratorError,
    Collaborators,
    DeploymentTicket,
    ExecutionStatus,
    InfraBuilder,
    InfraBuildResult,
    InfraCommandResult,
    ProjectTarget,
    ReleaseNotesResult,
    VerificationResult,
)
from rel.services.release.model import Application

ARTIFACT_BASE_URL = "https://artifacts.example.com"


class SimulatedSourceControl:
    def create_release_branch(
        self, version: str, source_branch: str
    ) -> Result[BranchResult, CollaboratorError]:
        return Ok(BranchResult(branch_name=f"release/{version}", source_branch=source_branch))


class SimulatedIssueTracker:
    def generate_release_notes(
        self, sprint_ref: str, version: str
    ) -> Result[ReleaseNotesResult, CollaboratorError]:
        text = f"# Release {version}\n\nSprint: {sprint_ref}\n"
        return Ok(ReleaseNotesResult(notes_text=text, summary_counts={"stories": 0, "bugs": 0}))


class SimulatedInfra:
    def build(self, environment: str) -> Result[InfraBuildResult, CollaboratorError]:
        return Ok(InfraBuildResult(environment=environment, outputs={"environment": environment}))

    def _ran(self, action: str, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        output = f"[simulated] terraform {action} {target.project} ({target.workspace})"
        return Ok(InfraCommandResult(action=action, target=target, output=output))

    def init(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._ran("init", target)

    def plan(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._ran("plan", target)

    def apply(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._ran("apply", target)

    def validate(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._ran("validate", target)

    def output(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._ran("output", target)

    def state(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]:
        return self._ran("state", target)


class SimulatedServiceBuilder:
    def build(self, app: Application, version: str) -> Result[BuildArtifact, CollaboratorError]:
        return Ok(
            BuildArtifact(
                app=app.name,
                build_id=f"build-{app.name}-{version}",
                artifact_url=f"{ARTIFACT_BASE_URL}/{app.name}/{version}",
            )
        )


@dataclass
class SimulatedDeployer:
    """Every deployment succeeds immediately."""

    executions: dict[str, str] = field(default_factory=dict)

    def deploy(
        self,
        app: Application,
        environment: str,
        version: str,
        artifacts: tuple[str, ...],
    ) -> Result[DeploymentTicket, CollaboratorError]:
        del artifacts
        execution_id = f"exec-{app.name}-{environment}-{version}"
        self.executions[execution_id] = app.name
        return Ok(DeploymentTicket(app=app.name, execution_id=execution_id))

    def execution_status(self, execution_id: str) -> Result[ExecutionStatus, CollaboratorError]:
        if execution_id not in self.executions:
            return Err(CollaboratorError(message=f"unknown execution: {execution_id}"))
        return Ok(ExecutionStatus(execution_id=execution_id, state="succeeded"))

    def get_status(
        self, app: Application, environment: str
    ) -> Result[ExecutionStatus, CollaboratorError]:
        for execution_id, name in reversed(self.executions.items()):
            if name == app.name and f"-{environment}-" in execution_id:
                return Ok(ExecutionStatus(execution_id=execution_id, state="succeeded"))
        return Err(CollaboratorError(message=f"no deployment of {app.name} to {environment}"))


class SimulatedVerifier:
    def verify(
        self, environment: str, applications: tuple[Application, ...]
    ) -> Result[VerificationResult, CollaboratorError]:
        checks = tuple(
            CheckResult(name=f"{app.name}-health", success=True, detail=f"{environment}: ok")
            for app in applications
        )
        return Ok(VerificationResult(environment=environment, overall_status="HEALTHY", checks=checks))


def simulated_collaborators(infra: InfraBuilder | None = None) -> Collaborators:
    """All-simulated collaborators, optionally with a real infrastructure builder."""
    return Collaborators(
        source_control=SimulatedSourceControl(),
        issue_tracker=SimulatedIssueTracker(),
        infra_builder=infra if infra is not None else SimulatedInfra(),
        service_builder=SimulatedServiceBuilder(),
        deployer=SimulatedDeployer(),
        verifier=SimulatedVerifier(),
    )
