"""Interfaces of the external systems the release core drives.

Each method returns a Result; a ``CollaboratorError`` is what a step handler
turns into a failed step. Concrete clients (source control, issue tracker,
CI/CD, cloud) live outside this package; ``rel.infra`` ships a terraform
adapter and simulated implementations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from rel.core.result import Result
from rel.services.release.model import Application

ExecutionState = Literal["running", "succeeded", "failed"]
OverallHealth = Literal["HEALTHY", "UNHEALTHY"]


@dataclass(frozen=True, slots=True)
class CollaboratorError:
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class BranchResult:
    branch_name: str
    source_branch: str


@dataclass(frozen=True, slots=True)
class ReleaseNotesResult:
    notes_text: str
    # e.g. {"stories": 12, "bugs": 3}
    summary_counts: dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.summary_counts.values())


@dataclass(frozen=True, slots=True)
class InfraBuildResult:
    environment: str
    outputs: dict[str, object]


@dataclass(frozen=True, slots=True)
class ProjectTarget:
    """A project resolved against one environment."""

    project: str
    environment: str
    workspace: str
    var_file: str
    working_directory: str


@dataclass(frozen=True, slots=True)
class InfraCommandResult:
    action: str
    target: ProjectTarget
    output: str


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    app: str
    build_id: str
    artifact_url: str


@dataclass(frozen=True, slots=True)
class DeploymentTicket:
    app: str
    execution_id: str


@dataclass(frozen=True, slots=True)
class ExecutionStatus:
    execution_id: str
    state: ExecutionState
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class CheckResult:
    name: str
    success: bool
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    environment: str
    overall_status: OverallHealth
    checks: tuple[CheckResult, ...]

    @property
    def failed_checks(self) -> tuple[CheckResult, ...]:
        return tuple(c for c in self.checks if not c.success)


class SourceControl(Protocol):
    def create_release_branch(
        self, version: str, source_branch: str
    ) -> Result[BranchResult, CollaboratorError]: ...


class IssueTracker(Protocol):
    def generate_release_notes(
        self, sprint_ref: str, version: str
    ) -> Result[ReleaseNotesResult, CollaboratorError]: ...


class InfraBuilder(Protocol):
    def build(self, environment: str) -> Result[InfraBuildResult, CollaboratorError]: ...

    def init(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]: ...

    def plan(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]: ...

    def apply(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]: ...

    def validate(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]: ...

    def output(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]: ...

    def state(self, target: ProjectTarget) -> Result[InfraCommandResult, CollaboratorError]: ...


class ServiceBuilder(Protocol):
    def build(self, app: Application, version: str) -> Result[BuildArtifact, CollaboratorError]: ...


class Deployer(Protocol):
    def deploy(
        self,
        app: Application,
        environment: str,
        version: str,
        artifacts: tuple[str, ...],
    ) -> Result[DeploymentTicket, CollaboratorError]: ...

    def execution_status(self, execution_id: str) -> Result[ExecutionStatus, CollaboratorError]: ...

    def get_status(
        self, app: Application, environment: str
    ) -> Result[ExecutionStatus, CollaboratorError]: ...


class Verifier(Protocol):
    def verify(
        self, environment: str, applications: tuple[Application, ...]
    ) -> Result[VerificationResult, CollaboratorError]: ...


@dataclass(frozen=True, slots=True)
class Collaborators:
    source_control: SourceControl
    issue_tracker: IssueTracker
    infra_builder: InfraBuilder
    service_builder: ServiceBuilder
    deployer: Deployer
    verifier: Verifier
