"""Typed errors returned by the release core.

Every error names the release/step/project/environment involved, renders a
human-readable ``message`` with an optional ``hint``, and says whether the
failed operation can be retried as-is (``retryable``). Validation errors are
never retryable until the input changes; failed steps and timeouts are.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


def _available(names: tuple[str, ...]) -> str | None:
    if not names:
        return None
    return f"available: {', '.join(names)}"


@dataclass(frozen=True, slots=True)
class UnknownEnvironment:
    name: str
    available: tuple[str, ...] = ()
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"unknown environment: {self.name}"

    @property
    def hint(self) -> str | None:
        return _available(self.available)


@dataclass(frozen=True, slots=True)
class UnknownProject:
    name: str
    available: tuple[str, ...] = ()
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"unknown project: {self.name}"

    @property
    def hint(self) -> str | None:
        return _available(self.available)


@dataclass(frozen=True, slots=True)
class UnsupportedEnvironmentForProject:
    project: str
    environment: str
    supported: tuple[str, ...] = ()
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"environment '{self.environment}' not supported for project '{self.project}'"

    @property
    def hint(self) -> str | None:
        if not self.supported:
            return None
        return f"supported environments: {', '.join(self.supported)}"


@dataclass(frozen=True, slots=True)
class DependencyViolation:
    project: str
    missing: tuple[str, ...]

    def describe(self) -> str:
        return f"project '{self.project}' requires dependencies: {', '.join(self.missing)}"


@dataclass(frozen=True, slots=True)
class DependencyValidationFailed:
    violations: tuple[DependencyViolation, ...]
    unknown: tuple[str, ...] = ()
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        lines = ["dependency validation failed:"]
        lines.extend(f"unknown project: {name}" for name in self.unknown)
        lines.extend(v.describe() for v in self.violations)
        return "\n".join(lines)

    @property
    def hint(self) -> str | None:
        if not self.violations:
            return None
        return "add the missing projects to the requested set"


@dataclass(frozen=True, slots=True)
class DependencyCycle:
    # First and last entries are the same project.
    cycle: tuple[str, ...]
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"dependency cycle: {' -> '.join(self.cycle)}"

    @property
    def hint(self) -> str | None:
        return "fix the project catalog dependencies"


@dataclass(frozen=True, slots=True)
class ActionNotAllowed:
    project: str
    environment: str
    action: str
    allowed: tuple[str, ...] = ()
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return (
            f"action '{self.action}' is not allowed for project '{self.project}' "
            f"in environment '{self.environment}'"
        )

    @property
    def hint(self) -> str | None:
        if not self.allowed:
            return "no actions are allowed here"
        return f"allowed actions: {', '.join(self.allowed)}"


@dataclass(frozen=True, slots=True)
class ApprovalRequired:
    environment: str
    release_id: str | None = None
    step_type: str | None = None
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        target = f" ({self.step_type})" if self.step_type else ""
        return f"environment '{self.environment}' requires approval before deployment{target}"

    @property
    def hint(self) -> str | None:
        return "obtain approval, then re-run with --approved"


@dataclass(frozen=True, slots=True)
class StepExecutionFailed:
    release_id: str
    step_type: str
    reason: str
    detail: str | None = None
    retryable: ClassVar[bool] = True

    @property
    def message(self) -> str:
        return f"{self.step_type} step failed for release {self.release_id}: {self.reason}"

    @property
    def hint(self) -> str | None:
        if self.detail:
            return self.detail
        return f"retry with: rel release retry {self.release_id} {self.step_type}"


@dataclass(frozen=True, slots=True)
class DeploymentTimeout:
    execution_id: str
    timeout_seconds: float
    last_state: str | None = None
    retryable: ClassVar[bool] = True

    @property
    def message(self) -> str:
        return (
            f"deployment {self.execution_id} did not finish within "
            f"{int(self.timeout_seconds)} seconds"
        )

    @property
    def hint(self) -> str | None:
        if self.last_state is None:
            return None
        return f"last observed state: {self.last_state}"


@dataclass(frozen=True, slots=True)
class InfraActionFailed:
    project: str
    environment: str
    action: str
    reason: str
    detail: str | None = None
    retryable: ClassVar[bool] = True

    @property
    def message(self) -> str:
        return (
            f"{self.action} failed for project '{self.project}' "
            f"in environment '{self.environment}': {self.reason}"
        )

    @property
    def hint(self) -> str | None:
        return self.detail


@dataclass(frozen=True, slots=True)
class ReleaseNotFound:
    release_id: str
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"release not found: {self.release_id}"

    @property
    def hint(self) -> str | None:
        return "list releases with: rel release list"


@dataclass(frozen=True, slots=True)
class UnknownStepType:
    step_type: str
    available: tuple[str, ...] = ()
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"unknown step type: {self.step_type}"

    @property
    def hint(self) -> str | None:
        return _available(self.available)


@dataclass(frozen=True, slots=True)
class VersionInUse:
    version: str
    release_id: str
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"version {self.version} is already used by active release {self.release_id}"

    @property
    def hint(self) -> str | None:
        return "finish or cancel the active release, or pick another version"


@dataclass(frozen=True, slots=True)
class ReleaseClosed:
    release_id: str
    status: str
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"release {self.release_id} is {self.status}; no further steps can run"

    @property
    def hint(self) -> str | None:
        return None


@dataclass(frozen=True, slots=True)
class StepNotPending:
    release_id: str
    step_type: str
    status: str
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"{self.step_type} step of release {self.release_id} is {self.status}, not pending"

    @property
    def hint(self) -> str | None:
        if self.status == "failed":
            return f"retry with: rel release retry {self.release_id} {self.step_type}"
        return None


@dataclass(frozen=True, slots=True)
class StepNotFailed:
    release_id: str
    step_type: str
    status: str
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"can only retry failed steps: {self.step_type} is {self.status}"

    @property
    def hint(self) -> str | None:
        return None


@dataclass(frozen=True, slots=True)
class InvalidReleaseState:
    release_id: str
    status: str
    operation: str
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"cannot {self.operation} release {self.release_id}: status is {self.status}"

    @property
    def hint(self) -> str | None:
        return None


@dataclass(frozen=True, slots=True)
class InvalidRequest:
    reason: str
    retryable: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return self.reason

    @property
    def hint(self) -> str | None:
        return None


@dataclass(frozen=True, slots=True)
class StoreFailed:
    reason: str
    path: str | None = None
    retryable: ClassVar[bool] = True

    @property
    def message(self) -> str:
        return f"release state store failed: {self.reason}"

    @property
    def hint(self) -> str | None:
        return self.path


CatalogError = UnknownEnvironment | UnknownProject | UnsupportedEnvironmentForProject
PolicyError = CatalogError | ActionNotAllowed
ResolverError = UnknownProject | DependencyValidationFailed | DependencyCycle

OrchestrationError = (
    UnknownEnvironment
    | UnknownProject
    | UnsupportedEnvironmentForProject
    | DependencyValidationFailed
    | DependencyCycle
    | ActionNotAllowed
    | ApprovalRequired
    | StepExecutionFailed
    | DeploymentTimeout
    | InfraActionFailed
    | ReleaseNotFound
    | UnknownStepType
    | VersionInUse
    | ReleaseClosed
    | StepNotPending
    | StepNotFailed
    | InvalidReleaseState
    | InvalidRequest
    | StoreFailed
)
