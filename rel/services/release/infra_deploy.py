"""Multi-project infrastructure deployment and single project actions.

A batch deploy validates everything it can before touching infrastructure:
the environment, approval, dependency completeness, ordering, and that each
project supports the environment. Then it runs init -> plan -> apply per
project in dependency order and stops at the first failure or policy denial.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from rel.catalog import EnvironmentRegistry, ProjectCatalog
from rel.core.result import Err, Ok, Result
from rel.services.release.collaborators import (
    CollaboratorError,
    InfraBuilder,
    InfraCommandResult,
    ProjectTarget,
)
from rel.services.release.errors import (
    ActionNotAllowed,
    ApprovalRequired,
    DependencyCycle,
    DependencyValidationFailed,
    InfraActionFailed,
    UnknownEnvironment,
    UnknownProject,
    UnsupportedEnvironmentForProject,
)
from rel.services.release.policy import get_environment, project_target, require_action
from rel.services.release.resolver import compute_deployment_order, validate_dependencies


BatchError = (
    UnknownEnvironment
    | ApprovalRequired
    | DependencyValidationFailed
    | UnknownProject
    | DependencyCycle
    | UnsupportedEnvironmentForProject
)
ActionError = (
    UnknownEnvironment
    | UnknownProject
    | UnsupportedEnvironmentForProject
    | ActionNotAllowed
    | ApprovalRequired
    | InfraActionFailed
)


@dataclass(frozen=True, slots=True)
class ProjectDeployResult:
    project: str
    success: bool
    # Actions that completed, in order.
    actions: tuple[str, ...] = ()
    error: str | None = None


@dataclass(frozen=True, slots=True)
class MultiProjectReport:
    environment: str
    requested: tuple[str, ...]
    order: tuple[str, ...]
    results: tuple[ProjectDeployResult, ...]
    halted_by: str | None = None
    denial: ActionNotAllowed | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def success(self) -> bool:
        return self.halted_by is None and self.succeeded == len(self.order)

    @property
    def summary(self) -> str:
        return f"{self.succeeded}/{len(self.order)} projects deployed successfully"


InfraCommand = Callable[[ProjectTarget], Result[InfraCommandResult, CollaboratorError]]


def _command(infra: InfraBuilder, action: str) -> InfraCommand | None:
    match action:
        case "init":
            return infra.init
        case "plan":
            return infra.plan
        case "apply":
            return infra.apply
        case "validate":
            return infra.validate
        case "output":
            return infra.output
        case "state":
            return infra.state
        case _:
            return None


def _deploy_project(infra: InfraBuilder, target: ProjectTarget) -> ProjectDeployResult:
    steps: tuple[tuple[str, InfraCommand], ...] = (
        ("init", infra.init),
        ("plan", infra.plan),
        ("apply", infra.apply),
    )
    done: list[str] = []
    for action, command in steps:
        ran = command(target)
        if isinstance(ran, Err):
            return ProjectDeployResult(
                project=target.project,
                success=False,
                actions=tuple(done),
                error=f"{action} failed: {ran.error.message}",
            )
        done.append(action)
    return ProjectDeployResult(project=target.project, success=True, actions=tuple(done))


def deploy_multiple_projects(
    requested: Sequence[str],
    *,
    environment: str,
    environments: EnvironmentRegistry,
    projects: ProjectCatalog,
    infra: InfraBuilder,
    approved: bool = False,
    transitive: bool = False,
) -> Result[MultiProjectReport, BatchError]:
    env = get_environment(environments, environment)
    if isinstance(env, Err):
        return env
    if env.value.requires_approval and not approved:
        return Err(ApprovalRequired(environment=environment))

    validated = validate_dependencies(requested, catalog=projects, transitive=transitive)
    if isinstance(validated, Err):
        return validated
    ordered = compute_deployment_order(validated.value, catalog=projects)
    if isinstance(ordered, Err):
        return ordered

    targets: list[ProjectTarget] = []
    for name in ordered.value:
        target = project_target(projects, project=name, environment=environment)
        if isinstance(target, Err):
            return target
        targets.append(target.value)

    results: list[ProjectDeployResult] = []
    for target in targets:
        allowed = require_action(
            projects, project=target.project, environment=environment, action="apply"
        )
        if isinstance(allowed, Err):
            denial = allowed.error if isinstance(allowed.error, ActionNotAllowed) else None
            results.append(
                ProjectDeployResult(
                    project=target.project, success=False, error=allowed.error.message
                )
            )
            return Ok(
                MultiProjectReport(
                    environment=environment,
                    requested=validated.value,
                    order=ordered.value,
                    results=tuple(results),
                    halted_by=target.project,
                    denial=denial,
                )
            )

        result = _deploy_project(infra, target)
        results.append(result)
        if not result.success:
            return Ok(
                MultiProjectReport(
                    environment=environment,
                    requested=validated.value,
                    order=ordered.value,
                    results=tuple(results),
                    halted_by=target.project,
                )
            )

    return Ok(
        MultiProjectReport(
            environment=environment,
            requested=validated.value,
            order=ordered.value,
            results=tuple(results),
        )
    )


def run_project_action(
    project: str,
    *,
    environment: str,
    action: str,
    environments: EnvironmentRegistry,
    projects: ProjectCatalog,
    infra: InfraBuilder,
    approved: bool = False,
) -> Result[InfraCommandResult, ActionError]:
    """Run one terraform verb for one project, gated by the environment policy.

    ``apply`` in an environment that requires approval also needs ``approved``.
    """
    env = get_environment(environments, environment)
    if isinstance(env, Err):
        return env

    target = require_action(projects, project=project, environment=environment, action=action)
    if isinstance(target, Err):
        return target
    if action == "apply" and env.value.requires_approval and not approved:
        return Err(ApprovalRequired(environment=environment))

    command = _command(infra, action)
    if command is None:
        return Err(
            InfraActionFailed(
                project=project,
                environment=environment,
                action=action,
                reason="unsupported action",
            )
        )

    ran = command(target.value)
    if isinstance(ran, Err):
        return Err(
            InfraActionFailed(
                project=project,
                environment=environment,
                action=action,
                reason=ran.error.message,
                detail=ran.error.hint,
            )
        )
    return ran
