"""Handlers for the seven release steps.

Each handler takes the release being executed and returns either a
``StepOutcome`` or the collaborator error that fails the step. Handlers never
touch the store: the orchestrator records the step transition, applies
``release_branch``/``release_notes`` to the release and writes ``messages`` to
the release log.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from rel.core.result import Err, Ok, Result
from rel.services.release.collaborators import CollaboratorError, Collaborators
from rel.services.release.errors import DeploymentTimeout
from rel.services.release.model import Release, ReleaseOptions, StepOutput, StepType
from rel.services.release.polling import wait_for_completion


@dataclass(frozen=True, slots=True)
class StepContext:
    release: Release
    options: ReleaseOptions
    collaborators: Collaborators


@dataclass(frozen=True, slots=True)
class StepOutcome:
    output: StepOutput
    release_branch: str | None = None
    release_notes: str | None = None
    messages: tuple[str, ...] = ()


StepError = CollaboratorError | DeploymentTimeout
StepHandler = Callable[[StepContext], Result[StepOutcome, StepError]]


def create_branch(ctx: StepContext) -> Result[StepOutcome, StepError]:
    created = ctx.collaborators.source_control.create_release_branch(
        ctx.release.version, ctx.options.source_branch
    )
    if isinstance(created, Err):
        return created

    branch = created.value
    return Ok(
        StepOutcome(
            output={"branch_name": branch.branch_name, "source_branch": branch.source_branch},
            release_branch=branch.branch_name,
            messages=(f"Release branch created: {branch.branch_name}",),
        )
    )


def generate_release_notes(ctx: StepContext) -> Result[StepOutcome, StepError]:
    sprint_ref = ctx.options.sprint_ref or ctx.release.sprint_ref
    if not sprint_ref:
        return Err(
            CollaboratorError(
                message="sprint reference is required to generate release notes",
                hint="pass --sprint when creating or running the release",
            )
        )

    generated = ctx.collaborators.issue_tracker.generate_release_notes(
        sprint_ref, ctx.release.version
    )
    if isinstance(generated, Err):
        return generated

    notes = generated.value
    return Ok(
        StepOutcome(
            output={
                "sprint_ref": sprint_ref,
                "summary": dict(notes.summary_counts),
                "total": notes.total,
            },
            release_notes=notes.notes_text,
            messages=(f"Release notes generated with {notes.total} stories",),
        )
    )


def build_infrastructure(ctx: StepContext) -> Result[StepOutcome, StepError]:
    env = ctx.release.environment
    built = ctx.collaborators.infra_builder.build(env)
    if isinstance(built, Err):
        return built

    return Ok(
        StepOutcome(
            output={"environment": env, "outputs": dict(built.value.outputs)},
            messages=(f"Infrastructure built successfully for {env}",),
        )
    )


def build_services(ctx: StepContext) -> Result[StepOutcome, StepError]:
    builds: StepOutput = {}
    messages: list[str] = []
    for app in ctx.release.applications:
        built = ctx.collaborators.service_builder.build(app, ctx.release.version)
        if isinstance(built, Err):
            return Err(
                CollaboratorError(
                    message=f"build of {app.name} failed: {built.error.message}",
                    hint=built.error.hint,
                )
            )
        builds[app.name] = {
            "success": True,
            "build_id": built.value.build_id,
            "artifact_url": built.value.artifact_url,
        }
        messages.append(f"Service {app.name} built successfully")

    return Ok(StepOutcome(output=builds, messages=tuple(messages)))


def deploy_infrastructure(ctx: StepContext) -> Result[StepOutcome, StepError]:
    # Infrastructure was applied by the build step; this records the confirmation.
    env = ctx.release.environment
    return Ok(
        StepOutcome(
            output={"success": True, "message": "Infrastructure deployment completed"},
            messages=(f"Infrastructure deployment completed for {env}",),
        )
    )


def deploy_services(ctx: StepContext) -> Result[StepOutcome, StepError]:
    deployer = ctx.collaborators.deployer
    env = ctx.release.environment
    deployments: StepOutput = {}
    messages: list[str] = []

    for app in ctx.release.applications:
        triggered = deployer.deploy(app, env, ctx.release.version, app.artifacts)
        if isinstance(triggered, Err):
            return Err(
                CollaboratorError(
                    message=f"deployment of {app.name} failed: {triggered.error.message}",
                    hint=triggered.error.hint,
                )
            )
        execution_id = triggered.value.execution_id
        messages.append(f"Service {app.name} deployment triggered: {execution_id}")

        state = "triggered"
        if ctx.options.wait_for_deployments:
            waited = wait_for_completion(
                deployer=deployer,
                execution_id=execution_id,
                timeout_seconds=ctx.options.deployment_timeout_seconds,
                poll_interval_seconds=ctx.options.poll_interval_seconds,
            )
            if isinstance(waited, Err):
                return waited
            state = waited.value.state
            messages.append(f"Service {app.name} deployment {state}")

        deployments[app.name] = {"execution_id": execution_id, "state": state}

    return Ok(StepOutcome(output=deployments, messages=tuple(messages)))


def verify_deployment(ctx: StepContext) -> Result[StepOutcome, StepError]:
    env = ctx.release.environment
    verified = ctx.collaborators.verifier.verify(env, ctx.release.applications)
    if isinstance(verified, Err):
        return verified

    result = verified.value
    if result.overall_status != "HEALTHY":
        failed = ", ".join(c.name for c in result.failed_checks) or "unknown"
        return Err(
            CollaboratorError(
                message=f"deployment verification failed. Status: {result.overall_status}",
                hint=f"failed checks: {failed}",
            )
        )

    return Ok(
        StepOutcome(
            output={
                "environment": result.environment,
                "overall_status": result.overall_status,
                "checks": [
                    {"name": c.name, "success": c.success, "detail": c.detail}
                    for c in result.checks
                ],
            },
            messages=(f"Deployment verification completed. Status: {result.overall_status}",),
        )
    )


STEP_HANDLERS: Mapping[StepType, StepHandler] = {
    "create_branch": create_branch,
    "generate_release_notes": generate_release_notes,
    "build_infrastructure": build_infrastructure,
    "build_services": build_services,
    "deploy_infrastructure": deploy_infrastructure,
    "deploy_services": deploy_services,
    "verify_deployment": verify_deployment,
}
