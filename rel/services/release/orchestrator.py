"""Release orchestration: the release/step state machine.

``ReleaseOrchestrator`` creates releases with their seven steps, runs steps
one at a time or as a full fail-fast sequence, and records every transition
and log line in the release store. Every public operation returns a Result;
a step handler that raises fails its step the same way an Err does.

State rules:
- a step only starts from ``pending`` (compare-and-swap in the store), so the
  same step can never run twice at once or be re-run without ``retry_step``
- ``completed``, ``failed`` and ``cancelled`` releases never change status
  again; a failed release still accepts step retries
- deploy steps in an environment that requires approval need
  ``ReleaseOptions.approved``, checked before anything is written
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from uuid import uuid4

from rel.catalog import (
    DEFAULT_ENVIRONMENTS,
    DEFAULT_PROJECTS,
    EnvironmentConfig,
    EnvironmentRegistry,
    Project,
    ProjectCatalog,
)
from rel.core.result import Err, Ok, Result
from rel.output.console import ConsoleProtocol, NullConsole, Style
from rel.services.release import policy, resolver
from rel.services.release.collaborators import (
    CollaboratorError,
    Collaborators,
    InfraCommandResult,
)
from rel.services.release.errors import (
    ApprovalRequired,
    DependencyCycle,
    DependencyValidationFailed,
    InvalidReleaseState,
    InvalidRequest,
    OrchestrationError,
    ReleaseClosed,
    ReleaseNotFound,
    StepExecutionFailed,
    StepNotFailed,
    StepNotPending,
    StoreFailed,
    UnknownEnvironment,
    UnknownProject,
    UnknownStepType,
    UnsupportedEnvironmentForProject,
)
from rel.services.release.infra_deploy import (
    ActionError,
    BatchError,
    MultiProjectReport,
    deploy_multiple_projects,
    run_project_action,
)
from rel.services.release.model import (
    DEPLOY_STEP_TYPES,
    RELEASE_STATUSES,
    STEP_SEQUENCE,
    STEP_TYPES,
    Application,
    LogEntry,
    LogLevel,
    Release,
    ReleaseOptions,
    ReleaseSnapshot,
    ReleaseStatistics,
    ReleaseStatus,
    Step,
    StepOutput,
    StepType,
    parse_step_type,
)
from rel.services.release.steps import STEP_HANDLERS, StepContext, StepHandler
from rel.services.release.store import ReleaseStore

LOG_SOURCE = "orchestrator"

_OPEN_STATUSES: frozenset[ReleaseStatus] = frozenset({"pending", "in_progress"})
_CLOSED_FOR_STEPS: frozenset[ReleaseStatus] = frozenset({"completed", "cancelled"})


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _new_id() -> str:
    return uuid4().hex


class ReleaseOrchestrator:
    def __init__(
        self,
        *,
        store: ReleaseStore,
        collaborators: Collaborators,
        environments: EnvironmentRegistry = DEFAULT_ENVIRONMENTS,
        projects: ProjectCatalog = DEFAULT_PROJECTS,
        console: ConsoleProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
        handlers: Mapping[StepType, StepHandler] = STEP_HANDLERS,
        transitive_validation: bool = False,
    ) -> None:
        self._store = store
        self._collaborators = collaborators
        self._environments = environments
        self._projects = projects
        self._console: ConsoleProtocol = console if console is not None else NullConsole()
        self._clock = clock
        self._handlers = handlers
        self._transitive = transitive_validation

    # -- release lifecycle -------------------------------------------------

    def create_release(
        self,
        version: str,
        environment: str,
        applications: Sequence[Application],
        *,
        sprint_ref: str | None = None,
    ) -> Result[Release, OrchestrationError]:
        version = version.strip()
        if not version:
            return Err(InvalidRequest(reason="release version must not be empty"))
        env = policy.get_environment(self._environments, environment)
        if isinstance(env, Err):
            return env

        now = self._clock()
        release = Release(
            id=_new_id(),
            version=version,
            environment=environment,
            applications=tuple(applications),
            status="pending",
            created_at=now,
            sprint_ref=sprint_ref,
        )
        steps = [
            Step(id=_new_id(), release_id=release.id, step_type=d.step_type, order=d.order)
            for d in STEP_SEQUENCE
        ]
        log = self._entry(
            release.id, "info", f"Release {version} created for {environment} environment"
        )

        created = self._store.create(release, steps, log)
        if isinstance(created, Err):
            return created
        self._mirror(log)
        return created

    def execute_step(
        self,
        release_id: str,
        step_type: str,
        options: ReleaseOptions | None = None,
    ) -> Result[StepOutput, OrchestrationError]:
        opts = options or ReleaseOptions()
        st = parse_step_type(step_type)
        if st is None:
            return Err(UnknownStepType(step_type=step_type, available=STEP_TYPES))
        handler = self._handlers.get(st)
        if handler is None:
            return Err(UnknownStepType(step_type=step_type, available=tuple(self._handlers)))

        release = self._store.get_release(release_id)
        if release is None:
            return Err(ReleaseNotFound(release_id=release_id))
        if release.status in _CLOSED_FOR_STEPS:
            return Err(ReleaseClosed(release_id=release_id, status=release.status))

        if st in DEPLOY_STEP_TYPES and not opts.approved:
            needs = policy.requires_approval(self._environments, release.environment)
            if isinstance(needs, Err):
                return needs
            if needs.value:
                return Err(
                    ApprovalRequired(
                        environment=release.environment, release_id=release_id, step_type=st
                    )
                )

        started_at = self._clock()
        started = self._store.update_step(
            release_id, st, lambda s: s.start(started_at), expected="pending"
        )
        if isinstance(started, Err):
            return started
        if started.value is None:
            current = self._store.get_step(release_id, st)
            status = current.status if current is not None else "missing"
            return Err(StepNotPending(release_id=release_id, step_type=st, status=status))
        step = started.value

        moved = self._store.update_release(
            release_id, lambda r: r.start(started_at), expected=frozenset({"pending"})
        )
        if isinstance(moved, Err):
            return moved

        logged = self._log(release_id, "info", f"Starting {st} step", step_id=step.id)
        if isinstance(logged, Err):
            return logged

        current_release = self._store.get_release(release_id) or release
        ctx = StepContext(
            release=current_release, options=opts, collaborators=self._collaborators
        )
        try:
            outcome = handler(ctx)
        except Exception as e:  # noqa: BLE001
            outcome = Err(CollaboratorError(message=f"{type(e).__name__}: {e}"))

        if isinstance(outcome, Err):
            reason = outcome.error.message
            failed_at = self._clock()
            failed = self._store.update_step(
                release_id, st, lambda s: s.fail(failed_at, reason), expected="in_progress"
            )
            if isinstance(failed, Err):
                return failed
            logged = self._log(release_id, "error", f"{st} step failed: {reason}", step_id=step.id)
            if isinstance(logged, Err):
                return logged
            return Err(
                StepExecutionFailed(
                    release_id=release_id,
                    step_type=st,
                    reason=reason,
                    detail=outcome.error.hint,
                )
            )

        result = outcome.value
        if result.release_branch is not None or result.release_notes is not None:
            branch = result.release_branch
            notes = result.release_notes
            recorded = self._store.update_release(
                release_id,
                lambda r: replace(
                    r,
                    release_branch=branch if branch is not None else r.release_branch,
                    release_notes=notes if notes is not None else r.release_notes,
                ),
            )
            if isinstance(recorded, Err):
                return recorded

        for message in result.messages:
            logged = self._log(release_id, "info", message, step_id=step.id)
            if isinstance(logged, Err):
                return logged

        completed_at = self._clock()
        completed = self._store.update_step(
            release_id,
            st,
            lambda s: s.complete(completed_at, result.output),
            expected="in_progress",
        )
        if isinstance(completed, Err):
            return completed

        logged = self._log(
            release_id, "info", f"{st} step completed successfully", step_id=step.id
        )
        if isinstance(logged, Err):
            return logged
        return Ok(result.output)

    def execute_full_release(
        self,
        version: str,
        environment: str,
        applications: Sequence[Application],
        options: ReleaseOptions | None = None,
    ) -> Result[Release, OrchestrationError]:
        """Create a release and run all seven steps in order, stopping at the first failure.

        On failure the release is marked ``failed`` and later steps stay
        ``pending``; the failing step's error is returned.
        """
        opts = options or ReleaseOptions()

        env = policy.get_environment(self._environments, environment)
        if isinstance(env, Err):
            return env
        gated = DEPLOY_STEP_TYPES - opts.skip_steps
        if gated and env.value.requires_approval and not opts.approved:
            return Err(ApprovalRequired(environment=environment))

        created = self.create_release(
            version, environment, applications, sprint_ref=opts.sprint_ref
        )
        if isinstance(created, Err):
            return created
        release = created.value

        now = self._clock()
        started = self._store.update_release(
            release.id, lambda r: r.start(now), expected=frozenset({"pending"})
        )
        if isinstance(started, Err):
            return started
        logged = self._log(release.id, "info", f"Starting full release process for version {version}")
        if isinstance(logged, Err):
            return logged

        for definition in STEP_SEQUENCE:
            current = self._store.get_release(release.id)
            if current is None:
                return Err(ReleaseNotFound(release_id=release.id))
            if current.status == "cancelled":
                return Err(ReleaseClosed(release_id=release.id, status=current.status))

            if definition.step_type in opts.skip_steps:
                skipped = self.skip_step(release.id, definition.step_type)
                if isinstance(skipped, Err):
                    return skipped
                continue

            ran = self.execute_step(release.id, definition.step_type, opts)
            if isinstance(ran, Err):
                failed_at = self._clock()
                marked = self._store.update_release(
                    release.id,
                    lambda r: r.finish("failed", failed_at),
                    expected=_OPEN_STATUSES,
                )
                if isinstance(marked, Err):
                    return marked
                if marked.value is not None:
                    logged = self._log(
                        release.id,
                        "error",
                        f"Release {version} failed at {definition.step_type} step",
                    )
                    if isinstance(logged, Err):
                        return logged
                return ran

        finished_at = self._clock()
        finished = self._store.update_release(
            release.id,
            lambda r: r.finish("completed", finished_at),
            expected=_OPEN_STATUSES,
        )
        if isinstance(finished, Err):
            return finished
        if finished.value is None:
            current = self._store.get_release(release.id)
            status = current.status if current is not None else "missing"
            return Err(ReleaseClosed(release_id=release.id, status=status))

        logged = self._log(release.id, "info", f"Release {version} completed successfully")
        if isinstance(logged, Err):
            return logged
        return Ok(finished.value)

    def cancel_release(self, release_id: str) -> Result[Release, OrchestrationError]:
        """Mark an open release cancelled. Nothing already done is rolled back."""
        release = self._store.get_release(release_id)
        if release is None:
            return Err(ReleaseNotFound(release_id=release_id))
        if release.is_terminal:
            return Err(
                InvalidReleaseState(release_id=release_id, status=release.status, operation="cancel")
            )

        now = self._clock()
        cancelled = self._store.update_release(
            release_id, lambda r: r.finish("cancelled", now), expected=_OPEN_STATUSES
        )
        if isinstance(cancelled, Err):
            return cancelled
        if cancelled.value is None:
            current = self._store.get_release(release_id)
            status = current.status if current is not None else "missing"
            return Err(InvalidReleaseState(release_id=release_id, status=status, operation="cancel"))

        logged = self._log(release_id, "warn", f"Release {release.version} cancelled by user")
        if isinstance(logged, Err):
            return logged
        return Ok(cancelled.value)

    def retry_step(
        self,
        release_id: str,
        step_type: str,
        options: ReleaseOptions | None = None,
    ) -> Result[StepOutput, OrchestrationError]:
        """Reset a failed step to pending and execute it again.

        The release status is left alone: a failed release stays failed.
        """
        st = parse_step_type(step_type)
        if st is None:
            return Err(UnknownStepType(step_type=step_type, available=STEP_TYPES))
        release = self._store.get_release(release_id)
        if release is None:
            return Err(ReleaseNotFound(release_id=release_id))
        if release.status in _CLOSED_FOR_STEPS:
            return Err(ReleaseClosed(release_id=release_id, status=release.status))

        reset = self._store.update_step(release_id, st, lambda s: s.reset(), expected="failed")
        if isinstance(reset, Err):
            return reset
        if reset.value is None:
            current = self._store.get_step(release_id, st)
            status = current.status if current is not None else "missing"
            return Err(StepNotFailed(release_id=release_id, step_type=st, status=status))

        logged = self._log(release_id, "info", f"Retrying {st} step", step_id=reset.value.id)
        if isinstance(logged, Err):
            return logged
        return self.execute_step(release_id, st, options)

    def skip_step(self, release_id: str, step_type: str) -> Result[Step, OrchestrationError]:
        st = parse_step_type(step_type)
        if st is None:
            return Err(UnknownStepType(step_type=step_type, available=STEP_TYPES))
        release = self._store.get_release(release_id)
        if release is None:
            return Err(ReleaseNotFound(release_id=release_id))
        if release.status in _CLOSED_FOR_STEPS:
            return Err(ReleaseClosed(release_id=release_id, status=release.status))

        skipped = self._store.update_step(release_id, st, lambda s: s.skip(), expected="pending")
        if isinstance(skipped, Err):
            return skipped
        if skipped.value is None:
            current = self._store.get_step(release_id, st)
            status = current.status if current is not None else "missing"
            return Err(StepNotPending(release_id=release_id, step_type=st, status=status))

        logged = self._log(release_id, "info", f"{st} step skipped", step_id=skipped.value.id)
        if isinstance(logged, Err):
            return logged
        return Ok(skipped.value)

    # -- queries ------------------------------------------------------------

    def get_release_status(self, release_id: str) -> Result[ReleaseSnapshot, ReleaseNotFound]:
        release = self._store.get_release(release_id)
        if release is None:
            return Err(ReleaseNotFound(release_id=release_id))
        return Ok(ReleaseSnapshot(release=release, steps=self._store.get_steps(release_id)))

    def get_release_logs(
        self, release_id: str, step_type: str | None = None
    ) -> Result[tuple[LogEntry, ...], ReleaseNotFound | UnknownStepType]:
        if self._store.get_release(release_id) is None:
            return Err(ReleaseNotFound(release_id=release_id))
        if step_type is None:
            return Ok(self._store.logs(release_id))

        st = parse_step_type(step_type)
        if st is None:
            return Err(UnknownStepType(step_type=step_type, available=STEP_TYPES))
        step = self._store.get_step(release_id, st)
        if step is None:
            return Ok(())
        return Ok(self._store.logs(release_id, step_id=step.id))

    def list_releases(
        self,
        *,
        status: ReleaseStatus | None = None,
        environment: str | None = None,
    ) -> tuple[Release, ...]:
        """Releases newest first, optionally filtered."""
        selected = [
            r
            for r in self._store.releases()
            if (status is None or r.status == status)
            and (environment is None or r.environment == environment)
        ]
        return tuple(sorted(selected, key=lambda r: r.created_at, reverse=True))

    def release_statistics(self) -> ReleaseStatistics:
        releases = self._store.releases()
        by_status = Counter(r.status for r in releases)
        by_environment = Counter(r.environment for r in releases)
        durations = [
            d for r in releases if r.status == "completed" and (d := r.duration_seconds) is not None
        ]
        average = round(sum(durations) / len(durations) / 60) if durations else 0
        return ReleaseStatistics(
            total=len(releases),
            by_status={s: by_status.get(s, 0) for s in RELEASE_STATUSES},
            by_environment=dict(sorted(by_environment.items())),
            average_duration_minutes=average,
        )

    def list_environments(self) -> tuple[EnvironmentConfig, ...]:
        return tuple(self._environments)

    def list_projects(self) -> tuple[Project, ...]:
        return tuple(self._projects)

    # -- catalog / policy facade ---------------------------------------------

    def validate_dependencies(
        self, requested: Sequence[str]
    ) -> Result[tuple[str, ...], DependencyValidationFailed]:
        return resolver.validate_dependencies(
            requested, catalog=self._projects, transitive=self._transitive
        )

    def compute_deployment_order(
        self, requested: Sequence[str]
    ) -> Result[tuple[str, ...], UnknownProject | DependencyCycle]:
        return resolver.compute_deployment_order(requested, catalog=self._projects)

    def is_action_allowed(
        self, project: str, environment: str, action: str
    ) -> Result[bool, UnknownProject | UnsupportedEnvironmentForProject]:
        return policy.is_action_allowed(
            self._projects, project=project, environment=environment, action=action
        )

    def requires_approval(self, environment: str) -> Result[bool, UnknownEnvironment]:
        return policy.requires_approval(self._environments, environment)

    def deploy_multiple_projects(
        self,
        requested: Sequence[str],
        environment: str,
        *,
        approved: bool = False,
    ) -> Result[MultiProjectReport, BatchError]:
        self._console.header(f"Deploying {len(requested)} project(s) to {environment}")
        deployed = deploy_multiple_projects(
            requested,
            environment=environment,
            environments=self._environments,
            projects=self._projects,
            infra=self._collaborators.infra_builder,
            approved=approved,
            transitive=self._transitive,
        )
        if isinstance(deployed, Err):
            return deployed

        report = deployed.value
        for result in report.results:
            if result.success:
                self._console.success(f"{result.project}: {', '.join(result.actions)}")
            else:
                self._console.error(f"{result.project}: {result.error}")
        if report.success:
            self._console.success(report.summary)
        else:
            self._console.warning(report.summary)
        return deployed

    def run_project_action(
        self,
        project: str,
        environment: str,
        action: str,
        *,
        approved: bool = False,
    ) -> Result[InfraCommandResult, ActionError]:
        return run_project_action(
            project,
            environment=environment,
            action=action,
            environments=self._environments,
            projects=self._projects,
            infra=self._collaborators.infra_builder,
            approved=approved,
        )

    # -- log sink -------------------------------------------------------------

    def _entry(
        self,
        release_id: str,
        level: LogLevel,
        message: str,
        *,
        step_id: str | None = None,
    ) -> LogEntry:
        return LogEntry(
            id=_new_id(),
            release_id=release_id,
            level=level,
            message=message,
            timestamp=self._clock(),
            step_id=step_id,
            source=LOG_SOURCE,
        )

    def _log(
        self,
        release_id: str,
        level: LogLevel,
        message: str,
        *,
        step_id: str | None = None,
    ) -> Result[None, StoreFailed]:
        entry = self._entry(release_id, level, message, step_id=step_id)
        appended = self._store.append_log(entry)
        if isinstance(appended, Err):
            return appended
        self._mirror(entry)
        return appended

    def _mirror(self, entry: LogEntry) -> None:
        match entry.level:
            case "debug":
                self._console.print(entry.message, Style.DIM)
            case "info":
                self._console.info(entry.message)
            case "warn":
                self._console.warning(entry.message)
            case "error":
                self._console.error(entry.message)
