from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal, cast

ReleaseStatus = Literal["pending", "in_progress", "completed", "failed", "cancelled"]
StepStatus = Literal["pending", "in_progress", "completed", "failed", "skipped"]
StepType = Literal[
    "create_branch",
    "generate_release_notes",
    "build_infrastructure",
    "build_services",
    "deploy_infrastructure",
    "deploy_services",
    "verify_deployment",
]
LogLevel = Literal["debug", "info", "warn", "error"]

StepOutput = dict[str, object]

RELEASE_STATUSES: tuple[ReleaseStatus, ...] = (
    "pending",
    "in_progress",
    "completed",
    "failed",
    "cancelled",
)
TERMINAL_RELEASE_STATUSES: frozenset[ReleaseStatus] = frozenset({"completed", "failed", "cancelled"})
TERMINAL_STEP_STATUSES: frozenset[StepStatus] = frozenset({"completed", "failed", "skipped"})
LOG_LEVELS: tuple[LogLevel, ...] = ("debug", "info", "warn", "error")


@dataclass(frozen=True, slots=True)
class StepDefinition:
    step_type: StepType
    order: int
    title: str


STEP_SEQUENCE: tuple[StepDefinition, ...] = (
    StepDefinition("create_branch", 1, "Create Release Branch"),
    StepDefinition("generate_release_notes", 2, "Generate Release Notes"),
    StepDefinition("build_infrastructure", 3, "Build Infrastructure"),
    StepDefinition("build_services", 4, "Build Services"),
    StepDefinition("deploy_infrastructure", 5, "Deploy Infrastructure"),
    StepDefinition("deploy_services", 6, "Deploy Services"),
    StepDefinition("verify_deployment", 7, "Verify Deployment"),
)

STEP_TYPES: tuple[StepType, ...] = tuple(d.step_type for d in STEP_SEQUENCE)

# Steps that change what runs in the target environment; gated by approval.
DEPLOY_STEP_TYPES: frozenset[StepType] = frozenset({"deploy_infrastructure", "deploy_services"})


def parse_step_type(value: str) -> StepType | None:
    v = value.strip()
    if v in STEP_TYPES:
        return cast(StepType, v)
    return None


def step_order(step_type: StepType) -> int:
    return next(d.order for d in STEP_SEQUENCE if d.step_type == step_type)


def duration_seconds(started_at: datetime, completed_at: datetime) -> int:
    """Whole seconds between two stamps (never negative)."""
    return max(0, int((completed_at - started_at).total_seconds()))


@dataclass(frozen=True, slots=True)
class Application:
    """A deployable unit shipped by a release."""

    name: str
    artifacts: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Release:
    id: str
    version: str
    environment: str
    applications: tuple[Application, ...]
    status: ReleaseStatus
    created_at: datetime
    sprint_ref: str | None = None
    release_branch: str | None = None
    release_notes: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RELEASE_STATUSES

    def start(self, now: datetime) -> Release:
        return replace(self, status="in_progress", started_at=self.started_at or now)

    def finish(self, status: ReleaseStatus, now: datetime) -> Release:
        if status not in TERMINAL_RELEASE_STATUSES:
            raise ValueError(f"not a terminal release status: {status}")
        return replace(self, status=status, completed_at=now)

    @property
    def duration_seconds(self) -> int | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return duration_seconds(self.started_at, self.completed_at)


def _empty_output() -> StepOutput:
    return {}


@dataclass(frozen=True, slots=True)
class Step:
    id: str
    release_id: str
    step_type: StepType
    order: int
    status: StepStatus = "pending"
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: int | None = None
    error_message: str | None = None
    output: StepOutput = field(default_factory=_empty_output)

    def start(self, now: datetime) -> Step:
        return replace(self, status="in_progress", started_at=now)

    def complete(self, now: datetime, output: StepOutput) -> Step:
        return replace(
            self,
            status="completed",
            completed_at=now,
            duration_seconds=self._elapsed(now),
            output=output,
        )

    def fail(self, now: datetime, message: str) -> Step:
        return replace(
            self,
            status="failed",
            completed_at=now,
            duration_seconds=self._elapsed(now),
            error_message=message,
        )

    def skip(self) -> Step:
        return replace(self, status="skipped")

    def reset(self) -> Step:
        return replace(
            self,
            status="pending",
            started_at=None,
            completed_at=None,
            duration_seconds=None,
            error_message=None,
            output={},
        )

    def _elapsed(self, now: datetime) -> int | None:
        if self.started_at is None:
            return None
        return duration_seconds(self.started_at, now)


@dataclass(frozen=True, slots=True)
class LogEntry:
    id: str
    release_id: str
    level: LogLevel
    message: str
    timestamp: datetime
    step_id: str | None = None
    source: str | None = None


@dataclass(frozen=True, slots=True)
class ReleaseSnapshot:
    """A release with its seven steps in execution order."""

    release: Release
    steps: tuple[Step, ...]

    def step(self, step_type: StepType) -> Step:
        return next(s for s in self.steps if s.step_type == step_type)

    @property
    def progress(self) -> str:
        done = sum(1 for s in self.steps if s.status in ("completed", "skipped"))
        return f"{done}/{len(self.steps)}"


@dataclass(frozen=True, slots=True)
class ReleaseOptions:
    """Per-run knobs for step execution."""

    source_branch: str = "main"
    sprint_ref: str | None = None
    # Out-of-band approval for environments that require it.
    approved: bool = False
    wait_for_deployments: bool = False
    poll_interval_seconds: float = 10.0
    deployment_timeout_seconds: float = 30 * 60.0
    skip_steps: frozenset[StepType] = frozenset()


@dataclass(frozen=True, slots=True)
class ReleaseStatistics:
    total: int
    by_status: dict[str, int]
    by_environment: dict[str, int]
    # Mean start-to-finish time of completed releases, rounded to minutes.
    average_duration_minutes: int
