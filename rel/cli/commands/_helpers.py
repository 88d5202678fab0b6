"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from rel.core.errors import ErrorCode
from rel.core.result import Err, Result
from rel.output.errors import print_release_error, release_error_exit_code
from rel.services.release.errors import OrchestrationError
from rel.services.release.model import (
    STEP_TYPES,
    Application,
    ReleaseOptions,
    StepType,
    parse_step_type,
)

if TYPE_CHECKING:
    from rel.cli.context import CLIContext

T = TypeVar("T")
E = TypeVar("E", bound=OrchestrationError)


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)


def usage_error(message: str) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    exit_with_code(int(ErrorCode.USER_ERROR))


def unwrap_or_exit(result: Result[T, E], ctx: CLIContext) -> T:
    """Return the value of ``result`` or render its error and exit.

    The exit code follows the error kind (see ``release_error_exit_code``).
    """
    if isinstance(result, Err):
        print_release_error(result.error, ctx.console)
        exit_with_code(release_error_exit_code(result.error))
    return result.value


def parse_app(item: str) -> Application:
    """``name`` or ``name=artifact[,artifact...]``."""
    name, _, artifacts = item.partition("=")
    name = name.strip()
    if not name:
        usage_error(f"invalid --app (expected name or name=artifact,...): {item}")
    return Application(
        name=name,
        artifacts=tuple(a.strip() for a in artifacts.split(",") if a.strip()),
    )


def parse_step(value: str) -> StepType:
    step = parse_step_type(value)
    if step is None:
        usage_error(f"unknown step type: {value} (expected one of: {', '.join(STEP_TYPES)})")
    return step


def release_options(
    ctx: CLIContext,
    *,
    sprint: str | None = None,
    approved: bool = False,
    wait: bool = False,
    skip: list[str] | None = None,
    source_branch: str | None = None,
) -> ReleaseOptions:
    settings = ctx.config.orchestrator
    return ReleaseOptions(
        source_branch=source_branch or settings.source_branch,
        sprint_ref=sprint,
        approved=approved,
        wait_for_deployments=wait,
        poll_interval_seconds=settings.poll_interval_seconds,
        deployment_timeout_seconds=settings.deployment_timeout_seconds,
        skip_steps=frozenset(parse_step(s) for s in skip or ()),
    )
