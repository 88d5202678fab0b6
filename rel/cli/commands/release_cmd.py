from __future__ import annotations

from typing import cast

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rel.cli.commands._helpers import (
    parse_app,
    parse_step,
    release_options,
    unwrap_or_exit,
    usage_error,
)
from rel.cli.context import build_context
from rel.output.console import Style
from rel.services.release.model import (
    RELEASE_STATUSES,
    STEP_SEQUENCE,
    Release,
    ReleaseSnapshot,
    ReleaseStatus,
)

release_app = typer.Typer(add_completion=False, no_args_is_help=True)

_console = Console(highlight=False)

_STEP_TITLES = {d.step_type: d.title for d in STEP_SEQUENCE}
_STATUS_STYLES = {
    "pending": "dim",
    "in_progress": "cyan",
    "completed": "green",
    "failed": "red",
    "skipped": "yellow",
    "cancelled": "yellow",
}


def _stamp(release: Release) -> str:
    return release.created_at.strftime("%Y-%m-%d %H:%M:%S")


def _print_snapshot(snapshot: ReleaseSnapshot) -> None:
    release = snapshot.release
    title = escape(f"Release {release.version} ({release.status})")
    table = Table(title=title, title_justify="left")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Error")
    for step in snapshot.steps:
        style = _STATUS_STYLES.get(step.status, "")
        duration = f"{step.duration_seconds}s" if step.duration_seconds is not None else "-"
        table.add_row(
            str(step.order),
            _STEP_TITLES.get(step.step_type, step.step_type),
            f"[{style}]{step.status}[/{style}]" if style else step.status,
            duration,
            escape(step.error_message or ""),
        )
    _console.print(table)
    _console.print(f"id: {release.id}", markup=False)
    _console.print(f"environment: {release.environment}", markup=False)
    if release.release_branch:
        _console.print(f"branch: {release.release_branch}", markup=False)
    _console.print(f"progress: {snapshot.progress}", markup=False)


@release_app.command("create")
def create_cmd(
    version: str = typer.Argument(..., help="Release version (e.g. 1.4.0)"),
    env: str = typer.Option(..., "--env", "-e", help="Target environment"),
    apps: list[str] = typer.Option([], "--app", help="Application: name or name=artifact,..."),
    sprint: str | None = typer.Option(None, "--sprint", help="Sprint reference for release notes"),
) -> None:
    """Create a release and its seven pending steps."""
    ctx = build_context()
    created = ctx.orchestrator.create_release(
        version, env, [parse_app(a) for a in apps], sprint_ref=sprint
    )
    release = unwrap_or_exit(created, ctx)
    ctx.console.success(f"release {release.version} created: {release.id}")


@release_app.command("run")
def run_cmd(
    version: str = typer.Argument(..., help="Release version (e.g. 1.4.0)"),
    env: str = typer.Option(..., "--env", "-e", help="Target environment"),
    apps: list[str] = typer.Option([], "--app", help="Application: name or name=artifact,..."),
    sprint: str | None = typer.Option(None, "--sprint", help="Sprint reference for release notes"),
    approved: bool = typer.Option(False, "--approved", help="Deployment approval was obtained"),
    wait: bool = typer.Option(False, "--wait", help="Wait for service deployments to finish"),
    skip: list[str] = typer.Option([], "--skip", help="Step type to skip (repeatable)"),
    source_branch: str | None = typer.Option(None, "--source-branch", help="Branch to cut from"),
) -> None:
    """Create a release and run all steps in order, stopping at the first failure."""
    ctx = build_context()
    options = release_options(
        ctx,
        sprint=sprint,
        approved=approved,
        wait=wait,
        skip=skip,
        source_branch=source_branch,
    )
    ran = ctx.orchestrator.execute_full_release(
        version, env, [parse_app(a) for a in apps], options
    )
    release = unwrap_or_exit(ran, ctx)
    ctx.console.success(f"release {release.version} completed: {release.id}")


@release_app.command("step")
def step_cmd(
    release_id: str = typer.Argument(..., help="Release id"),
    step: str = typer.Argument(..., help="Step type (e.g. create_branch)"),
    sprint: str | None = typer.Option(None, "--sprint", help="Sprint reference for release notes"),
    approved: bool = typer.Option(False, "--approved", help="Deployment approval was obtained"),
    wait: bool = typer.Option(False, "--wait", help="Wait for service deployments to finish"),
    source_branch: str | None = typer.Option(None, "--source-branch", help="Branch to cut from"),
) -> None:
    """Execute a single pending step."""
    ctx = build_context()
    options = release_options(
        ctx, sprint=sprint, approved=approved, wait=wait, source_branch=source_branch
    )
    unwrap_or_exit(ctx.orchestrator.execute_step(release_id, parse_step(step), options), ctx)
    ctx.console.success(f"{step} completed")


@release_app.command("retry")
def retry_cmd(
    release_id: str = typer.Argument(..., help="Release id"),
    step: str = typer.Argument(..., help="Failed step type to retry"),
    sprint: str | None = typer.Option(None, "--sprint", help="Sprint reference for release notes"),
    approved: bool = typer.Option(False, "--approved", help="Deployment approval was obtained"),
    wait: bool = typer.Option(False, "--wait", help="Wait for service deployments to finish"),
) -> None:
    """Reset a failed step and execute it again."""
    ctx = build_context()
    options = release_options(ctx, sprint=sprint, approved=approved, wait=wait)
    unwrap_or_exit(ctx.orchestrator.retry_step(release_id, parse_step(step), options), ctx)
    ctx.console.success(f"{step} completed")


@release_app.command("skip")
def skip_cmd(
    release_id: str = typer.Argument(..., help="Release id"),
    step: str = typer.Argument(..., help="Pending step type to skip"),
) -> None:
    """Mark a pending step as skipped."""
    ctx = build_context()
    unwrap_or_exit(ctx.orchestrator.skip_step(release_id, parse_step(step)), ctx)
    ctx.console.success(f"{step} skipped")


@release_app.command("cancel")
def cancel_cmd(release_id: str = typer.Argument(..., help="Release id")) -> None:
    """Cancel an open release (completed work is not rolled back)."""
    ctx = build_context()
    release = unwrap_or_exit(ctx.orchestrator.cancel_release(release_id), ctx)
    ctx.console.success(f"release {release.version} cancelled")


@release_app.command("status")
def status_cmd(release_id: str = typer.Argument(..., help="Release id")) -> None:
    """Show a release and its steps."""
    ctx = build_context()
    snapshot = unwrap_or_exit(ctx.orchestrator.get_release_status(release_id), ctx)
    _print_snapshot(snapshot)


@release_app.command("logs")
def logs_cmd(
    release_id: str = typer.Argument(..., help="Release id"),
    step: str | None = typer.Option(None, "--step", help="Only logs of this step type"),
) -> None:
    """Print the release log, oldest first."""
    ctx = build_context()
    entries = unwrap_or_exit(
        ctx.orchestrator.get_release_logs(release_id, parse_step(step) if step else None), ctx
    )
    if not entries:
        ctx.console.print("no log entries", Style.DIM)
        return
    for entry in entries:
        stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        ctx.console.print(f"{stamp} {entry.level.upper():<5} {entry.message}")


@release_app.command("list")
def list_cmd(
    status: str | None = typer.Option(None, "--status", help="Filter by release status"),
    env: str | None = typer.Option(None, "--env", "-e", help="Filter by environment"),
) -> None:
    """List releases, newest first."""
    if status is not None and status not in RELEASE_STATUSES:
        usage_error(f"unknown status: {status} (expected one of: {', '.join(RELEASE_STATUSES)})")
    ctx = build_context()
    releases = ctx.orchestrator.list_releases(
        status=cast(ReleaseStatus, status) if status is not None else None,
        environment=env,
    )
    if not releases:
        ctx.console.print("no releases", Style.DIM)
        return

    table = Table()
    table.add_column("Id")
    table.add_column("Version")
    table.add_column("Environment")
    table.add_column("Status")
    table.add_column("Created")
    for release in releases:
        style = _STATUS_STYLES.get(release.status, "")
        table.add_row(
            release.id,
            escape(release.version),
            escape(release.environment),
            f"[{style}]{release.status}[/{style}]" if style else release.status,
            _stamp(release),
        )
    _console.print(table)


@release_app.command("stats")
def stats_cmd() -> None:
    """Release counts and average duration."""
    ctx = build_context()
    stats = ctx.orchestrator.release_statistics()
    ctx.console.header("Releases")
    ctx.console.print(f"total: {stats.total}")
    for status, count in stats.by_status.items():
        ctx.console.print(f"  {status}: {count}")
    if stats.by_environment:
        ctx.console.header("By environment")
        for env, count in stats.by_environment.items():
            ctx.console.print(f"  {env}: {count}")
    ctx.console.print(f"average duration: {stats.average_duration_minutes} min")
