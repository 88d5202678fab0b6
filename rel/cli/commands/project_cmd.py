from __future__ import annotations

import typer

from rel.cli.commands._helpers import exit_with_code, unwrap_or_exit
from rel.cli.context import build_context
from rel.core.errors import ErrorCode
from rel.output.console import Style

project_app = typer.Typer(add_completion=False, no_args_is_help=True)


def _split(projects: list[str]) -> list[str]:
    # Accept both repeated arguments and comma separated lists.
    return [p.strip() for item in projects for p in item.split(",") if p.strip()]


@project_app.command("list")
def list_cmd() -> None:
    """List infrastructure projects and their dependencies."""
    ctx = build_context()
    for project in ctx.orchestrator.list_projects():
        ctx.console.header(f"{project.name} ({project.display_name})")
        if project.description:
            ctx.console.print(project.description, Style.DIM)
        deps = ", ".join(project.dependencies) or "none"
        ctx.console.print(f"  depends on: {deps}")
        ctx.console.print(f"  environments: {', '.join(project.environment_names())}")
        if project.estimated_duration:
            ctx.console.print(f"  estimated duration: {project.estimated_duration}")


@project_app.command("validate")
def validate_cmd(
    projects: list[str] = typer.Argument(..., help="Projects to deploy together"),
) -> None:
    """Check that every project's dependencies are part of the set."""
    ctx = build_context()
    names = unwrap_or_exit(ctx.orchestrator.validate_dependencies(_split(projects)), ctx)
    ctx.console.success(f"dependencies satisfied: {', '.join(names)}")


@project_app.command("order")
def order_cmd(
    projects: list[str] = typer.Argument(..., help="Projects to order"),
) -> None:
    """Print the deployment order (dependencies first)."""
    ctx = build_context()
    order = unwrap_or_exit(ctx.orchestrator.compute_deployment_order(_split(projects)), ctx)
    for i, name in enumerate(order, start=1):
        ctx.console.print(f"{i}. {name}")


@project_app.command("deploy")
def deploy_cmd(
    projects: list[str] = typer.Argument(..., help="Projects to deploy"),
    env: str = typer.Option(..., "--env", "-e", help="Target environment"),
    approved: bool = typer.Option(False, "--approved", help="Deployment approval was obtained"),
) -> None:
    """Deploy several projects in dependency order (init, plan, apply each)."""
    ctx = build_context()
    report = unwrap_or_exit(
        ctx.orchestrator.deploy_multiple_projects(_split(projects), env, approved=approved), ctx
    )
    if not report.success:
        if report.denial is not None and report.denial.hint:
            ctx.console.print(f"hint: {report.denial.hint}", Style.DIM)
        exit_with_code(int(ErrorCode.STEP_ERROR))


@project_app.command("action")
def action_cmd(
    project: str = typer.Argument(..., help="Project name"),
    action: str = typer.Argument(..., help="Action: init|plan|apply|validate|output|state"),
    env: str = typer.Option(..., "--env", "-e", help="Target environment"),
    approved: bool = typer.Option(False, "--approved", help="Approval for apply was obtained"),
) -> None:
    """Run a single terraform action for one project."""
    ctx = build_context()
    result = unwrap_or_exit(
        ctx.orchestrator.run_project_action(project, env, action, approved=approved), ctx
    )
    if result.output.strip():
        ctx.console.print(result.output.rstrip())
    ctx.console.success(f"{action} completed for {project} in {env}")
