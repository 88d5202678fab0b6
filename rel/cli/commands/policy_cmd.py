from __future__ import annotations

import typer

from rel.cli.commands._helpers import exit_with_code, unwrap_or_exit
from rel.cli.context import build_context
from rel.core.errors import ErrorCode

policy_app = typer.Typer(add_completion=False, no_args_is_help=True)


@policy_app.command("check")
def check_cmd(
    project: str = typer.Argument(..., help="Project name"),
    env: str = typer.Argument(..., help="Environment name"),
    action: str = typer.Argument(..., help="Action: init|plan|apply|validate|output|state"),
) -> None:
    """Check whether an action is allowed for a project in an environment.

    Exits 0 when allowed and 1 when denied.
    """
    ctx = build_context()
    allowed = unwrap_or_exit(ctx.orchestrator.is_action_allowed(project, env, action), ctx)
    if allowed:
        ctx.console.success(f"{action} is allowed for {project} in {env}")
        return
    ctx.console.error(f"{action} is not allowed for {project} in {env}")
    exit_with_code(int(ErrorCode.USER_ERROR))
