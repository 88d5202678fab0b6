from __future__ import annotations

import typer

from rel.cli.context import build_context
from rel.output.console import Style

env_app = typer.Typer(add_completion=False, no_args_is_help=True)


@env_app.command("list")
def list_cmd() -> None:
    """List environments and their deployment policy."""
    ctx = build_context()
    for env in ctx.orchestrator.list_environments():
        ctx.console.header(f"{env.name} ({env.display_name})")
        if env.description:
            ctx.console.print(env.description, Style.DIM)
        actions = ", ".join(sorted(env.allowed_actions)) or "none"
        ctx.console.print(f"  allowed actions: {actions}")
        ctx.console.print(f"  requires approval: {'yes' if env.requires_approval else 'no'}")
        ctx.console.print(f"  auto deploy: {'yes' if env.auto_deploy else 'no'}")
        ctx.console.print(f"  workspace: {env.terraform_workspace} ({env.terraform_var_file})")
