from __future__ import annotations

import os
from pathlib import Path

import typer

from rel import __version__
from rel.cli.commands.env_cmd import env_app
from rel.cli.commands.policy_cmd import policy_app
from rel.cli.commands.project_cmd import project_app
from rel.cli.commands.release_cmd import release_app
from rel.cli.context import CONFIG_ENV_VAR
from rel.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Sub-apps
app.add_typer(release_app, name="release", help="Create, run and inspect releases.")
app.add_typer(env_app, name="env", help="Deployment environments.")
app.add_typer(project_app, name="project", help="Infrastructure projects.")
app.add_typer(policy_app, name="policy", help="Environment policy checks.")


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    config: Path | None = typer.Option(
        None,
        "--config",
        help=f"Path to rel.toml (default: ${CONFIG_ENV_VAR} or ./rel.toml)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if config is not None:
        path = config.expanduser()
        if not path.is_file():
            typer.echo(f"error: --config '{path}' is not a file", err=True)
            raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))
        os.environ[CONFIG_ENV_VAR] = str(path.resolve())


def main() -> None:
    app()
