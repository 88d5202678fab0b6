from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer

from rel.core.config import Config, load_config_or_default
from rel.core.errors import ErrorCode
from rel.core.result import Err
from rel.infra.simulated import simulated_collaborators
from rel.infra.terraform import TerraformCli
from rel.output.console import ConsoleProtocol, RichConsole
from rel.services.release.orchestrator import ReleaseOrchestrator
from rel.services.release.resolver import find_catalog_cycle
from rel.services.release.store import JsonReleaseStore

CONFIG_ENV_VAR = "REL_CONFIG"
DEFAULT_CONFIG_FILE = "rel.toml"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    config_path: Path
    orchestrator: ReleaseOrchestrator
    console: ConsoleProtocol


def config_path() -> Path:
    raw = os.environ.get(CONFIG_ENV_VAR)
    if raw:
        return Path(raw).expanduser()
    return Path.cwd() / DEFAULT_CONFIG_FILE


def _fail(message: str, *, code: ErrorCode) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(code=int(code))


def build_context() -> CLIContext:
    path = config_path()
    config_result = load_config_or_default(path)
    if isinstance(config_result, Err):
        _fail(config_result.error.message, code=ErrorCode.CONFIG_ERROR)
    config = config_result.value

    cycle = find_catalog_cycle(config.projects)
    if isinstance(cycle, Err):
        _fail(cycle.error.message, code=ErrorCode.CONFIG_ERROR)

    state_dir = Path(config.orchestrator.state_dir).expanduser()
    if not state_dir.is_absolute():
        state_dir = path.parent / state_dir
    store = JsonReleaseStore.open(state_dir)
    if isinstance(store, Err):
        _fail(store.error.message, code=ErrorCode.IO_ERROR)

    infra = None
    if config.orchestrator.infra_backend == "terraform":
        infra = TerraformCli(
            environments=config.environments,
            base_dir=Path(config.orchestrator.terraform_dir),
        )

    console = RichConsole()
    orchestrator = ReleaseOrchestrator(
        store=store.value,
        collaborators=simulated_collaborators(infra),
        environments=config.environments,
        projects=config.projects,
        console=console,
        transitive_validation=config.orchestrator.transitive_validation,
    )
    return CLIContext(
        config=config,
        config_path=path,
        orchestrator=orchestrator,
        console=console,
    )
