from __future__ import annotations

from pathlib import Path

from rel.cli.context import CLIContext
from rel.core.config import Config
from rel.infra.simulated import simulated_collaborators
from rel.output.console import MockConsole
from rel.services.release.orchestrator import ReleaseOrchestrator
from rel.services.release.store import InMemoryReleaseStore


def make_context(tmp_path: Path) -> CLIContext:
    config = Config()
    console = MockConsole()
    orchestrator = ReleaseOrchestrator(
        store=InMemoryReleaseStore(),
        collaborators=simulated_collaborators(),
        console=console,
    )
    return CLIContext(
        config=config,
        config_path=tmp_path / "rel.toml",
        orchestrator=orchestrator,
        console=console,
    )


def mock_console(ctx: CLIContext) -> MockConsole:
    assert isinstance(ctx.console, MockConsole)
    return ctx.console
