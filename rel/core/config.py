"""Typed configuration loading (rel.toml).

The file is optional. Without it the built-in catalogs and orchestrator
defaults apply. When ``[environments.*]`` or ``[projects.*]`` tables are
present they replace the corresponding built-in catalog as a whole.

Example:
    [orchestrator]
    state_dir = ".rel"
    poll_interval_seconds = 10
    deployment_timeout_seconds = 1800
    transitive_validation = false
    infra_backend = "terraform"

    [environments.dev]
    display_name = "Development"
    allowed_actions = ["init", "plan", "apply"]
    requires_approval = false

    [projects.terraform-infra]
    dependencies = []

    [projects.terraform-infra.environments.dev]
    working_directory = "/opt/terraform/dev"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, cast

from rel.catalog import (
    ALL_ACTIONS,
    DEFAULT_ENVIRONMENTS,
    DEFAULT_PROJECTS,
    EnvironmentConfig,
    EnvironmentRegistry,
    Project,
    ProjectCatalog,
    ProjectEnvironment,
)

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_float,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "Config",
    "ConfigError",
    "InfraBackend",
    "OrchestratorConfig",
    "load_config",
    "load_config_or_default",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_DEPLOYMENT_TIMEOUT_SECONDS",
]

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_DEPLOYMENT_TIMEOUT_SECONDS = 30 * 60.0

InfraBackend = Literal["simulated", "terraform"]


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class OrchestratorConfig:
    state_dir: str = ".rel"
    source_branch: str = "main"
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    deployment_timeout_seconds: float = DEFAULT_DEPLOYMENT_TIMEOUT_SECONDS
    # Validate the full dependency closure instead of direct dependencies only.
    transitive_validation: bool = False
    infra_backend: InfraBackend = "simulated"
    terraform_dir: str = "/opt/terraform"


def _default_environments() -> EnvironmentRegistry:
    return DEFAULT_ENVIRONMENTS


def _default_projects() -> ProjectCatalog:
    return DEFAULT_PROJECTS


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    environments: EnvironmentRegistry = field(default_factory=_default_environments)
    projects: ProjectCatalog = field(default_factory=_default_projects)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: On invalid values (unknown actions, bad backend,
                dependencies on undeclared projects...).
        """
        orchestrator = _parse_orchestrator(get_table(data, "orchestrator") or {})

        env_tables = get_table(data, "environments")
        environments = (
            _parse_environments(env_tables) if env_tables else DEFAULT_ENVIRONMENTS
        )

        project_tables = get_table(data, "projects")
        projects = _parse_projects(project_tables) if project_tables else DEFAULT_PROJECTS

        return cls(orchestrator=orchestrator, environments=environments, projects=projects)


def _positive(value: float | None, *, key: str, default: float) -> float:
    if value is None:
        return default
    if value <= 0:
        raise ValueError(f"orchestrator.{key} must be > 0")
    return value


def _parse_orchestrator(table: StrDict) -> OrchestratorConfig:
    backend = get_str(table, "infra_backend") or "simulated"
    if backend not in ("simulated", "terraform"):
        raise ValueError(f"orchestrator.infra_backend must be 'simulated' or 'terraform': {backend}")

    return OrchestratorConfig(
        state_dir=get_str(table, "state_dir") or ".rel",
        source_branch=get_str(table, "source_branch") or "main",
        poll_interval_seconds=_positive(
            get_float(table, "poll_interval_seconds"),
            key="poll_interval_seconds",
            default=DEFAULT_POLL_INTERVAL_SECONDS,
        ),
        deployment_timeout_seconds=_positive(
            get_float(table, "deployment_timeout_seconds"),
            key="deployment_timeout_seconds",
            default=DEFAULT_DEPLOYMENT_TIMEOUT_SECONDS,
        ),
        transitive_validation=bool(get_bool(table, "transitive_validation")),
        infra_backend=cast(InfraBackend, backend),
        terraform_dir=get_str(table, "terraform_dir") or "/opt/terraform",
    )


def _parse_actions(table: StrDict, *, where: str) -> frozenset[str]:
    actions = get_str_list(table, "allowed_actions")
    if actions is None:
        return frozenset(ALL_ACTIONS)
    unknown = [a for a in actions if a not in ALL_ACTIONS]
    if unknown:
        raise ValueError(f"{where}: unknown actions: {', '.join(unknown)}")
    return frozenset(actions)


def _parse_environments(tables: StrDict) -> EnvironmentRegistry:
    entries: list[EnvironmentConfig] = []
    for name, raw in tables.items():
        table = as_str_dict(raw)
        if table is None:
            raise ValueError(f"environments.{name} must be a table")
        requires_approval = bool(get_bool(table, "requires_approval"))
        auto_deploy = get_bool(table, "auto_deploy")
        entries.append(
            EnvironmentConfig(
                name=name,
                display_name=get_str(table, "display_name") or name,
                description=get_str(table, "description") or "",
                allowed_actions=_parse_actions(table, where=f"environments.{name}"),
                requires_approval=requires_approval,
                auto_deploy=(not requires_approval) if auto_deploy is None else auto_deploy,
                terraform_workspace=get_str(table, "terraform_workspace") or name,
                terraform_var_file=get_str(table, "terraform_var_file") or f"{name}.tfvars",
                deploy_pipeline=get_str(table, "deploy_pipeline") or f"{name}-deploy",
                region=get_str(table, "region") or "us-east-1",
                health_check_endpoints=get_str_list(table, "health_check_endpoints") or (),
            )
        )
    return EnvironmentRegistry(entries=tuple(entries))


def _parse_projects(tables: StrDict) -> ProjectCatalog:
    entries: list[Project] = []
    for name, raw in tables.items():
        table = as_str_dict(raw)
        if table is None:
            raise ValueError(f"projects.{name} must be a table")

        envs: list[tuple[str, ProjectEnvironment]] = []
        for env_name, env_raw in (get_table(table, "environments") or {}).items():
            env_table = as_str_dict(env_raw)
            if env_table is None:
                raise ValueError(f"projects.{name}.environments.{env_name} must be a table")
            working_directory = get_str(env_table, "working_directory")
            if working_directory is None:
                raise ValueError(
                    f"projects.{name}.environments.{env_name}: working_directory is required"
                )
            envs.append(
                (
                    env_name,
                    ProjectEnvironment(
                        workspace=get_str(env_table, "workspace") or env_name,
                        var_file=get_str(env_table, "var_file") or f"{env_name}.tfvars",
                        working_directory=working_directory,
                        allowed_actions=_parse_actions(
                            env_table, where=f"projects.{name}.environments.{env_name}"
                        ),
                    ),
                )
            )

        entries.append(
            Project(
                name=name,
                display_name=get_str(table, "display_name") or name,
                description=get_str(table, "description") or "",
                repository=get_str(table, "repository") or name,
                dependencies=get_str_list(table, "dependencies") or (),
                environments=tuple(envs),
                estimated_duration=get_str(table, "estimated_duration"),
            )
        )

    names = {p.name for p in entries}
    for project in entries:
        undeclared = [d for d in project.dependencies if d not in names]
        if undeclared:
            raise ValueError(
                f"projects.{project.name}: unknown dependencies: {', '.join(undeclared)}"
            )
    return ProjectCatalog(entries=tuple(entries))


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to rel.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path | None) -> Result[Config, ConfigError]:
    """Load config from ``path`` when it exists, else the built-in defaults.

    A file that exists but cannot be parsed is still an error.
    """
    if path is None or not path.exists():
        return Ok(Config())
    return load_config(path)
