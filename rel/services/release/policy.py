"""Environment policy gate.

Pure lookups over the two catalogs. Bad references fail with a descriptive
error instead of quietly answering False.
"""

from __future__ import annotations

from rel.catalog import EnvironmentConfig, EnvironmentRegistry, ProjectCatalog, ProjectEnvironment
from rel.core.result import Err, Ok, Result
from rel.services.release.collaborators import ProjectTarget
from rel.services.release.errors import (
    ActionNotAllowed,
    UnknownEnvironment,
    UnknownProject,
    UnsupportedEnvironmentForProject,
)


def get_environment(
    environments: EnvironmentRegistry, name: str
) -> Result[EnvironmentConfig, UnknownEnvironment]:
    env = environments.get(name)
    if env is None:
        return Err(UnknownEnvironment(name=name, available=environments.names()))
    return Ok(env)


def project_environment(
    projects: ProjectCatalog, *, project: str, environment: str
) -> Result[ProjectEnvironment, UnknownProject | UnsupportedEnvironmentForProject]:
    entry = projects.get(project)
    if entry is None:
        return Err(UnknownProject(name=project, available=projects.names()))
    cfg = entry.environment(environment)
    if cfg is None:
        return Err(
            UnsupportedEnvironmentForProject(
                project=project,
                environment=environment,
                supported=entry.environment_names(),
            )
        )
    return Ok(cfg)


def project_target(
    projects: ProjectCatalog, *, project: str, environment: str
) -> Result[ProjectTarget, UnknownProject | UnsupportedEnvironmentForProject]:
    cfg = project_environment(projects, project=project, environment=environment)
    if isinstance(cfg, Err):
        return cfg
    return Ok(
        ProjectTarget(
            project=project,
            environment=environment,
            workspace=cfg.value.workspace,
            var_file=cfg.value.var_file,
            working_directory=cfg.value.working_directory,
        )
    )


def is_action_allowed(
    projects: ProjectCatalog, *, project: str, environment: str, action: str
) -> Result[bool, UnknownProject | UnsupportedEnvironmentForProject]:
    cfg = project_environment(projects, project=project, environment=environment)
    if isinstance(cfg, Err):
        return cfg
    return Ok(action in cfg.value.allowed_actions)


def require_action(
    projects: ProjectCatalog, *, project: str, environment: str, action: str
) -> Result[ProjectTarget, UnknownProject | UnsupportedEnvironmentForProject | ActionNotAllowed]:
    """Like is_action_allowed, but a denial is an ActionNotAllowed error."""
    cfg = project_environment(projects, project=project, environment=environment)
    if isinstance(cfg, Err):
        return cfg
    if action not in cfg.value.allowed_actions:
        return Err(
            ActionNotAllowed(
                project=project,
                environment=environment,
                action=action,
                allowed=tuple(sorted(cfg.value.allowed_actions)),
            )
        )
    return project_target(projects, project=project, environment=environment)


def requires_approval(
    environments: EnvironmentRegistry, name: str
) -> Result[bool, UnknownEnvironment]:
    return get_environment(environments, name).map(lambda env: env.requires_approval)


def is_auto_deploy(environments: EnvironmentRegistry, name: str) -> Result[bool, UnknownEnvironment]:
    return get_environment(environments, name).map(lambda env: env.auto_deploy)
