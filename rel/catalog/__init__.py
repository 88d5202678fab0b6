"""Static catalogs: environments and infrastructure projects."""

from .environments import (
    ALL_ACTIONS,
    DEFAULT_ENVIRONMENTS,
    READ_ONLY_ACTIONS,
    Action,
    EnvironmentConfig,
    EnvironmentRegistry,
)
from .projects import DEFAULT_PROJECTS, Project, ProjectCatalog, ProjectEnvironment

__all__ = [
    "ALL_ACTIONS",
    "DEFAULT_ENVIRONMENTS",
    "DEFAULT_PROJECTS",
    "READ_ONLY_ACTIONS",
    "Action",
    "EnvironmentConfig",
    "EnvironmentRegistry",
    "Project",
    "ProjectCatalog",
    "ProjectEnvironment",
]
