"""Project catalog: deployable infrastructure units and their dependencies."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .environments import ALL_ACTIONS, READ_ONLY_ACTIONS

__all__ = [
    "ProjectEnvironment",
    "Project",
    "ProjectCatalog",
    "DEFAULT_PROJECTS",
]


@dataclass(frozen=True, slots=True)
class ProjectEnvironment:
    """Where and how a project is applied in one environment."""

    workspace: str
    var_file: str
    working_directory: str
    allowed_actions: frozenset[str]


@dataclass(frozen=True, slots=True)
class Project:
    name: str
    display_name: str
    description: str
    repository: str
    dependencies: tuple[str, ...]
    # (environment name, config) pairs; a tuple keeps the record hashable.
    environments: tuple[tuple[str, ProjectEnvironment], ...]
    estimated_duration: str | None = None

    def environment(self, name: str) -> ProjectEnvironment | None:
        return next((cfg for env, cfg in self.environments if env == name), None)

    def environment_names(self) -> tuple[str, ...]:
        return tuple(env for env, _ in self.environments)


@dataclass(frozen=True, slots=True)
class ProjectCatalog:
    entries: tuple[Project, ...]

    def get(self, name: str) -> Project | None:
        return next((p for p in self.entries if p.name == name), None)

    def names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.entries)

    def dependents_of(self, name: str) -> tuple[str, ...]:
        """Projects that declare ``name`` as a direct dependency."""
        return tuple(p.name for p in self.entries if name in p.dependencies)

    def __contains__(self, name: object) -> bool:
        return any(p.name == name for p in self.entries)

    def __iter__(self) -> Iterator[Project]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


_ENVIRONMENT_NAMES = ("local", "dev", "test", "cat", "prod")


def _terraform_project(
    name: str,
    display_name: str,
    description: str,
    *,
    subdir: str | None,
    dependencies: tuple[str, ...],
    estimated_duration: str,
) -> Project:
    base = "/opt/terraform" if subdir is None else f"/opt/terraform/{subdir}"
    environments = tuple(
        (
            env,
            ProjectEnvironment(
                workspace=env,
                var_file=f"{env}.tfvars",
                working_directory=f"{base}/{env}",
                allowed_actions=frozenset(READ_ONLY_ACTIONS if env == "local" else ALL_ACTIONS),
            ),
        )
        for env in _ENVIRONMENT_NAMES
    )
    return Project(
        name=name,
        display_name=display_name,
        description=description,
        repository=name if name != "terraform-infra" else "terraform-infrastructure",
        dependencies=dependencies,
        environments=environments,
        estimated_duration=estimated_duration,
    )


DEFAULT_PROJECTS = ProjectCatalog(
    entries=(
        _terraform_project(
            "terraform-infra",
            "Infrastructure",
            "Core infrastructure components (VPC, ECS, RDS, ALB)",
            subdir=None,
            dependencies=(),
            estimated_duration="10-15 minutes",
        ),
        _terraform_project(
            "terraform-monitoring",
            "Monitoring Infrastructure",
            "Monitoring and logging infrastructure (CloudWatch, ELK, Prometheus)",
            subdir="monitoring",
            dependencies=("terraform-infra",),
            estimated_duration="5-10 minutes",
        ),
        _terraform_project(
            "terraform-security",
            "Security Infrastructure",
            "Security components (IAM, Security Groups, WAF, GuardDuty)",
            subdir="security",
            dependencies=("terraform-infra",),
            estimated_duration="8-12 minutes",
        ),
        _terraform_project(
            "terraform-databases",
            "Database Infrastructure",
            "Database infrastructure (RDS, DynamoDB, ElastiCache, SQS)",
            subdir="databases",
            dependencies=("terraform-infra", "terraform-security"),
            estimated_duration="12-18 minutes",
        ),
        _terraform_project(
            "terraform-networking",
            "Networking Infrastructure",
            "Networking components (VPC, Subnets, Route53, API Gateway)",
            subdir="networking",
            dependencies=(),
            estimated_duration="6-10 minutes",
        ),
    )
)
