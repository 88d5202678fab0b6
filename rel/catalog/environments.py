"""Environment registry: the static catalog of deployment targets."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal

__all__ = [
    "Action",
    "ALL_ACTIONS",
    "READ_ONLY_ACTIONS",
    "EnvironmentConfig",
    "EnvironmentRegistry",
    "DEFAULT_ENVIRONMENTS",
]

Action = Literal["init", "plan", "apply", "validate", "output", "state"]

ALL_ACTIONS: tuple[Action, ...] = ("init", "plan", "apply", "validate", "output", "state")
# Everything except `apply`.
READ_ONLY_ACTIONS: tuple[Action, ...] = ("init", "plan", "validate", "output", "state")


@dataclass(frozen=True, slots=True)
class EnvironmentConfig:
    """A deployment target and its policy."""

    name: str
    display_name: str
    description: str
    allowed_actions: frozenset[str]
    requires_approval: bool
    auto_deploy: bool
    terraform_workspace: str
    terraform_var_file: str
    deploy_pipeline: str
    region: str = "us-east-1"
    health_check_endpoints: tuple[str, ...] = ()

    def allows(self, action: str) -> bool:
        return action in self.allowed_actions


@dataclass(frozen=True, slots=True)
class EnvironmentRegistry:
    """Read-only set of environments, kept in declaration order."""

    entries: tuple[EnvironmentConfig, ...]

    def get(self, name: str) -> EnvironmentConfig | None:
        return next((e for e in self.entries if e.name == name), None)

    def names(self) -> tuple[str, ...]:
        return tuple(e.name for e in self.entries)

    def __contains__(self, name: object) -> bool:
        return any(e.name == name for e in self.entries)

    def __iter__(self) -> Iterator[EnvironmentConfig]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def _env(
    name: str,
    display_name: str,
    description: str,
    *,
    allowed: tuple[Action, ...],
    requires_approval: bool,
    health_hosts: tuple[str, str],
) -> EnvironmentConfig:
    return EnvironmentConfig(
        name=name,
        display_name=display_name,
        description=description,
        allowed_actions=frozenset(allowed),
        requires_approval=requires_approval,
        auto_deploy=not requires_approval,
        terraform_workspace=name,
        terraform_var_file=f"{name}.tfvars",
        deploy_pipeline=f"{name}-deploy",
        health_check_endpoints=tuple(f"{host}/health" for host in health_hosts),
    )


DEFAULT_ENVIRONMENTS = EnvironmentRegistry(
    entries=(
        _env(
            "local",
            "Local",
            "Local development environment",
            allowed=READ_ONLY_ACTIONS,
            requires_approval=False,
            health_hosts=("http://localhost:3000", "http://localhost:8080"),
        ),
        _env(
            "dev",
            "Development",
            "Development environment for feature testing",
            allowed=ALL_ACTIONS,
            requires_approval=False,
            health_hosts=("https://dev-api.example.com", "https://dev-web.example.com"),
        ),
        _env(
            "test",
            "Test",
            "Testing environment for QA and integration testing",
            allowed=ALL_ACTIONS,
            requires_approval=False,
            health_hosts=("https://test-api.example.com", "https://test-web.example.com"),
        ),
        _env(
            "cat",
            "CAT (Customer Acceptance Testing)",
            "Customer acceptance testing environment",
            allowed=ALL_ACTIONS,
            requires_approval=True,
            health_hosts=("https://cat-api.example.com", "https://cat-web.example.com"),
        ),
        _env(
            "prod",
            "Production",
            "Production environment for live applications",
            allowed=ALL_ACTIONS,
            requires_approval=True,
            health_hosts=("https://api.example.com", "https://web.example.com"),
        ),
    )
)
