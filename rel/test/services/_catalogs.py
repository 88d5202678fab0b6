"""Small catalogs shared by the release service tests."""

from __future__ import annotations

from rel.catalog import ALL_ACTIONS, Project, ProjectCatalog, ProjectEnvironment


def make_project(name: str, *deps: str, environments: tuple[str, ...] = ("dev",)) -> Project:
    return Project(
        name=name,
        display_name=name.upper(),
        description="",
        repository=name,
        dependencies=deps,
        environments=tuple(
            (
                env,
                ProjectEnvironment(
                    workspace=env,
                    var_file=f"{env}.tfvars",
                    working_directory=f"/srv/{name}/{env}",
                    allowed_actions=frozenset(ALL_ACTIONS),
                ),
            )
            for env in environments
        ),
    )


def make_catalog(*projects: Project) -> ProjectCatalog:
    return ProjectCatalog(entries=projects)
