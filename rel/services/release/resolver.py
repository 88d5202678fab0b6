"""Dependency resolution over the project catalog.

Validation and ordering work on a *requested subset* of project names.
Ordering is a depth-first post-order over the requested projects (in input
order) that only follows dependencies inside the requested set. The graph is
indexed into integer adjacency lists and walked iteratively with three-color
marking, so a cycle is reported as DependencyCycle instead of recursing
forever.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from rel.catalog import ProjectCatalog
from rel.core.result import Err, Ok, Result
from rel.services.release.errors import (
    DependencyCycle,
    DependencyValidationFailed,
    DependencyViolation,
    UnknownProject,
)

_WHITE = 0
_GRAY = 1
_BLACK = 2


def _unique(names: Sequence[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for raw in names:
        name = raw.strip()
        if not name or name in seen:
            continue
        seen.add(name)
        out.append(name)
    return tuple(out)


def _closure(name: str, catalog: ProjectCatalog) -> tuple[str, ...]:
    """All projects ``name`` depends on, directly or not, in discovery order."""
    out: list[str] = []
    seen: set[str] = {name}
    stack = [name]
    while stack:
        project = catalog.get(stack.pop())
        if project is None:
            continue
        for dep in project.dependencies:
            if dep in seen:
                continue
            seen.add(dep)
            out.append(dep)
            stack.append(dep)
    return tuple(out)


def validate_dependencies(
    requested: Sequence[str],
    *,
    catalog: ProjectCatalog,
    transitive: bool = False,
) -> Result[tuple[str, ...], DependencyValidationFailed]:
    """Check that every requested project's dependencies are requested too.

    All violations are collected before failing. By default only *direct*
    dependencies are checked: a dependency's own dependencies must be present
    only if that dependency was itself requested. ``transitive=True`` checks
    the full closure instead.
    """
    names = _unique(requested)
    wanted = set(names)

    unknown: list[str] = []
    violations: list[DependencyViolation] = []
    for name in names:
        project = catalog.get(name)
        if project is None:
            unknown.append(name)
            continue
        deps = _closure(name, catalog) if transitive else project.dependencies
        missing = tuple(d for d in deps if d not in wanted)
        if missing:
            violations.append(DependencyViolation(project=name, missing=missing))

    if unknown or violations:
        return Err(DependencyValidationFailed(violations=tuple(violations), unknown=tuple(unknown)))
    return Ok(names)


def _post_order(
    names: tuple[str, ...],
    deps_of: Callable[[str], tuple[str, ...]],
) -> Result[tuple[str, ...], DependencyCycle]:
    index = {name: i for i, name in enumerate(names)}
    adjacency: list[tuple[int, ...]] = [
        tuple(index[d] for d in deps_of(name) if d in index) for name in names
    ]

    color = [_WHITE] * len(names)
    order: list[str] = []

    for root in range(len(names)):
        if color[root] != _WHITE:
            continue

        # (node, next dependency position)
        stack: list[tuple[int, int]] = [(root, 0)]
        color[root] = _GRAY
        while stack:
            node, pos = stack[-1]
            deps = adjacency[node]
            if pos < len(deps):
                stack[-1] = (node, pos + 1)
                dep = deps[pos]
                if color[dep] == _GRAY:
                    path = [n for n, _ in stack]
                    start = path.index(dep)
                    cycle = [names[n] for n in path[start:]] + [names[dep]]
                    return Err(DependencyCycle(cycle=tuple(cycle)))
                if color[dep] == _WHITE:
                    color[dep] = _GRAY
                    stack.append((dep, 0))
                continue

            stack.pop()
            color[node] = _BLACK
            order.append(names[node])

    return Ok(tuple(order))


def compute_deployment_order(
    requested: Sequence[str],
    *,
    catalog: ProjectCatalog,
) -> Result[tuple[str, ...], UnknownProject | DependencyCycle]:
    """Order ``requested`` so every project follows its in-set dependencies.

    Dependencies outside the requested set are ignored (assumed already
    deployed). For a fixed input order and catalog the output is stable.
    """
    names = _unique(requested)
    for name in names:
        if name not in catalog:
            return Err(UnknownProject(name=name, available=catalog.names()))

    def deps_of(name: str) -> tuple[str, ...]:
        project = catalog.get(name)
        return project.dependencies if project is not None else ()

    return _post_order(names, deps_of)


def find_catalog_cycle(catalog: ProjectCatalog) -> Result[None, DependencyCycle]:
    """Check the whole catalog's dependency graph for a cycle."""
    ordered = compute_deployment_order(catalog.names(), catalog=catalog)
    if isinstance(ordered, Err) and isinstance(ordered.error, DependencyCycle):
        return Err(ordered.error)
    return Ok(None)
