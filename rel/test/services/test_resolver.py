from __future__ import annotations

from rel.catalog import DEFAULT_PROJECTS
from rel.core.result import Err, Ok
from rel.services.release.errors import (
    DependencyCycle,
    DependencyValidationFailed,
    DependencyViolation,
    UnknownProject,
)
from rel.services.release.resolver import (
    compute_deployment_order,
    find_catalog_cycle,
    validate_dependencies,
)
from rel.test.services._catalogs import make_catalog, make_project

CHAIN = make_catalog(
    make_project("A"),
    make_project("B", "A"),
    make_project("C", "B"),
)


class TestValidateDependencies:
    def test_complete_set_passes(self) -> None:
        result = validate_dependencies(
            ["terraform-infra", "terraform-security", "terraform-databases"],
            catalog=DEFAULT_PROJECTS,
        )
        assert result == Ok(("terraform-infra", "terraform-security", "terraform-databases"))

    def test_dedupes_and_strips(self) -> None:
        result = validate_dependencies([" A ", "A", ""], catalog=CHAIN)
        assert result == Ok(("A",))

    def test_missing_dependency(self) -> None:
        result = validate_dependencies(["terraform-monitoring"], catalog=DEFAULT_PROJECTS)
        assert isinstance(result, Err)
        assert result.error.violations == (
            DependencyViolation(project="terraform-monitoring", missing=("terraform-infra",)),
        )
        assert "project 'terraform-monitoring' requires dependencies: terraform-infra" in (
            result.error.message
        )

    def test_collects_every_violation(self) -> None:
        result = validate_dependencies(
            ["terraform-databases", "ghost", "terraform-monitoring"],
            catalog=DEFAULT_PROJECTS,
        )
        assert isinstance(result, Err)
        assert isinstance(result.error, DependencyValidationFailed)
        assert result.error.unknown == ("ghost",)
        assert [v.project for v in result.error.violations] == [
            "terraform-databases",
            "terraform-monitoring",
        ]
        assert result.error.violations[0].missing == ("terraform-infra", "terraform-security")

    def test_direct_dependencies_only_by_default(self) -> None:
        # C needs B; B's own dependency A is not checked unless B is validated.
        assert validate_dependencies(["C", "B"], catalog=CHAIN) == Ok(("C", "B"))

    def test_transitive_checks_closure(self) -> None:
        result = validate_dependencies(["C", "B"], catalog=CHAIN, transitive=True)
        assert isinstance(result, Err)
        assert result.error.violations == (
            DependencyViolation(project="C", missing=("A",)),
            DependencyViolation(project="B", missing=("A",)),
        )

    def test_not_retryable(self) -> None:
        result = validate_dependencies(["ghost"], catalog=CHAIN)
        assert isinstance(result, Err)
        assert result.error.retryable is False


class TestComputeDeploymentOrder:
    def test_dependencies_first(self) -> None:
        assert compute_deployment_order(["C", "B", "A"], catalog=CHAIN) == Ok(("A", "B", "C"))

    def test_default_catalog(self) -> None:
        result = compute_deployment_order(
            ["terraform-databases", "terraform-security", "terraform-infra"],
            catalog=DEFAULT_PROJECTS,
        )
        assert result == Ok(("terraform-infra", "terraform-security", "terraform-databases"))

    def test_full_default_catalog_keeps_declaration_order(self) -> None:
        result = compute_deployment_order(DEFAULT_PROJECTS.names(), catalog=DEFAULT_PROJECTS)
        assert result == Ok(DEFAULT_PROJECTS.names())

    def test_ignores_dependencies_outside_set(self) -> None:
        assert compute_deployment_order(["C"], catalog=CHAIN) == Ok(("C",))

    def test_independent_projects_keep_input_order(self) -> None:
        result = compute_deployment_order(
            ["terraform-networking", "terraform-infra"], catalog=DEFAULT_PROJECTS
        )
        assert result == Ok(("terraform-networking", "terraform-infra"))

    def test_stable(self) -> None:
        first = compute_deployment_order(["C", "A", "B"], catalog=CHAIN)
        second = compute_deployment_order(["C", "A", "B"], catalog=CHAIN)
        assert first == second

    def test_unknown_project(self) -> None:
        result = compute_deployment_order(["A", "Z"], catalog=CHAIN)
        assert isinstance(result, Err)
        assert isinstance(result.error, UnknownProject)
        assert result.error.name == "Z"
        assert result.error.available == ("A", "B", "C")

    def test_cycle(self) -> None:
        catalog = make_catalog(
            make_project("X", "Y"),
            make_project("Y", "Z"),
            make_project("Z", "X"),
        )
        result = compute_deployment_order(["X", "Y", "Z"], catalog=catalog)
        assert result == Err(DependencyCycle(cycle=("X", "Y", "Z", "X")))
        assert isinstance(result, Err)
        assert result.error.message == "dependency cycle: X -> Y -> Z -> X"

    def test_self_dependency(self) -> None:
        catalog = make_catalog(make_project("X", "X"))
        result = compute_deployment_order(["X"], catalog=catalog)
        assert result == Err(DependencyCycle(cycle=("X", "X")))

    def test_deep_chain_does_not_recurse(self) -> None:
        size = 5000
        projects = [make_project("p0")]
        projects.extend(make_project(f"p{i}", f"p{i - 1}") for i in range(1, size))
        catalog = make_catalog(*projects)

        requested = [f"p{i}" for i in reversed(range(size))]
        result = compute_deployment_order(requested, catalog=catalog)
        assert isinstance(result, Ok)
        assert result.value[0] == "p0"
        assert result.value[-1] == f"p{size - 1}"


class TestFindCatalogCycle:
    def test_default_catalog_is_acyclic(self) -> None:
        assert find_catalog_cycle(DEFAULT_PROJECTS) == Ok(None)

    def test_reports_cycle(self) -> None:
        catalog = make_catalog(make_project("X", "Y"), make_project("Y", "X"))
        result = find_catalog_cycle(catalog)
        assert isinstance(result, Err)
        assert result.error.cycle == ("X", "Y", "X")
