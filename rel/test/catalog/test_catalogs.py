from __future__ import annotations

from rel.catalog import ALL_ACTIONS, DEFAULT_ENVIRONMENTS, DEFAULT_PROJECTS


class TestDefaultEnvironments:
    def test_names_in_declaration_order(self) -> None:
        assert DEFAULT_ENVIRONMENTS.names() == ("local", "dev", "test", "cat", "prod")

    def test_local_cannot_apply(self) -> None:
        local = DEFAULT_ENVIRONMENTS.get("local")
        assert local is not None
        assert not local.allows("apply")
        assert local.allows("plan")

    def test_approval_environments(self) -> None:
        for name in ("cat", "prod"):
            env = DEFAULT_ENVIRONMENTS.get(name)
            assert env is not None
            assert env.requires_approval is True
            assert env.auto_deploy is False
        for name in ("local", "dev", "test"):
            env = DEFAULT_ENVIRONMENTS.get(name)
            assert env is not None
            assert env.requires_approval is False
            assert env.auto_deploy is True

    def test_prod_allows_every_action(self) -> None:
        prod = DEFAULT_ENVIRONMENTS.get("prod")
        assert prod is not None
        assert prod.allowed_actions == frozenset(ALL_ACTIONS)

    def test_unknown_lookup(self) -> None:
        assert DEFAULT_ENVIRONMENTS.get("staging") is None
        assert "staging" not in DEFAULT_ENVIRONMENTS
        assert "dev" in DEFAULT_ENVIRONMENTS


class TestDefaultProjects:
    def test_dependencies(self) -> None:
        databases = DEFAULT_PROJECTS.get("terraform-databases")
        assert databases is not None
        assert databases.dependencies == ("terraform-infra", "terraform-security")

        networking = DEFAULT_PROJECTS.get("terraform-networking")
        assert networking is not None
        assert networking.dependencies == ()

    def test_working_directories(self) -> None:
        infra = DEFAULT_PROJECTS.get("terraform-infra")
        monitoring = DEFAULT_PROJECTS.get("terraform-monitoring")
        assert infra is not None
        assert monitoring is not None

        infra_dev = infra.environment("dev")
        monitoring_prod = monitoring.environment("prod")
        assert infra_dev is not None
        assert monitoring_prod is not None
        assert infra_dev.working_directory == "/opt/terraform/dev"
        assert monitoring_prod.working_directory == "/opt/terraform/monitoring/prod"

    def test_every_project_supports_every_environment(self) -> None:
        for project in DEFAULT_PROJECTS:
            assert project.environment_names() == DEFAULT_ENVIRONMENTS.names()

    def test_dependents_of(self) -> None:
        assert DEFAULT_PROJECTS.dependents_of("terraform-infra") == (
            "terraform-monitoring",
            "terraform-security",
            "terraform-databases",
        )
        assert DEFAULT_PROJECTS.dependents_of("terraform-networking") == ()
