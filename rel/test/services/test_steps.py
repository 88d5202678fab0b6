from __future__ import annotations

from datetime import UTC, datetime

import pytest

import rel.services.release.polling as polling_mod
from rel.core.result import Err, Ok
from rel.infra.simulated import SimulatedDeployer
from rel.services.release.collaborators import CollaboratorError
from rel.services.release.model import STEP_TYPES, Application, Release, ReleaseOptions
from rel.services.release.steps import (
    STEP_HANDLERS,
    StepContext,
    build_infrastructure,
    build_services,
    create_branch,
    deploy_infrastructure,
    deploy_services,
    generate_release_notes,
    verify_deployment,
)
from rel.test.services._fakes import FlakyServiceBuilder, UnhealthyVerifier, collaborators

APPS = (Application(name="api"), Application(name="web"))


def _release(**kwargs: object) -> Release:
    fields: dict[str, object] = {
        "id": "r1",
        "version": "2.1.0",
        "environment": "test",
        "applications": APPS,
        "status": "in_progress",
        "created_at": datetime(2026, 5, 4, tzinfo=UTC),
    }
    fields.update(kwargs)
    return Release(**fields)  # type: ignore[arg-type]


def _ctx(
    release: Release | None = None,
    options: ReleaseOptions | None = None,
    **collab: object,
) -> StepContext:
    return StepContext(
        release=release or _release(),
        options=options or ReleaseOptions(),
        collaborators=collaborators(**collab),
    )


def test_every_step_has_a_handler() -> None:
    assert tuple(STEP_HANDLERS) == STEP_TYPES


def test_create_branch() -> None:
    result = create_branch(_ctx(options=ReleaseOptions(source_branch="develop")))

    assert isinstance(result, Ok)
    assert result.value.release_branch == "release/2.1.0"
    assert result.value.output == {"branch_name": "release/2.1.0", "source_branch": "develop"}
    assert result.value.messages == ("Release branch created: release/2.1.0",)


class TestGenerateReleaseNotes:
    def test_uses_release_sprint(self) -> None:
        result = generate_release_notes(_ctx(_release(sprint_ref="SPR-12")))

        assert isinstance(result, Ok)
        assert result.value.release_notes is not None
        assert "Sprint: SPR-12" in result.value.release_notes
        assert result.value.output["sprint_ref"] == "SPR-12"
        assert result.value.messages == ("Release notes generated with 0 stories",)

    def test_option_overrides_release_sprint(self) -> None:
        result = generate_release_notes(
            _ctx(_release(sprint_ref="SPR-12"), ReleaseOptions(sprint_ref="SPR-13"))
        )
        assert isinstance(result, Ok)
        assert result.value.output["sprint_ref"] == "SPR-13"

    def test_requires_sprint(self) -> None:
        result = generate_release_notes(_ctx())

        assert isinstance(result, Err)
        assert result.error.message == "sprint reference is required to generate release notes"


def test_build_infrastructure() -> None:
    result = build_infrastructure(_ctx())

    assert isinstance(result, Ok)
    assert result.value.output == {"environment": "test", "outputs": {"environment": "test"}}
    assert result.value.messages == ("Infrastructure built successfully for test",)


class TestBuildServices:
    def test_builds_each_application(self) -> None:
        result = build_services(_ctx())

        assert isinstance(result, Ok)
        assert set(result.value.output) == {"api", "web"}
        assert result.value.messages == (
            "Service api built successfully",
            "Service web built successfully",
        )

    def test_stops_at_first_failure(self) -> None:
        builder = FlakyServiceBuilder(app="api")
        result = build_services(_ctx(service_builder=builder))

        assert result == Err(
            CollaboratorError(message="build of api failed: compiler crashed", hint="see build log")
        )
        assert builder.calls == ["api"]


def test_deploy_infrastructure() -> None:
    result = deploy_infrastructure(_ctx())

    assert isinstance(result, Ok)
    assert result.value.output == {"success": True, "message": "Infrastructure deployment completed"}


class TestDeployServices:
    def test_triggers_without_waiting(self) -> None:
        result = deploy_services(_ctx())

        assert isinstance(result, Ok)
        assert result.value.output["api"] == {
            "execution_id": "exec-api-test-2.1.0",
            "state": "triggered",
        }
        assert result.value.messages == (
            "Service api deployment triggered: exec-api-test-2.1.0",
            "Service web deployment triggered: exec-web-test-2.1.0",
        )

    def test_waits_for_completion(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(polling_mod, "sleep", lambda seconds: None)
        options = ReleaseOptions(wait_for_deployments=True, poll_interval_seconds=0.1)

        result = deploy_services(_ctx(options=options, deployer=SimulatedDeployer()))

        assert isinstance(result, Ok)
        assert result.value.output["web"] == {
            "execution_id": "exec-web-test-2.1.0",
            "state": "succeeded",
        }
        assert "Service web deployment succeeded" in result.value.messages


class TestVerifyDeployment:
    def test_healthy(self) -> None:
        result = verify_deployment(_ctx())

        assert isinstance(result, Ok)
        assert result.value.output["overall_status"] == "HEALTHY"
        assert result.value.messages == ("Deployment verification completed. Status: HEALTHY",)

    def test_unhealthy_fails_step(self) -> None:
        result = verify_deployment(_ctx(verifier=UnhealthyVerifier()))

        assert isinstance(result, Err)
        assert result.error.message == "deployment verification failed. Status: UNHEALTHY"
        assert result.error.hint == "failed checks: web-health"
