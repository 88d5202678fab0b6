from __future__ import annotations

from pathlib import Path

import pytest
import typer

from rel.cli.context import CONFIG_ENV_VAR, build_context, config_path
from rel.core.errors import ErrorCode
from rel.infra.terraform import TerraformCli
from rel.services.release.store import STATE_FILE_NAME


@pytest.fixture(autouse=True)
def _no_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


def test_config_path_defaults_to_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert config_path() == tmp_path / "rel.toml"


def test_config_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "custom.toml"))
    assert config_path() == tmp_path / "custom.toml"


def test_state_dir_is_relative_to_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "rel.toml"
    path.write_text('[orchestrator]\nstate_dir = "state"\n', encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    ctx = build_context()
    ctx.orchestrator.create_release("1.0.0", "dev", [])

    assert (tmp_path / "state" / STATE_FILE_NAME).is_file()


def test_terraform_backend(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "rel.toml"
    path.write_text('[orchestrator]\ninfra_backend = "terraform"\n', encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    ctx = build_context()

    assert ctx.config.orchestrator.infra_backend == "terraform"
    assert isinstance(ctx.orchestrator._collaborators.infra_builder, TerraformCli)  # pyright: ignore[reportPrivateUsage]


def test_invalid_config_exits(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "rel.toml"
    path.write_text("[orchestrator\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    with pytest.raises(typer.Exit) as exc:
        build_context()
    assert exc.value.exit_code == int(ErrorCode.CONFIG_ERROR)


def test_cyclic_catalog_exits(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "rel.toml"
    path.write_text(
        "\n".join(
            [
                "[projects.a]",
                'dependencies = ["b"]',
                "[projects.a.environments.dev]",
                'working_directory = "/srv/a"',
                "[projects.b]",
                'dependencies = ["a"]',
                "[projects.b.environments.dev]",
                'working_directory = "/srv/b"',
                "",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    with pytest.raises(typer.Exit) as exc:
        build_context()
    assert exc.value.exit_code == int(ErrorCode.CONFIG_ERROR)


def test_corrupt_state_exits(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".rel").mkdir()
    (tmp_path / ".rel" / STATE_FILE_NAME).write_text("[]", encoding="utf-8")

    with pytest.raises(typer.Exit) as exc:
        build_context()
    assert exc.value.exit_code == int(ErrorCode.IO_ERROR)


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    from rel import __version__
    from rel.cli.app import _main  # pyright: ignore[reportPrivateUsage]

    with pytest.raises(typer.Exit) as exc:
        _main(version=True, config=None)

    assert exc.value.exit_code == 0
    assert capsys.readouterr().out.strip() == __version__


def test_config_flag_must_be_a_file(tmp_path: Path) -> None:
    from rel.cli.app import _main  # pyright: ignore[reportPrivateUsage]

    with pytest.raises(typer.Exit) as exc:
        _main(version=False, config=tmp_path / "missing.toml")
    assert exc.value.exit_code == int(ErrorCode.CONFIG_ERROR)
