"""Tests for rel.output.console module."""

from __future__ import annotations

import pytest

from rel.output.console import MockConsole, NullConsole, RichConsole, Style


class TestStyle:
    def test_str_conversion(self) -> None:
        assert str(Style.SUCCESS) == "success"
        assert str(Style.DIM) == "dim"

    def test_all_styles_exist(self) -> None:
        expected = {"DEFAULT", "SUCCESS", "ERROR", "WARNING", "INFO", "DIM", "BOLD", "HEADER"}
        assert {s.name for s in Style} == expected


class TestMockConsole:
    def test_prefixes(self) -> None:
        console = MockConsole()
        console.success("deployed")
        console.error("failed")
        console.warning("cancelled")
        console.info("started")
        console.header("Releases")
        console.newline()

        assert console.messages == [
            "OK deployed",
            "error: failed",
            "warning: cancelled",
            "info: started",
            "Releases",
            "",
        ]

    def test_has_error(self) -> None:
        console = MockConsole()
        console.print("fine")
        assert console.has_error() is False
        console.error("boom")
        assert console.has_error() is True

    def test_find(self) -> None:
        console = MockConsole()
        console.info("Starting create_branch step")
        console.info("Starting build_services step")
        assert len(console.find("Starting")) == 2
        assert console.find("verify") == []

    def test_text(self) -> None:
        console = MockConsole()
        console.print("a")
        console.print("b")
        assert console.text == "a\nb"


def test_null_console_discards() -> None:
    console = NullConsole()
    console.print("x", Style.BOLD)
    console.error("y")
    console.newline()


def test_rich_console_does_not_interpret_markup(capsys: pytest.CaptureFixture[str]) -> None:
    console = RichConsole()
    console.info("deploy [prod] now")
    console.print("[bold]literal[/bold]")

    out = capsys.readouterr().out
    assert "deploy [prod] now" in out
    assert "[bold]literal[/bold]" in out
