"""Tests for rel.core.result module."""

import pytest

from rel.core.result import Err, Ok, Result, is_err, is_ok


class TestOk:
    def test_ok_is_ok(self) -> None:
        result = Ok("release/1.4.0")
        assert result.is_ok() is True
        assert result.is_err() is False

    def test_ok_unwrap(self) -> None:
        assert Ok(7).unwrap() == 7
        assert Ok(7).unwrap_or(0) == 7

    def test_ok_unwrap_err_raises(self) -> None:
        with pytest.raises(ValueError, match="called unwrap_err on Ok"):
            Ok(42).unwrap_err()

    def test_ok_map(self) -> None:
        assert Ok(21).map(lambda x: x * 2) == Ok(42)

    def test_ok_map_err_is_identity(self) -> None:
        assert Ok(42).map_err(lambda e: f"error: {e}") == Ok(42)

    def test_ok_repr(self) -> None:
        assert repr(Ok("dev")) == "Ok('dev')"

    def test_ok_frozen(self) -> None:
        result = Ok(42)
        with pytest.raises(AttributeError):
            result.value = 0  # type: ignore[misc]


class TestErr:
    def test_err_is_err(self) -> None:
        result = Err("unknown environment: qa")
        assert result.is_err() is True
        assert result.is_ok() is False

    def test_err_unwrap_raises(self) -> None:
        with pytest.raises(ValueError, match="called unwrap on Err"):
            Err("boom").unwrap()

    def test_err_unwrap_or(self) -> None:
        result: Result[int, str] = Err("error")
        assert result.unwrap_or(42) == 42

    def test_err_unwrap_err(self) -> None:
        assert Err("boom").unwrap_err() == "boom"

    def test_err_map_is_identity(self) -> None:
        result: Result[int, str] = Err("error")
        assert result.map(lambda x: x * 2) == Err("error")

    def test_err_map_err(self) -> None:
        assert Err("oops").map_err(lambda e: f"error: {e}") == Err("error: oops")

    def test_equality_across_variants(self) -> None:
        assert Err(42) != Ok(42)


class TestTypeGuards:
    def test_is_ok(self) -> None:
        ok: Result[int, str] = Ok(1)
        err: Result[int, str] = Err("x")
        assert is_ok(ok) is True
        assert is_ok(err) is False

    def test_is_err(self) -> None:
        ok: Result[int, str] = Ok(1)
        err: Result[int, str] = Err("x")
        assert is_err(err) is True
        assert is_err(ok) is False


def test_match_statement() -> None:
    result: Result[int, str] = Err("oops")
    match result:
        case Ok(_):
            pytest.fail("Should not match Ok")
        case Err(error):
            assert error == "oops"
