from __future__ import annotations

from rel.core.structured import (
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_str,
    get_str_list,
    get_table,
)


def test_as_str_dict_rejects_non_string_keys() -> None:
    assert as_str_dict({"a": 1}) == {"a": 1}
    assert as_str_dict({1: "a"}) is None
    assert as_str_dict(["a"]) is None


def test_get_str_strips_and_drops_blank() -> None:
    table: dict[str, object] = {"a": "  dev ", "b": "   ", "c": 3}
    assert get_str(table, "a") == "dev"
    assert get_str(table, "b") is None
    assert get_str(table, "c") is None
    assert get_str(table, "missing") is None


def test_get_int_rejects_bool() -> None:
    table: dict[str, object] = {"n": 3, "flag": True}
    assert get_int(table, "n") == 3
    assert get_int(table, "flag") is None


def test_get_float_accepts_int() -> None:
    table: dict[str, object] = {"n": 3, "x": 1.5, "flag": False}
    assert get_float(table, "n") == 3.0
    assert get_float(table, "x") == 1.5
    assert get_float(table, "flag") is None


def test_get_bool() -> None:
    table: dict[str, object] = {"yes": True, "one": 1}
    assert get_bool(table, "yes") is True
    assert get_bool(table, "one") is None


def test_get_table() -> None:
    table: dict[str, object] = {"t": {"k": "v"}, "s": "x"}
    assert get_table(table, "t") == {"k": "v"}
    assert get_table(table, "s") is None


def test_get_str_list_invalidated_by_bad_item() -> None:
    assert get_str_list({"l": ["a", " b "]}, "l") == ("a", "b")
    assert get_str_list({"l": ["a", 2]}, "l") is None
    assert get_str_list({"l": ["a", ""]}, "l") is None
    assert get_str_list({"l": "a"}, "l") is None
