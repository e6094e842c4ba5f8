"""Tests for the helpers injected into routine namespaces."""

import asyncio
import math
import re

import pytest

from botflow.runtime.helpers import (
    ROUTINE_HELPERS,
    as_list,
    calculate,
    ensure_dict,
    ensure_list,
    join_items,
    navigate,
    now_iso,
    parse_json,
    pop_item,
    random_int,
    sleep_ms,
    split_items,
    split_text,
    substring,
    to_json,
    to_number,
)


class TestToNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("42", 42),
            (" 7 ", 7),
            ("2.5", 2.5),
            ("0x10", 16),
            ("", 0),
            (None, 0),
            (True, 1),
            (3, 3),
            ("Infinity", math.inf),
            ("-Infinity", -math.inf),
        ],
    )
    def test_conversions(self, value: object, expected: float) -> None:
        assert to_number(value) == expected

    @pytest.mark.parametrize("value", ["abc", "nan", "inf", "1_000", "12px"])
    def test_unparseable_is_nan(self, value: str) -> None:
        assert math.isnan(to_number(value))


class TestCalculate:
    def test_integral_results_are_ints(self) -> None:
        assert calculate("add", "2", 3) == 5
        assert calculate("divide", 10, 2) == 5
        assert isinstance(calculate("divide", 10, 2), int)

    def test_fractional_results(self) -> None:
        assert calculate("divide", 1, 4) == 0.25

    def test_division_by_zero(self) -> None:
        assert calculate("divide", 1, 0) == math.inf
        assert calculate("divide", -1, 0) == -math.inf
        assert math.isnan(calculate("divide", 0, 0))
        assert math.isnan(calculate("modulo", 5, 0))

    def test_modulo_sign_follows_dividend(self) -> None:
        assert calculate("modulo", -5, 3) == -2

    def test_unary_operations_ignore_right(self) -> None:
        assert calculate("sqrt", "16") == 4
        assert calculate("abs", "-3.5", "ignored") == 3.5
        assert math.isnan(calculate("sqrt", -1))

    def test_power(self) -> None:
        assert calculate("power", 2, 10) == 1024
        assert calculate("power", 10, 400) == math.inf

    def test_text_operand_is_nan(self) -> None:
        assert math.isnan(calculate("add", "abc", 1))


class TestCollections:
    def test_as_list(self) -> None:
        items = [1, 2]

        assert as_list(items) is items
        assert as_list(None) == []
        assert as_list("ab") == ["a", "b"]
        assert as_list({"k": "v"}) == ["v"]
        assert as_list(5) == [5]

    def test_ensure_list_replaces_non_lists(self) -> None:
        variables: dict[str, object] = {"xs": "ab"}

        ensure_list(variables, "xs").append("c")
        ensure_list(variables, "new").append(1)

        assert variables == {"xs": ["a", "b", "c"], "new": [1]}

    def test_ensure_dict(self) -> None:
        variables: dict[str, object] = {"obj": 3}

        ensure_dict(variables, "obj")["k"] = 1

        assert variables["obj"] == {"k": 1}

    def test_pop_item(self) -> None:
        items = [1, 2]

        assert pop_item(items) == 2
        assert items == [1]
        assert pop_item([]) is None
        assert pop_item("not a list") is None


class TestText:
    def test_split_items(self) -> None:
        assert split_items(" a, b ,c ") == ["a", "b", "c"]
        assert split_items("   ") == []

    def test_split_text(self) -> None:
        assert split_text("a-b", "-") == ["a", "b"]
        assert split_text("ab", "") == ["a", "b"]

    def test_join_items(self) -> None:
        assert join_items([1, None, "x"], "|") == "1||x"
        assert join_items(None, ",") == ""

    @pytest.mark.parametrize(
        ("start", "end", "expected"),
        [("1", "3", "el"), ("3", "1", "el"), ("-2", None, "hello"), ("2", "99", "llo"), ("x", "2", "he")],
    )
    def test_substring(self, start: str, end: str | None, expected: str) -> None:
        assert substring("hello", start, end) == expected


class TestJson:
    def test_parse_json(self) -> None:
        assert parse_json('{"a": [1]}') == {"a": [1]}
        assert parse_json(b"[1]") == [1]

    def test_parse_json_rejects_non_text(self) -> None:
        with pytest.raises(TypeError):
            parse_json({"a": 1})

    def test_to_json_keeps_unicode(self) -> None:
        assert to_json({"e": "é"}) == '{"e": "é"}'

    def test_navigate(self) -> None:
        assert navigate({"a": [{"b": 2}]}, [("property", "a"), ("index", 0), ("property", "b")]) == 2


class TestMisc:
    def test_random_int_in_range_either_order(self) -> None:
        for _ in range(50):
            assert 3 <= random_int(5, 3) <= 5

    def test_now_iso_format(self) -> None:
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", now_iso())

    def test_helper_table_has_no_private_names(self) -> None:
        assert all(not name.startswith("_") for name in ROUTINE_HELPERS)


class TestSleep:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", ["Infinity", "-Infinity", math.inf, "abc", -5, 0])
    async def test_unusable_durations_return_at_once(self, duration: object) -> None:
        await asyncio.wait_for(sleep_ms(duration), timeout=1)

    @pytest.mark.asyncio
    async def test_waits_for_milliseconds(self) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        await sleep_ms("20")
        assert loop.time() - started >= 0.015
