"""Tests for JSON path parsing and extraction."""

from botflow.compiler.json_path import MAX_PATH_LENGTH, PathStep, extract_path, parse_json_path


class TestParseJsonPath:
    def test_dotted(self) -> None:
        assert parse_json_path("data.weather.temp") == [
            PathStep("property", "data"),
            PathStep("property", "weather"),
            PathStep("property", "temp"),
        ]

    def test_index(self) -> None:
        assert parse_json_path("items[0].name") == [
            PathStep("property", "items"),
            PathStep("index", 0),
            PathStep("property", "name"),
        ]

    def test_quoted_keys(self) -> None:
        assert parse_json_path('data["key-with-dash"]') == [
            PathStep("property", "data"),
            PathStep("property", "key-with-dash"),
        ]
        assert parse_json_path("data['k']") == [PathStep("property", "data"), PathStep("property", "k")]

    def test_empty_and_non_string(self) -> None:
        assert parse_json_path("") == []
        assert parse_json_path(None) == []
        assert parse_json_path(42) == []

    def test_overlong_path_refused(self) -> None:
        assert parse_json_path("a" * (MAX_PATH_LENGTH + 1)) == []
        assert parse_json_path("a.b", max_length=2) == []

    def test_malformed_brackets_yield_no_step(self) -> None:
        assert parse_json_path("a[b].c") == [PathStep("property", "a"), PathStep("property", "c")]
        assert parse_json_path("a[0") == [PathStep("property", "a")]

    def test_leading_index(self) -> None:
        assert parse_json_path("[1][2]") == [PathStep("index", 1), PathStep("index", 2)]


class TestExtractPath:
    def test_nested(self) -> None:
        data = {"items": [{"name": "first"}, {"name": "second"}]}

        assert extract_path(data, parse_json_path("items[1].name")) == "second"

    def test_missing_intermediate_is_none(self) -> None:
        assert extract_path({"a": None}, parse_json_path("a.b.c")) is None
        assert extract_path({"a": [1]}, parse_json_path("a[5]")) is None

    def test_length(self) -> None:
        assert extract_path({"items": [1, 2, 3]}, parse_json_path("items.length")) == 3

    def test_index_into_dict_uses_string_key(self) -> None:
        assert extract_path({"0": "zero"}, parse_json_path("[0]")) == "zero"
