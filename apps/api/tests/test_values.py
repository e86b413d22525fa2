"""
Tests for feature value coercion.
"""

import math

import pytest

from flagforge.core.features.exceptions import FeatureValidationError
from flagforge.core.features.values import (
    coerce_value,
    format_number,
    parse_default_value,
    parse_float,
    parse_json,
)


def test_invalid_json_coerces_to_none():
    """Unparseable JSON falls back to null."""
    assert coerce_value("json", "{not valid") is None


def test_json_parse_reports_failure_separately():
    """The parse outcome says whether the fallback was used."""
    assert parse_json("{not valid").ok is False
    assert parse_json("null").ok is True
    assert parse_json("null").value is None


def test_json_rejects_nan_literal():
    assert parse_json("NaN").ok is False


def test_json_overflowing_numbers_become_none():
    assert coerce_value("json", '{"a": 1e400, "b": [-1e400, 2.5]}') == {"a": None, "b": [None, 2.5]}


def test_json_values():
    assert coerce_value("json", '{"a": [1, 2]}') == {"a": [1, 2]}


@pytest.mark.parametrize("raw,expected", [
    ("abc", 0),
    ("", 0),
    ("12", 12),
    ("12.5px", 12.5),
    ("  3", 3),
    ("-0.25", -0.25),
    ("1e3", 1000),
    ("Infinity", None),
    ("-Infinity", None),
    ("1e400", None),
])
def test_number_coercion(raw, expected):
    """Numbers follow parseFloat and fall back to 0; infinities are null."""
    value = coerce_value("number", raw)
    assert value == expected


def test_integral_numbers_are_ints():
    """Integral values serialize as 1, not 1.0."""
    assert isinstance(coerce_value("number", "1.0"), int)


@pytest.mark.parametrize("raw,expected", [
    ("false", False),
    ("true", True),
    ("", True),
    ("no", True),
    ("0", True),
    ("False", True),
])
def test_boolean_only_false_is_false(raw, expected):
    """Only the exact string "false" is falsy."""
    assert coerce_value("boolean", raw) is expected


def test_string_unchanged():
    assert coerce_value("string", " hello ") == " hello "


def test_unknown_type_coerces_to_none():
    assert coerce_value("date", "2024-01-01") is None


def test_parse_float_failure():
    assert parse_float("px12").ok is False
    assert parse_float(None).ok is False
    assert parse_float(True).ok is False
    assert parse_float(0.5).value == 0.5


def test_format_number():
    assert format_number(5.0) == "5"
    assert format_number(0.5) == "0.5"
    assert format_number(math.nan) == "NaN"


class TestParseDefaultValue:
    """Canonical stored default values."""

    def test_boolean(self):
        assert parse_default_value("true", "boolean") == "true"
        assert parse_default_value("yes", "boolean") == "false"

    def test_number(self):
        assert parse_default_value("42.0", "number") == "42"
        assert parse_default_value("3.5kg", "number") == "3.5"
        assert parse_default_value("abc", "number") == "NaN"

    def test_string(self):
        assert parse_default_value("hello", "string") == "hello"

    def test_json_pretty_printed(self):
        assert parse_default_value('{"a":1}', "json") == '{\n  "a": 1\n}'

    def test_json_parse_error(self):
        with pytest.raises(FeatureValidationError, match="JSON parse error for default value"):
            parse_default_value("{bad", "json")
