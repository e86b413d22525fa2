"""
Feature value parsing and coercion.

Stored feature values are raw strings tagged by the feature's value type.
Each value type has its own coercion function, selected through
`VALUE_COERCERS`; adding a value type means adding one entry there.

Parsing helpers return a `ParseResult` so callers can tell a real parse
from a fallback. Only `coerce_value` collapses failures into the fallback
values that end up in SDK payloads:

    json     -> None on parse failure
    number   -> 0 on parse failure, None (JSON null) for infinities
    string   -> unchanged
    boolean  -> False only for exactly "false", True for anything else
    unknown  -> None

JSON has no infinity, so overflowing numbers anywhere in a payload
(`"1e400"`, `"Infinity"`) become None and render as null; a payload is
always strict JSON.

The boolean rule is deliberately asymmetric ("0", "" and "no" are all
True). Existing stored data depends on it.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Callable

from .exceptions import FeatureValidationError
from .interfaces import FeatureValueType


# Longest numeric prefix accepted by JavaScript's parseFloat
_FLOAT_PREFIX = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing a stored string."""
    ok: bool
    value: Any = None

    @classmethod
    def success(cls, value: Any) -> "ParseResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls) -> "ParseResult":
        return cls(ok=False)

    def or_else(self, fallback: Any) -> Any:
        return self.value if self.ok else fallback


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {name}")


def _finite_or_none(text: str) -> float | None:
    value = float(text)
    return value if math.isfinite(value) else None


def parse_json(raw: Any) -> ParseResult:
    """
    Strict JSON parse.

    NaN and Infinity literals are rejected; numbers that overflow a float
    (1e400) become None.
    """
    try:
        return ParseResult.success(json.loads(
            raw,
            parse_constant=_reject_constant,
            parse_float=_finite_or_none,
        ))
    except (TypeError, ValueError):
        return ParseResult.failure()


def parse_float(raw: Any) -> ParseResult:
    """
    Parse the leading number of a value the way parseFloat does.

    "12.5px" -> 12.5, "  3" -> 3.0, "abc" -> failure. Non-string input is
    converted with str() first, so numeric range bounds work too.
    """
    if isinstance(raw, bool) or raw is None:
        return ParseResult.failure()
    match = _FLOAT_PREFIX.match(str(raw).lstrip())
    if not match:
        return ParseResult.failure()
    return ParseResult.success(float(match.group(0).replace("Infinity", "inf")))


def number_or_zero(raw: Any) -> int | float | None:
    """
    parseFloat with a 0 fallback.

    Integral values come back as int so they serialize as `1`, not `1.0`.
    Infinities come back as None.
    """
    value = parse_float(raw).or_else(0.0)
    if math.isinf(value):
        return None
    if value == 0:
        return 0
    if value.is_integer():
        return int(value)
    return value


def format_number(value: float) -> str:
    """Render a float the way JavaScript's String(number) does for common values."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


# ============================================================
# COERCION
# ============================================================

def _coerce_boolean(raw: str) -> bool:
    return raw != "false"


def _coerce_number(raw: str) -> int | float | None:
    return number_or_zero(raw)


def _coerce_string(raw: str) -> str:
    return raw


def _coerce_json(raw: str) -> Any:
    return parse_json(raw).or_else(None)


# Keyed by the plain string value; value types arrive as str from storage
VALUE_COERCERS: dict[str, Callable[[str], Any]] = {
    FeatureValueType.BOOLEAN.value: _coerce_boolean,
    FeatureValueType.NUMBER.value: _coerce_number,
    FeatureValueType.STRING.value: _coerce_string,
    FeatureValueType.JSON.value: _coerce_json,
}


def coerce_value(value_type: str, raw: str) -> Any:
    """Convert a stored raw value into its declared runtime type."""
    coercer = VALUE_COERCERS.get(value_type)
    if coercer is None:
        return None
    return coercer(raw)


# ============================================================
# NORMALIZATION ON WRITE
# ============================================================

def parse_default_value(default_value: str, value_type: str) -> str:
    """
    Canonical stored form of a default value.

    Booleans become "true"/"false", numbers their parsed string form
    ("NaN" when unparseable), JSON is re-serialized with 2-space indent.

    Raises:
        FeatureValidationError: JSON default value does not parse.
    """
    if value_type == FeatureValueType.BOOLEAN:
        return "true" if default_value == "true" else "false"
    if value_type == FeatureValueType.NUMBER:
        return format_number(parse_float(default_value).or_else(math.nan))
    if value_type == FeatureValueType.STRING:
        return default_value

    parsed = parse_json(default_value)
    if not parsed.ok:
        raise FeatureValidationError("JSON parse error for default value")
    return json.dumps(parsed.value, indent=2, ensure_ascii=False)
