"""Raw value coercion into schema field types.

Two entry points:
  coerce_token:   DYR tokens, always strings (quotes may still be attached).
  coerce_dynamic: TOML values, already int/float/str/bool (or list/table),
                  converted only when the native type differs from the target.
"""
from __future__ import annotations

import re
from typing import Any, Union

from powerdyn.schema.models import FieldType

# Native value kinds a structured source can hand to the decoder
DynamicValue = Union[int, float, str, bool, list, dict]

_INT_RE = re.compile(r"^[+-]?\d+$")
_FORTRAN_EXP_RE = re.compile(r"(\d)[Ee]([+-]?\d)")

_TRUE_TOKENS = frozenset({"1", "true", "t"})
_FALSE_TOKENS = frozenset({"0", "false", "f"})
_TRUE_WORDS = _TRUE_TOKENS | {"yes", "y"}
_FALSE_WORDS = _FALSE_TOKENS | {"no", "n"}


class ConversionError(ValueError):
    """A raw value could not be converted to the requested field type."""

    def __init__(self, value: Any, target: FieldType, reason: str = ""):
        self.value = value
        self.target = target
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot convert {type(value).__name__} {_short_repr(value)} to {target.value}{detail}")


def _short_repr(value: Any, limit: int = 40) -> str:
    try:
        text = repr(value)
    except ValueError:
        # int repr is capped by sys.get_int_max_str_digits()
        return f"<{type(value).__name__} too large to display>"
    return text if len(text) <= limit else text[:limit - 3] + "..."


# -- DYR token parsing --

def parse_int(s: str) -> int:
    """Parse a decimal integer token, ignoring surrounding whitespace."""
    s_clean = s.strip()
    if not _INT_RE.match(s_clean):
        raise ConversionError(s, FieldType.INTEGER)
    try:
        return int(s_clean)
    except ValueError:
        raise ConversionError(s, FieldType.INTEGER, "too many digits") from None


def parse_float(s: str) -> float:
    """Parse a float token. Handles Fortran-style exponents like 0.60000E-01."""
    s_clean = _FORTRAN_EXP_RE.sub(r"\1e\2", s.strip())
    if not s_clean or "_" in s_clean:
        raise ConversionError(s, FieldType.FLOAT)
    try:
        return float(s_clean)
    except ValueError:
        raise ConversionError(s, FieldType.FLOAT) from None


def parse_text(s: str) -> str:
    """Strip whitespace and one layer of surrounding single quotes."""
    s_clean = s.strip()
    if len(s_clean) >= 2 and s_clean.startswith("'") and s_clean.endswith("'"):
        return s_clean[1:-1]
    return s_clean


def parse_bool(s: str) -> bool:
    s_clean = s.strip().lower()
    if s_clean in _TRUE_TOKENS:
        return True
    if s_clean in _FALSE_TOKENS:
        return False
    raise ConversionError(s, FieldType.BOOLEAN)


_TOKEN_PARSERS = {
    FieldType.INTEGER: parse_int,
    FieldType.FLOAT: parse_float,
    FieldType.TEXT: parse_text,
    FieldType.BOOLEAN: parse_bool,
}


def coerce_token(target: FieldType, token: str) -> Any:
    """Convert a DYR string token to the target type."""
    return _TOKEN_PARSERS[target](token)


# -- TOML value conversion --

def _native_kind(value: Any) -> FieldType | None:
    # bool is checked first since it subclasses int
    if isinstance(value, bool):
        return FieldType.BOOLEAN
    if isinstance(value, int):
        return FieldType.INTEGER
    if isinstance(value, float):
        return FieldType.FLOAT
    if isinstance(value, str):
        return FieldType.TEXT
    return None


def format_text(value: Any) -> str:
    """Canonical textual form of a scalar (TOML spelling for booleans)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def coerce_dynamic(target: FieldType, value: DynamicValue) -> Any:
    """Convert a natively typed TOML value to the target type.

    Identity when the native kind already matches. Lists and tables never
    convert, not even to Text.
    """
    if isinstance(value, (list, dict)):
        raise ConversionError(value, target, "arrays and tables cannot fill a scalar field")

    kind = _native_kind(value)
    if kind is target:
        return value

    try:
        return _convert_native(target, kind, value)
    except ConversionError:
        raise
    except (OverflowError, ValueError) as e:
        raise ConversionError(value, target, str(e)) from None


def _convert_native(target: FieldType, kind: FieldType | None, value: Any) -> Any:
    if target is FieldType.TEXT:
        return format_text(value)

    if target is FieldType.FLOAT:
        if kind is FieldType.INTEGER:
            return float(value)
        if kind is FieldType.TEXT:
            return parse_float(value)
    elif target is FieldType.INTEGER:
        if kind is FieldType.FLOAT and value.is_integer():
            return int(value)
        if kind is FieldType.TEXT:
            return parse_int(value)
    elif target is FieldType.BOOLEAN:
        if kind is FieldType.TEXT:
            s_clean = value.strip().lower()
            if s_clean in _TRUE_WORDS:
                return True
            if s_clean in _FALSE_WORDS:
                return False
        elif kind is FieldType.INTEGER:
            return value != 0

    raise ConversionError(value, target)
