"""Tests for powerdyn.decode.coercion — DYR token and TOML value conversion."""

from __future__ import annotations

import math
import sys

import pytest

from powerdyn.decode.coercion import (
    ConversionError,
    coerce_dynamic,
    coerce_token,
    format_text,
    parse_bool,
    parse_float,
    parse_int,
    parse_text,
)
from powerdyn.schema.models import FieldType

int_digit_limit = pytest.mark.skipif(
    not hasattr(sys, "get_int_max_str_digits"), reason="interpreter has no int digit limit",
)


# ── DYR tokens ────────────────────────────────────────────────────────


class TestParseInt:
    def test_plain(self):
        assert parse_int("123") == 123

    def test_surrounding_whitespace(self):
        assert parse_int("  123  ") == 123

    def test_signed(self):
        assert parse_int("-7") == -7
        assert parse_int("+7") == 7

    def test_zero(self):
        assert parse_int("0") == 0

    @int_digit_limit
    def test_too_many_digits(self):
        token = "1" + "0" * 5000
        with pytest.raises(ConversionError) as exc:
            parse_int(token)
        assert exc.value.value == token
        assert "too many digits" in str(exc.value)

    @pytest.mark.parametrize("token", ["1.5", "abc", "", "1_000", "1e3", "'1'"])
    def test_rejects_non_integers(self, token: str):
        with pytest.raises(ConversionError) as exc:
            parse_int(token)
        assert exc.value.target is FieldType.INTEGER
        assert exc.value.value == token


class TestParseFloat:
    def test_fortran_exponent(self):
        assert parse_float("0.60000E-01") == pytest.approx(0.06)

    def test_lowercase_exponent(self):
        assert parse_float("1.5e-3") == pytest.approx(0.0015)

    def test_negative(self):
        assert parse_float("-9999.0") == -9999.0

    def test_integer_token(self):
        assert parse_float(" 4 ") == 4.0

    def test_rejects_garbage(self):
        with pytest.raises(ConversionError):
            parse_float("four")

    def test_rejects_empty(self):
        with pytest.raises(ConversionError):
            parse_float("   ")

    def test_d_exponent_is_not_normalized(self):
        with pytest.raises(ConversionError):
            parse_float("1.5D-3")


class TestParseText:
    def test_strips_quotes(self):
        assert parse_text("'GENROU'") == "GENROU"

    def test_plain(self):
        assert parse_text("test") == "test"

    def test_trims(self):
        assert parse_text("  test  ") == "test"

    def test_only_one_layer(self):
        assert parse_text("''x''") == "'x'"

    def test_quoted_with_spaces(self):
        assert parse_text("'GEN 1'") == "GEN 1"

    def test_lone_quote_kept(self):
        assert parse_text("'") == "'"


class TestParseBool:
    @pytest.mark.parametrize("token", ["1", "true", "TRUE", "t", " T "])
    def test_true(self, token: str):
        assert parse_bool(token) is True

    @pytest.mark.parametrize("token", ["0", "false", "FALSE", "f"])
    def test_false(self, token: str):
        assert parse_bool(token) is False

    @pytest.mark.parametrize("token", ["invalid", "yes", "no", "2"])
    def test_rejects_other(self, token: str):
        with pytest.raises(ConversionError):
            parse_bool(token)


class TestCoerceToken:
    def test_dispatches_by_type(self):
        assert coerce_token(FieldType.INTEGER, "5") == 5
        assert coerce_token(FieldType.FLOAT, "5") == 5.0
        assert coerce_token(FieldType.TEXT, "'5'") == "5"
        assert coerce_token(FieldType.BOOLEAN, "1") is True

    def test_float_result_type(self):
        assert type(coerce_token(FieldType.FLOAT, "5")) is float


# ── TOML values ───────────────────────────────────────────────────────


class TestCoerceDynamic:
    def test_identity(self):
        assert coerce_dynamic(FieldType.INTEGER, 3) == 3
        assert coerce_dynamic(FieldType.FLOAT, 2.5) == 2.5
        assert coerce_dynamic(FieldType.TEXT, "x") == "x"
        assert coerce_dynamic(FieldType.BOOLEAN, False) is False

    def test_int_widens_to_float(self):
        value = coerce_dynamic(FieldType.FLOAT, 4)
        assert value == 4.0
        assert type(value) is float

    def test_integral_float_to_int(self):
        value = coerce_dynamic(FieldType.INTEGER, 3.0)
        assert value == 3
        assert type(value) is int

    def test_fractional_float_to_int_fails(self):
        with pytest.raises(ConversionError):
            coerce_dynamic(FieldType.INTEGER, 3.5)

    def test_nan_to_int_fails(self):
        with pytest.raises(ConversionError):
            coerce_dynamic(FieldType.INTEGER, math.nan)

    def test_numeric_strings(self):
        assert coerce_dynamic(FieldType.FLOAT, " 0.60000E-01 ") == pytest.approx(0.06)
        assert coerce_dynamic(FieldType.INTEGER, "12") == 12

    def test_unparsable_numeric_string(self):
        with pytest.raises(ConversionError) as exc:
            coerce_dynamic(FieldType.FLOAT, "abc")
        assert exc.value.target is FieldType.FLOAT

    def test_anything_scalar_to_text(self):
        assert coerce_dynamic(FieldType.TEXT, 1) == "1"
        assert coerce_dynamic(FieldType.TEXT, 1.5) == "1.5"
        assert coerce_dynamic(FieldType.TEXT, True) == "true"

    @pytest.mark.parametrize("value", ["yes", "Y", "true", "T", "1"])
    def test_bool_from_true_words(self, value: str):
        assert coerce_dynamic(FieldType.BOOLEAN, value) is True

    @pytest.mark.parametrize("value", ["no", "N", "false", "f", "0"])
    def test_bool_from_false_words(self, value: str):
        assert coerce_dynamic(FieldType.BOOLEAN, value) is False

    def test_bool_from_bad_word(self):
        with pytest.raises(ConversionError):
            coerce_dynamic(FieldType.BOOLEAN, "maybe")

    def test_bool_from_int(self):
        assert coerce_dynamic(FieldType.BOOLEAN, 2) is True
        assert coerce_dynamic(FieldType.BOOLEAN, 0) is False

    def test_bool_from_float_fails(self):
        with pytest.raises(ConversionError):
            coerce_dynamic(FieldType.BOOLEAN, 1.0)

    def test_bool_is_not_an_integer(self):
        with pytest.raises(ConversionError):
            coerce_dynamic(FieldType.INTEGER, True)
        with pytest.raises(ConversionError):
            coerce_dynamic(FieldType.FLOAT, True)

    @pytest.mark.parametrize("target", list(FieldType))
    def test_list_never_converts(self, target: FieldType):
        with pytest.raises(ConversionError) as exc:
            coerce_dynamic(target, [1, 2])
        assert exc.value.value == [1, 2]
        assert exc.value.target is target

    def test_table_never_converts(self):
        with pytest.raises(ConversionError):
            coerce_dynamic(FieldType.TEXT, {"a": 1})

    def test_huge_int_to_float_fails(self):
        value = 10 ** 400
        with pytest.raises(ConversionError) as exc:
            coerce_dynamic(FieldType.FLOAT, value)
        assert exc.value.value == value
        assert exc.value.target is FieldType.FLOAT

    @int_digit_limit
    def test_huge_int_to_text_fails(self):
        value = 10 ** 5000
        with pytest.raises(ConversionError) as exc:
            coerce_dynamic(FieldType.TEXT, value)
        assert "too large to display" in str(exc.value)

    def test_error_message_is_truncated(self):
        with pytest.raises(ConversionError) as exc:
            coerce_dynamic(FieldType.FLOAT, "x" * 500)
        assert len(str(exc.value)) < 100


class TestFormatText:
    def test_booleans_use_toml_spelling(self):
        assert format_text(True) == "true"
        assert format_text(False) == "false"

    def test_numbers(self):
        assert format_text(7) == "7"
        assert format_text(0.25) == "0.25"
