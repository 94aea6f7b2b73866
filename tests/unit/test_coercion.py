"""Unit tests for per-column value coercion."""

from __future__ import annotations

import base64
from datetime import date, datetime
from decimal import Decimal

import pytest

from binlog_relay.pipeline.coercion import (
    COERCERS,
    coerce,
    coerce_bit,
    coerce_boolean,
    coerce_date,
    coerce_float,
    coerce_integer,
    coerce_text,
)
from binlog_relay.sources.base import ColumnKind


class TestDispatch:
    def test_every_kind_has_a_coercer(self):
        assert set(COERCERS) == set(ColumnKind)

    @pytest.mark.parametrize("kind", list(ColumnKind))
    def test_null_short_circuits(self, kind: ColumnKind):
        assert coerce(kind, None) is None

    def test_other_passes_through(self):
        value = object()
        assert coerce(ColumnKind.OTHER, value) is value

    def test_failing_coercer_keeps_raw_value(self, monkeypatch: pytest.MonkeyPatch):
        def _boom(value):
            raise RuntimeError("boom")

        monkeypatch.setitem(COERCERS, ColumnKind.FLOAT, _boom)
        assert coerce(ColumnKind.FLOAT, "1.5") == "1.5"


class TestText:
    def test_str_unchanged(self):
        assert coerce_text("hello") == "hello"

    def test_base64_bytes_decoded(self):
        assert coerce_text(base64.b64encode(b"Alice")) == "Alice"

    def test_non_base64_bytes_taken_as_text(self):
        assert coerce_text(b"plain text!") == "plain text!"


class TestDate:
    def test_date_string_becomes_midnight_utc(self):
        assert coerce_date("2024-03-15") == "2024-03-15T00:00:00Z"

    def test_date_object(self):
        assert coerce_date(date(2024, 3, 15)) == "2024-03-15T00:00:00Z"

    def test_unparseable_kept_as_text(self):
        assert coerce_date("0000-00-00") == "0000-00-00"

    def test_datetime_not_reformatted(self):
        dt = datetime(2024, 3, 15, 10, 30)
        assert coerce(ColumnKind.DATE, dt) == dt.isoformat()

    def test_datetime_kind_passes_through(self):
        dt = datetime(2024, 3, 15, 10, 30)
        assert coerce(ColumnKind.DATETIME, dt) is dt


class TestBoolean:
    def test_one_is_true(self):
        assert coerce_boolean(1) is True

    def test_zero_is_false(self):
        assert coerce_boolean(0) is False

    def test_other_int_is_false(self):
        assert coerce_boolean(2) is False

    def test_bool_passthrough(self):
        assert coerce_boolean(True) is True
        assert coerce_boolean(False) is False


class TestBit:
    def test_nonzero_first_byte(self):
        assert coerce_bit(b"\x01") is True

    def test_zero_first_byte(self):
        assert coerce_bit(b"\x00") is False

    def test_empty_bytes(self):
        assert coerce_bit(b"") is False

    def test_int(self):
        assert coerce_bit(1) is True
        assert coerce_bit(0) is False

    def test_digit_string(self):
        assert coerce_bit("1") is True
        assert coerce_bit("0") is False
        assert coerce_bit("x") is False


class TestFloat:
    def test_decimal(self):
        assert coerce_float(Decimal("12.50")) == 12.5

    def test_numeric_string(self):
        assert coerce_float("3.25") == 3.25

    def test_garbage_kept(self):
        assert coerce_float("n/a") == "n/a"


class TestInteger:
    def test_int_unchanged(self):
        assert coerce_integer(42) == 42

    def test_integral_string(self):
        assert coerce_integer("42") == 42

    def test_fractional_kept(self):
        assert coerce_integer("4.5") == "4.5"

    def test_beyond_int64_kept(self):
        big = 2**64
        assert coerce_integer(big) == big
        assert coerce_integer(str(big)) == str(big)

    def test_not_a_number_kept(self):
        assert coerce_integer("abc") == "abc"
