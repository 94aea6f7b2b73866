"""Per-column value coercion.

One pure function per ``ColumnKind``, bound in ``COERCERS``. Null values
short-circuit to ``None`` before dispatch. A coercer that raises never
aborts the row: ``coerce`` logs the failure and keeps the raw value.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from binlog_relay.sources.base import ColumnKind

logger = structlog.get_logger()

Coercer = Callable[[Any], Any]

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def coerce_text(value: Any) -> Any:
    """Byte payloads are base64-decoded when possible, else taken as text."""
    if not isinstance(value, (bytes, bytearray)):
        return value
    raw = bytes(value)
    try:
        return base64.b64decode(raw, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return raw.decode("utf-8", errors="replace")


def coerce_date(value: Any) -> Any:
    """``YYYY-MM-DD`` becomes midnight UTC in RFC 3339; anything else passes as text."""
    text = value.isoformat() if isinstance(value, date) else str(value)
    try:
        parsed = datetime.strptime(text, "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError:
        return text
    return parsed.strftime("%Y-%m-%dT%H:%M:%SZ")


def coerce_datetime(value: Any) -> Any:
    # The log source already hands us a structured time value.
    return value


def coerce_boolean(value: Any) -> bool:
    if value is True or value is False:
        return value
    try:
        return bool(value == 1)
    except TypeError:
        return False


def coerce_bit(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray)):
        return len(value) > 0 and value[0] != 0
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        # Some clients render BIT(n) as a string of binary digits.
        try:
            return int(value) == 1
        except ValueError:
            return False
    try:
        return bool(value == 1)
    except TypeError:
        return False


def coerce_float(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return value


def coerce_integer(value: Any) -> Any:
    """Integral numeric tokens become int64; fractions and overflow pass through."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        number = value
    else:
        try:
            token = Decimal(value.decode() if isinstance(value, bytes) else str(value))
        except (InvalidOperation, UnicodeDecodeError):
            return value
        if not token.is_finite() or token != token.to_integral_value():
            return value
        number = int(token)
    if not _INT64_MIN <= number <= _INT64_MAX:
        return value
    return number


def coerce_other(value: Any) -> Any:
    return value


COERCERS: dict[ColumnKind, Coercer] = {
    ColumnKind.TEXT: coerce_text,
    ColumnKind.DATE: coerce_date,
    ColumnKind.DATETIME: coerce_datetime,
    ColumnKind.BOOLEAN: coerce_boolean,
    ColumnKind.BIT: coerce_bit,
    ColumnKind.FLOAT: coerce_float,
    ColumnKind.INTEGER: coerce_integer,
    ColumnKind.OTHER: coerce_other,
}

_missing = set(ColumnKind) - set(COERCERS)
if _missing:  # pragma: no cover - guards edits to ColumnKind
    raise RuntimeError(f"No coercer registered for column kinds: {sorted(_missing)}")


def coerce(kind: ColumnKind, value: Any) -> Any:
    """Coerce one raw column value according to its declared kind."""
    if value is None:
        return None
    coercer = COERCERS.get(kind, coerce_other)
    try:
        return coercer(value)
    except Exception as exc:
        logger.debug(
            "normalizer.coercion_failed",
            kind=str(kind),
            value=repr(value),
            error=str(exc),
        )
        return value
