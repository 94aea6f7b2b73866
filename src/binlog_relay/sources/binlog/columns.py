"""MySQL column type -> ColumnKind mapping."""

from __future__ import annotations

from typing import Any

from pymysqlreplication.constants import FIELD_TYPE

from binlog_relay.sources.base import ColumnKind, ColumnMeta

_KIND_BY_FIELD_TYPE: dict[int, ColumnKind] = {
    FIELD_TYPE.VARCHAR: ColumnKind.TEXT,
    FIELD_TYPE.VAR_STRING: ColumnKind.TEXT,
    FIELD_TYPE.STRING: ColumnKind.TEXT,
    FIELD_TYPE.TINY_BLOB: ColumnKind.TEXT,
    FIELD_TYPE.MEDIUM_BLOB: ColumnKind.TEXT,
    FIELD_TYPE.LONG_BLOB: ColumnKind.TEXT,
    FIELD_TYPE.BLOB: ColumnKind.TEXT,
    FIELD_TYPE.DATE: ColumnKind.DATE,
    FIELD_TYPE.NEWDATE: ColumnKind.DATE,
    FIELD_TYPE.DATETIME: ColumnKind.DATETIME,
    FIELD_TYPE.DATETIME2: ColumnKind.DATETIME,
    FIELD_TYPE.TIMESTAMP: ColumnKind.DATETIME,
    FIELD_TYPE.TIMESTAMP2: ColumnKind.DATETIME,
    FIELD_TYPE.BIT: ColumnKind.BIT,
    FIELD_TYPE.FLOAT: ColumnKind.FLOAT,
    FIELD_TYPE.DOUBLE: ColumnKind.FLOAT,
    FIELD_TYPE.DECIMAL: ColumnKind.FLOAT,
    FIELD_TYPE.NEWDECIMAL: ColumnKind.FLOAT,
    FIELD_TYPE.TINY: ColumnKind.INTEGER,
    FIELD_TYPE.SHORT: ColumnKind.INTEGER,
    FIELD_TYPE.INT24: ColumnKind.INTEGER,
    FIELD_TYPE.LONG: ColumnKind.INTEGER,
    FIELD_TYPE.LONGLONG: ColumnKind.INTEGER,
    FIELD_TYPE.YEAR: ColumnKind.INTEGER,
}


def _is_bool_column(column: Any) -> bool:
    """``tinyint(1)`` columns carry boolean semantics."""
    if getattr(column, "type_is_bool", False):
        return True
    column_type = getattr(column, "column_type", None)
    return isinstance(column_type, str) and column_type.lower() == "tinyint(1)"


def column_kind(column: Any) -> ColumnKind:
    """Classify a binlog column (anything with a ``type`` field-type code)."""
    field_type = getattr(column, "type", None)
    if field_type == FIELD_TYPE.TINY and _is_bool_column(column):
        return ColumnKind.BOOLEAN
    return _KIND_BY_FIELD_TYPE.get(field_type, ColumnKind.OTHER)


def column_metadata(columns: list[Any]) -> list[ColumnMeta]:
    return [
        ColumnMeta(name=column.name or f"col_{i}", kind=column_kind(column))
        for i, column in enumerate(columns)
    ]
