"""Log-source callback contract.

Defines the raw row-change envelope handed over by the binlog adapter
(RowsEvent), the replication position (Position), and the handler protocol
the adapter drives for every change batch and every position advance.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

MAX_OFFSET = 2**32 - 1
# Offset 4 skips the binlog magic header: "start of available log".
START_OFFSET = 4


class ColumnKind(StrEnum):
    """Closed set of column kinds the normalizer knows how to coerce."""

    TEXT = "text"
    DATE = "date"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    BIT = "bit"
    FLOAT = "float"
    INTEGER = "integer"
    OTHER = "other"


class RowAction(StrEnum):
    """Row-change actions forwarded by the relay."""

    INSERT = "insert"
    UPDATE = "update"


@dataclass(frozen=True, slots=True)
class ColumnMeta:
    name: str
    kind: ColumnKind = ColumnKind.OTHER


@dataclass(frozen=True, slots=True)
class RowsEvent:
    """One raw row-change notification.

    For updates, ``rows`` is interleaved as ``[before1, after1, before2, ...]``.
    Each row is positional and aligned with ``columns`` by index.
    """

    table: str
    action: RowAction
    rows: Sequence[Sequence[Any]]
    columns: Sequence[ColumnMeta]


@dataclass(frozen=True, slots=True, order=True)
class Position:
    """Replicated-log position: log file name plus byte offset."""

    log_name: str
    offset: int

    def __post_init__(self) -> None:
        if not isinstance(self.offset, int) or isinstance(self.offset, bool):
            msg = f"Position offset must be an int, got {type(self.offset).__name__}"
            raise TypeError(msg)
        if not 0 <= self.offset <= MAX_OFFSET:
            msg = f"Position offset {self.offset} outside unsigned 32-bit range"
            raise ValueError(msg)

    @classmethod
    def bootstrap(cls) -> Position:
        """Sentinel meaning "no checkpoint, start from scratch"."""
        return cls(log_name="", offset=START_OFFSET)

    @property
    def is_bootstrap(self) -> bool:
        return self.log_name == ""

    def __str__(self) -> str:
        return f"({self.log_name}, {self.offset})"


@runtime_checkable
class BinlogHandler(Protocol):
    """Callbacks the log source invokes. Both run on the log-following path."""

    async def on_rows(self, event: RowsEvent) -> None:
        """Handle one row-change batch. Must return quickly."""
        ...

    async def on_position_synced(self, position: Position) -> None:
        """Record that the source has advanced to *position*."""
        ...
