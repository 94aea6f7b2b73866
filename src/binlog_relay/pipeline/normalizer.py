"""Event normalizer: raw binlog rows -> canonical change records.

Pure and deterministic given its inputs. Inserts yield one record per row
with ``before=None``. Updates consume rows pairwise as (before, after). A
trailing unpaired row in an update batch is discarded rather than turned
into a half-record.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from binlog_relay.pipeline.coercion import coerce
from binlog_relay.sources.base import ColumnMeta, RowAction, RowsEvent

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class ChangeRecord:
    """Normalized before/after snapshot of one logical row mutation."""

    before: dict[str, Any] | None
    after: dict[str, Any] | None
    source_table: str

    def __post_init__(self) -> None:
        if self.before is None and self.after is None:
            msg = "ChangeRecord needs at least one of before/after"
            raise ValueError(msg)

    def to_payload(self) -> dict[str, Any]:
        """Queue-item / HTTP body shape."""
        return {
            "before": self.before,
            "after": self.after,
            "source": {"table": self.source_table},
        }


def row_to_map(columns: Sequence[ColumnMeta], row: Sequence[Any]) -> dict[str, Any]:
    """Coerce one positional row into a ``column -> value`` mapping.

    Values past the end of the column metadata keep their raw value under a
    positional ``col_<i>`` name. Metadata past the end of the row is skipped.
    """
    result: dict[str, Any] = {}
    for i, value in enumerate(row):
        if i < len(columns):
            column = columns[i]
            result[column.name] = coerce(column.kind, value)
        else:
            result[f"col_{i}"] = value
    return result


def normalize(event: RowsEvent) -> Iterator[ChangeRecord]:
    """Lazily turn one row-change notification into change records."""
    rows = event.rows
    if event.action == RowAction.INSERT:
        for row in rows:
            yield ChangeRecord(
                before=None,
                after=row_to_map(event.columns, row),
                source_table=event.table,
            )
        return

    if event.action == RowAction.UPDATE:
        pairs = len(rows) // 2
        for k in range(pairs):
            yield ChangeRecord(
                before=row_to_map(event.columns, rows[2 * k]),
                after=row_to_map(event.columns, rows[2 * k + 1]),
                source_table=event.table,
            )
        if len(rows) % 2:
            logger.warning(
                "normalizer.unpaired_row_discarded",
                table=event.table,
                rows=len(rows),
            )
        return

    logger.debug("normalizer.action_ignored", table=event.table, action=event.action)
