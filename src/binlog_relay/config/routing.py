"""Static routing table: source table -> destination group.

Loaded once at startup from a YAML mapping of ``group -> [tables]`` and
read-only for the lifetime of the process.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

import structlog

from binlog_relay.config.loader import load_yaml

logger = structlog.get_logger()


class RoutingTable:
    """Immutable lookup from table name to routing group."""

    __slots__ = ("_groups", "_table_to_group")

    def __init__(self, groups: Mapping[str, list[str]]) -> None:
        table_to_group: dict[str, str] = {}
        frozen_groups: dict[str, tuple[str, ...]] = {}
        for group, tables in groups.items():
            if not isinstance(group, str) or not group:
                msg = f"Routing group names must be non-empty strings, got {group!r}"
                raise ValueError(msg)
            if not isinstance(tables, list) or not all(
                isinstance(t, str) and t for t in tables
            ):
                msg = f"Routing group '{group}' must map to a list of table names"
                raise ValueError(msg)
            for table in tables:
                existing = table_to_group.get(table)
                if existing is not None and existing != group:
                    msg = (
                        f"Table '{table}' is routed to both '{existing}' and "
                        f"'{group}'"
                    )
                    raise ValueError(msg)
                table_to_group[table] = group
            frozen_groups[group] = tuple(tables)

        self._groups = MappingProxyType(frozen_groups)
        self._table_to_group = MappingProxyType(table_to_group)

    def lookup(self, table: str) -> str | None:
        """Return the group for *table*, or ``None`` if it is not monitored."""
        return self._table_to_group.get(table)

    @property
    def groups(self) -> Mapping[str, tuple[str, ...]]:
        return self._groups

    @property
    def tables(self) -> list[str]:
        return sorted(self._table_to_group)

    def __contains__(self, table: object) -> bool:
        return table in self._table_to_group

    def __len__(self) -> int:
        return len(self._table_to_group)

    def __iter__(self) -> Iterator[str]:
        return iter(self._table_to_group)

    def __repr__(self) -> str:
        return f"RoutingTable(groups={dict(self._groups)!r})"


def load_routing_table(path: str | Path) -> RoutingTable:
    """Load the routing table YAML. Any problem here is a fatal config error."""
    data = load_yaml(path)
    try:
        table = RoutingTable(data)
    except ValueError as exc:
        msg = f"Invalid routing table ({path}): {exc}"
        raise ValueError(msg) from exc
    logger.info(
        "routing.loaded",
        path=str(path),
        groups={group: list(tables) for group, tables in table.groups.items()},
    )
    return table
