"""Unit tests for the static routing table."""

from __future__ import annotations

from pathlib import Path

import pytest

from binlog_relay.config.routing import RoutingTable, load_routing_table

EXAMPLE_TABLE = Path(__file__).resolve().parents[2] / "config" / "table_groups.yaml"


class TestRoutingTable:
    def test_lookup(self):
        table = RoutingTable({"g1": ["t1", "t2"], "g2": ["t3"]})
        assert table.lookup("t2") == "g1"
        assert table.lookup("t3") == "g2"
        assert table.lookup("t9") is None

    def test_tables_sorted(self):
        table = RoutingTable({"g1": ["zeta", "alpha"], "g2": ["mid"]})
        assert table.tables == ["alpha", "mid", "zeta"]
        assert len(table) == 3
        assert "mid" in table

    def test_groups_read_only(self):
        table = RoutingTable({"g1": ["t1"]})
        assert table.groups["g1"] == ("t1",)
        with pytest.raises(TypeError):
            table.groups["g2"] = ("t2",)  # type: ignore[index]

    def test_table_in_two_groups_rejected(self):
        with pytest.raises(ValueError, match="routed to both"):
            RoutingTable({"g1": ["t1"], "g2": ["t1"]})

    def test_repeat_within_group_allowed(self):
        assert RoutingTable({"g1": ["t1", "t1"]}).lookup("t1") == "g1"

    @pytest.mark.parametrize(
        "groups",
        [{"g1": "t1"}, {"g1": [1]}, {"g1": [""]}, {"": ["t1"]}],
    )
    def test_malformed_groups(self, groups):
        with pytest.raises(ValueError):
            RoutingTable(groups)

    def test_empty(self):
        table = RoutingTable({})
        assert table.tables == []
        assert table.lookup("t1") is None


class TestLoadRoutingTable:
    def test_example_file(self):
        table = load_routing_table(EXAMPLE_TABLE)
        assert table.lookup("order_items") == "orders"
        assert table.lookup("customer_addresses") == "customers"

    def test_invalid_file_is_fatal(self, tmp_path: Path):
        path = tmp_path / "groups.yaml"
        path.write_text("g1: t1\n")
        with pytest.raises(ValueError, match="Invalid routing table"):
            load_routing_table(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_routing_table(tmp_path / "missing.yaml")
