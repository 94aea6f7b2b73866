"""Unit tests for dependency health checks."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import fakeredis.aioredis
import httpx
import pymysql
import respx

from binlog_relay.config.models import DeliveryConfig, RedisConfig, SourceConfig
from binlog_relay.observability.health import (
    ComponentHealth,
    RelayHealth,
    Status,
    check_mysql,
    check_redis,
    check_sink,
)

_CREATE_REDIS = "binlog_relay.observability.health.create_redis"


def _mysql_conn(binlog_format: str) -> MagicMock:
    cursor = MagicMock()
    cursor.fetchone.return_value = ("binlog_format", binlog_format)
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    return conn


class TestCheckMysql:
    def test_row_format_healthy(self):
        with patch("pymysql.connect", return_value=_mysql_conn("ROW")):
            result = check_mysql(SourceConfig())
        assert result.status == Status.HEALTHY

    def test_statement_format_unhealthy(self):
        with patch("pymysql.connect", return_value=_mysql_conn("STATEMENT")):
            result = check_mysql(SourceConfig())
        assert result.status == Status.UNHEALTHY
        assert "ROW required" in result.detail

    def test_connect_error(self):
        error = pymysql.err.OperationalError(2003, "Can't connect")
        with patch("pymysql.connect", side_effect=error):
            result = check_mysql(SourceConfig())
        assert result.status == Status.UNHEALTHY


class TestCheckRedis:
    async def test_reports_queue_depth(self):
        client = fakeredis.aioredis.FakeRedis(decode_responses=True)
        await client.rpush("cdc_events", "a", "b")
        with patch(_CREATE_REDIS, return_value=client):
            result = await check_redis(RedisConfig())
        assert result.status == Status.HEALTHY
        assert "2 queued" in result.detail

    async def test_unreachable(self):
        client = AsyncMock()
        client.ping.side_effect = ConnectionRefusedError("refused")
        with patch(_CREATE_REDIS, return_value=client):
            result = await check_redis(RedisConfig())
        assert result.status == Status.UNHEALTHY
        client.aclose.assert_awaited_once()


class TestCheckSink:
    async def test_any_response_is_reachable(self, respx_mock: respx.MockRouter):
        respx_mock.get("http://hooks.test").mock(return_value=httpx.Response(404))
        result = await check_sink(DeliveryConfig(base_url="http://hooks.test"))
        assert result.status == Status.HEALTHY
        assert "404" in result.detail

    async def test_transport_error(self, respx_mock: respx.MockRouter):
        respx_mock.get("http://hooks.test").mock(
            side_effect=httpx.ConnectError("refused")
        )
        result = await check_sink(DeliveryConfig(base_url="http://hooks.test"))
        assert result.status == Status.UNHEALTHY


class TestRelayHealth:
    def test_aggregate(self):
        health = RelayHealth(
            components=[
                ComponentHealth("mysql", Status.HEALTHY),
                ComponentHealth("redis", Status.UNHEALTHY),
            ]
        )
        assert health.healthy is False
        assert health.summary == {"mysql": "healthy", "redis": "unhealthy"}
