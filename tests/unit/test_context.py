"""Unit tests for relay context construction and Redis connectivity."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import fakeredis
import fakeredis.aioredis
import pytest

from binlog_relay.config.models import RelayConfig
from binlog_relay.pipeline.context import build_context
from binlog_relay.sources.base import Position

_CREATE_REDIS = "binlog_relay.pipeline.context.create_redis"


@pytest.fixture
def config(tmp_path: Path) -> RelayConfig:
    return RelayConfig.model_validate(
        {"checkpoint": {"position_file": str(tmp_path / "pos.json")}}
    )


@pytest.fixture
def server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.mark.asyncio
class TestBuildContext:
    async def test_connected(self, config, routing, server):
        client = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
        with patch(_CREATE_REDIS, return_value=client):
            ctx = await build_context(config, routing)
        try:
            assert ctx.redis is client
            assert ctx.queue.available is True
            assert await ctx.queue.enqueue("item") is True
        finally:
            await ctx.close()

    async def test_redis_down_at_startup_recovers(self, config, routing, server):
        server.connected = False
        client = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
        with patch(_CREATE_REDIS, return_value=client):
            ctx = await build_context(config, routing)
        try:
            assert ctx.redis is client
            assert ctx.queue.available is True
            assert await ctx.queue.enqueue("lost") is False

            server.connected = True

            assert await ctx.queue.enqueue("item") is True
            assert await ctx.queue.depth() == 1
            await ctx.checkpoints.save(Position("mysql-bin.000002", 120))
            assert await client.get(config.redis.position_key) is not None
        finally:
            await ctx.close()

    async def test_without_connect_runs_file_only(self, config, routing):
        ctx = await build_context(config, routing, connect=False)
        try:
            assert ctx.redis is None
            assert ctx.queue.available is False
            await ctx.checkpoints.save(Position("mysql-bin.000001", 4))
            assert config.checkpoint.position_file.exists()
        finally:
            await ctx.close()
