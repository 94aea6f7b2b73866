"""Health checks for the relay's external dependencies."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum

import httpx
import pymysql
import structlog
from redis.exceptions import RedisError

from binlog_relay.config.models import (
    DeliveryConfig,
    RedisConfig,
    RelayConfig,
    SourceConfig,
)
from binlog_relay.pipeline.context import create_redis

logger = structlog.get_logger()


class Status(StrEnum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class ComponentHealth:
    name: str
    status: Status = Status.UNKNOWN
    detail: str = ""


@dataclass
class RelayHealth:
    components: list[ComponentHealth] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(c.status == Status.HEALTHY for c in self.components)

    @property
    def summary(self) -> dict[str, str]:
        return {c.name: c.status.value for c in self.components}


def check_mysql(config: SourceConfig) -> ComponentHealth:
    """Connect to the source and confirm row-based binary logging is on."""
    try:
        conn = pymysql.connect(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password.get_secret_value(),
            connect_timeout=5,
        )
        try:
            with conn.cursor() as cur:
                cur.execute("SHOW VARIABLES LIKE 'binlog_format'")
                row = cur.fetchone()
        finally:
            conn.close()
    except pymysql.err.MySQLError as exc:
        return ComponentHealth(name="mysql", status=Status.UNHEALTHY, detail=str(exc))

    binlog_format = row[1] if row else "unknown"
    if str(binlog_format).upper() != "ROW":
        return ComponentHealth(
            name="mysql",
            status=Status.UNHEALTHY,
            detail=f"binlog_format={binlog_format} (ROW required)",
        )
    return ComponentHealth(
        name="mysql", status=Status.HEALTHY, detail=f"{config.host}:{config.port}"
    )


async def check_redis(config: RedisConfig) -> ComponentHealth:
    """Ping Redis and report the delivery queue depth."""
    client = create_redis(config)
    try:
        await client.ping()
        depth = await client.llen(config.queue_key)
    except (RedisError, OSError) as exc:
        return ComponentHealth(name="redis", status=Status.UNHEALTHY, detail=str(exc))
    finally:
        await client.aclose()
    return ComponentHealth(
        name="redis",
        status=Status.HEALTHY,
        detail=f"{config.addr}, {depth} queued event(s)",
    )


async def check_sink(config: DeliveryConfig) -> ComponentHealth:
    """Check that the delivery endpoint accepts connections.

    Any HTTP response counts as reachable; only transport errors fail.
    """
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            resp = await client.get(config.base_url)
    except httpx.HTTPError as exc:
        return ComponentHealth(name="sink", status=Status.UNHEALTHY, detail=str(exc))
    return ComponentHealth(
        name="sink",
        status=Status.HEALTHY,
        detail=f"{config.base_url} (HTTP {resp.status_code})",
    )


async def check_relay_health(config: RelayConfig) -> RelayHealth:
    """Run all health checks and return the aggregated result."""
    mysql = await asyncio.to_thread(check_mysql, config.source)
    redis = await check_redis(config.redis)
    sink = await check_sink(config.delivery)
    return RelayHealth(components=[mysql, redis, sink])
