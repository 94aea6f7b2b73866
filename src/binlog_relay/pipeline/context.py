"""Process-wide relay context, built once at startup and passed explicitly."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from binlog_relay.checkpoint.store import CheckpointStore
from binlog_relay.config.models import RedisConfig, RelayConfig
from binlog_relay.config.routing import RoutingTable
from binlog_relay.sinks.http import HttpSink
from binlog_relay.streaming.queue import DeliveryQueue

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class RelayContext:
    """Everything the orchestrator, worker and checkpointing share.

    ``redis`` is ``None`` only when the context was built without a client
    (``connect=False``); the checkpoint store then runs file-only and the
    queue reports unavailable. A client whose server is down stays in place
    and recovers on its own.
    """

    config: RelayConfig
    routing: RoutingTable
    redis: Redis | None
    checkpoints: CheckpointStore
    queue: DeliveryQueue
    sink: HttpSink

    async def close(self) -> None:
        await self.sink.stop()
        if self.redis is not None:
            await self.redis.aclose()


def create_redis(config: RedisConfig) -> Redis:
    """Create a Redis client with an async connection pool."""
    password = config.password.get_secret_value() if config.password else None
    pool = ConnectionPool.from_url(
        config.url,
        password=password or None,
        max_connections=config.max_connections,
        socket_connect_timeout=config.connect_timeout_seconds,
        decode_responses=True,
    )
    return Redis(connection_pool=pool)


async def connect_redis(config: RedisConfig) -> Redis:
    """Create the client and ping Redis once.

    An unreachable server is logged but the client is still returned: the pool
    reconnects lazily, and the queue, checkpoint store and worker treat
    ``RedisError`` as transient and retry.
    """
    client = create_redis(config)
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning(
            "redis.unavailable",
            addr=config.addr,
            fallback="file checkpoints and direct delivery until it recovers",
            error=str(exc),
        )
    else:
        logger.info("redis.connected", addr=config.addr)
    return client


async def build_context(
    config: RelayConfig,
    routing: RoutingTable,
    *,
    redis: Redis | None = None,
    connect: bool = True,
) -> RelayContext:
    """Assemble a RelayContext. Pass ``redis`` to reuse an existing client."""
    if redis is None and connect:
        redis = await connect_redis(config.redis)
    return RelayContext(
        config=config,
        routing=routing,
        redis=redis,
        checkpoints=CheckpointStore(
            config.checkpoint, redis, redis_key=config.redis.position_key
        ),
        queue=DeliveryQueue(redis, key=config.redis.queue_key),
        sink=HttpSink(config.delivery),
    )
