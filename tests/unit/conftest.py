"""Shared fixtures for relay unit tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, PropertyMock

import pytest

from binlog_relay.config.models import DeliveryMode, RelayConfig
from binlog_relay.config.routing import RoutingTable
from binlog_relay.pipeline.context import RelayContext


@pytest.fixture
def routing() -> RoutingTable:
    return RoutingTable(
        {"customers": ["customers", "customer_addresses"], "orders": ["orders"]}
    )


def make_context(
    routing: RoutingTable,
    *,
    mode: DeliveryMode = DeliveryMode.QUEUED,
    queue_available: bool = True,
    enqueue_ok: bool = True,
    deliver_ok: bool = True,
) -> RelayContext:
    """RelayContext whose queue, sink and checkpoints are mocks."""
    config = RelayConfig.model_validate(
        {
            "delivery": {"mode": mode},
            "worker": {"reconnect_interval_seconds": 0.01},
        }
    )
    queue = MagicMock()
    queue.key = config.redis.queue_key
    type(queue).available = PropertyMock(return_value=queue_available)
    queue.enqueue = AsyncMock(return_value=enqueue_ok)
    queue.dequeue = AsyncMock(return_value=None)

    sink = MagicMock()
    sink.deliver = AsyncMock(return_value=deliver_ok)
    sink.start = AsyncMock()
    sink.stop = AsyncMock()

    checkpoints = MagicMock()
    checkpoints.save = AsyncMock()
    checkpoints.load = AsyncMock()

    return RelayContext(
        config=config,
        routing=routing,
        redis=None,
        checkpoints=checkpoints,
        queue=queue,
        sink=sink,
    )


@pytest.fixture
def context_factory(routing: RoutingTable):
    def _factory(**kwargs) -> RelayContext:
        return make_context(routing, **kwargs)

    return _factory
