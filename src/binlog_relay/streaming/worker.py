"""Delivery worker — drains the durable queue into the HTTP sink.

Runs for the lifetime of the process, independent of the log-following
path. Items for tables missing from the routing table are discarded. A
failed delivery is logged and not re-queued.
"""

from __future__ import annotations

import asyncio

import structlog
from redis.exceptions import RedisError

from binlog_relay.pipeline.context import RelayContext
from binlog_relay.streaming.codec import CodecError, decode_item, table_of

logger = structlog.get_logger()


class DeliveryWorker:
    """Blocking-pop consumer of the delivery queue."""

    def __init__(self, context: RelayContext) -> None:
        self._ctx = context
        self._interval = context.config.worker.reconnect_interval_seconds
        self._poll_timeout = context.config.worker.poll_timeout_seconds
        self._running = False
        self.delivered = 0
        self.discarded = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Loop until ``stop()``; never exits on transient errors."""
        self._running = True
        queue = self._ctx.queue
        logger.info("worker.started", queue=queue.key)
        try:
            while self._running:
                if not queue.available:
                    logger.warning(
                        "worker.queue_unavailable", retry_in=self._interval
                    )
                    await asyncio.sleep(self._interval)
                    continue

                try:
                    item = await queue.dequeue(timeout=self._poll_timeout)
                except (RedisError, OSError) as exc:
                    logger.error(
                        "worker.dequeue_failed", error=str(exc), retry_in=self._interval
                    )
                    await asyncio.sleep(self._interval)
                    continue

                if item is None:
                    continue
                try:
                    await self.process(item)
                except Exception as exc:
                    self.failed += 1
                    logger.error(
                        "worker.process_failed", error=str(exc), exc_info=True
                    )
        finally:
            self._running = False
            logger.info("worker.stopped")

    async def process(self, item: str) -> bool:
        """Route and deliver one queue item. Returns whether it was delivered."""
        try:
            payload = decode_item(item)
        except CodecError as exc:
            self.discarded += 1
            logger.error("worker.item_undecodable", error=str(exc))
            return False

        table = table_of(payload)
        if table is None:
            self.discarded += 1
            logger.error("worker.item_missing_table", item=item)
            return False

        group = self._ctx.routing.lookup(table)
        if group is None:
            self.discarded += 1
            logger.debug("worker.table_skipped", table=table)
            return False

        if await self._ctx.sink.deliver(group, item):
            self.delivered += 1
            return True
        self.failed += 1
        return False

    def stop(self) -> None:
        self._running = False
