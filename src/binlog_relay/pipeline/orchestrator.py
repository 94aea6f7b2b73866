"""Change event orchestrator — the log source's callback handler.

For every row-change batch on a monitored table: normalize, encode, enqueue,
and (depending on ``DeliveryMode``) push directly to the HTTP sink. For every
position advance: checkpoint. Nothing raised by delivery or checkpointing
reaches the log-following loop.
"""

from __future__ import annotations

import structlog

from binlog_relay.config.models import DeliveryMode
from binlog_relay.pipeline.context import RelayContext
from binlog_relay.pipeline.normalizer import normalize
from binlog_relay.sources.base import Position, RowsEvent
from binlog_relay.streaming.codec import encode_record

logger = structlog.get_logger()

class ChangeEventOrchestrator:
    """Implements ``BinlogHandler`` on top of a ``RelayContext``."""

    def __init__(self, context: RelayContext) -> None:
        self._ctx = context
        self._mode = context.config.delivery.mode
        self._records = 0

    @property
    def records_processed(self) -> int:
        return self._records

    async def on_rows(self, event: RowsEvent) -> None:
        group = self._ctx.routing.lookup(event.table)
        if group is None:
            logger.debug("orchestrator.table_skipped", table=event.table)
            return

        for record in normalize(event):
            try:
                body = encode_record(record)
            except (TypeError, ValueError) as exc:
                logger.error(
                    "orchestrator.encode_failed", table=event.table, error=str(exc)
                )
                continue

            self._records += 1
            queued = await self._ctx.queue.enqueue(body)
            if self._mode == DeliveryMode.DUAL or not queued:
                await self._ctx.sink.deliver(group, body)

    async def on_position_synced(self, position: Position) -> None:
        logger.debug("orchestrator.position_synced", position=str(position))
        await self._ctx.checkpoints.save(position)
