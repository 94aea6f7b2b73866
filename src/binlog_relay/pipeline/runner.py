"""Relay runner — binlog → orchestrator → queue → worker → HTTP lifecycle."""

from __future__ import annotations

import asyncio
import signal
from contextlib import suppress

import structlog

from binlog_relay.config.models import RelayConfig
from binlog_relay.config.routing import RoutingTable, load_routing_table
from binlog_relay.observability.logs import configure_logging
from binlog_relay.pipeline.context import RelayContext, build_context
from binlog_relay.pipeline.orchestrator import ChangeEventOrchestrator
from binlog_relay.sources.binlog.reader import BinlogReader
from binlog_relay.streaming.worker import DeliveryWorker

logger = structlog.get_logger()


class Relay:
    """Wires the relay components together and runs them until stopped.

    Startup order: routing table (fatal on error), context, checkpoint load,
    sink, delivery worker, then the binlog reader. The checkpoint is loaded
    before the reader exists, so it has no concurrent writer.
    """

    def __init__(
        self, config: RelayConfig, *, routing: RoutingTable | None = None
    ) -> None:
        self._config = config
        self._routing = routing
        self._context: RelayContext | None = None
        self._reader: BinlogReader | None = None
        self._worker: DeliveryWorker | None = None
        self._worker_task: asyncio.Task[None] | None = None
        self._stop_task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the relay (blocking)."""
        configure_logging(self._config.log_level)
        asyncio.run(self._start_async())

    async def _start_async(self) -> None:
        # 1. Routing table (a bad file is fatal)
        routing = self._routing or load_routing_table(self._config.routing_file)

        # 2. Shared context (Redis may be absent)
        self._context = await build_context(self._config, routing)
        ctx = self._context

        try:
            # 3. Resume position
            position = await ctx.checkpoints.load()

            # 4. HTTP sink + delivery worker
            await ctx.sink.start()
            if self._config.worker.enabled:
                self._worker = DeliveryWorker(ctx)
                self._worker_task = asyncio.create_task(self._worker.run())

            # 5. Binlog reader driving the orchestrator
            self._reader = BinlogReader(
                self._config.source,
                ChangeEventOrchestrator(ctx),
                start=position,
                only_tables=routing.tables,
            )
            self._install_signal_handlers()
            logger.info(
                "relay.started",
                position=str(position),
                groups=list(routing.groups),
                delivery_mode=str(self._config.delivery.mode),
                queue=ctx.queue.available,
            )
            await self._reader.start()
        finally:
            await self._shutdown()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with suppress(NotImplementedError):
                loop.add_signal_handler(sig, self._on_signal, sig)

    def _on_signal(self, signum: int) -> None:
        logger.info("relay.shutdown_signal", signal=signum)
        self.stop()

    async def _shutdown(self) -> None:
        """Stop the worker, close the sink and Redis. Queued items stay queued."""
        if self._worker is not None:
            self._worker.stop()
        if self._worker_task is not None:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.error("relay.worker_failed", exc_info=True)
            self._worker_task = None
        if self._context is not None:
            await self._context.close()
        logger.info("relay.stopped")

    def stop(self) -> None:
        """Signal the relay to stop. A no-op once the event loop has exited."""
        if self._reader is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._stop_task = loop.create_task(self._reader.stop())
