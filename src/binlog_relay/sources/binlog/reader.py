"""Binlog reader — MySQL/MariaDB row-based replication stream consumer.

Follows the binlog through ``pymysqlreplication``, converts row events to
``RowsEvent`` envelopes and drives a ``BinlogHandler``:

    - write-rows  -> ``on_rows(action=insert)``, one raw row per image
    - update-rows -> ``on_rows(action=update)``, rows interleaved as
      ``[before1, after1, before2, after2, ...]``
    - rotate / XID / query -> ``on_position_synced(position)``

The blocking client is read in a worker thread; the async handler is awaited
before the next event is fetched, so the log is paused while it runs.

On connection loss the reader reconnects with exponential backoff
(1s → 2s → 4s → ... → 60s cap), resuming from the last synced position.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pymysql
import structlog
from pymysqlreplication import BinLogStreamReader
from pymysqlreplication.event import QueryEvent, RotateEvent, XidEvent
from pymysqlreplication.row_event import UpdateRowsEvent, WriteRowsEvent

from binlog_relay.config.models import SourceConfig, SourceFlavor
from binlog_relay.sources.base import BinlogHandler, Position, RowAction, RowsEvent
from binlog_relay.sources.binlog.columns import column_metadata

logger = structlog.get_logger()

_BACKOFF_BASE = 1.0
_BACKOFF_CAP = 60.0

_RECONNECTABLE_ERRORS = (
    pymysql.err.OperationalError,
    pymysql.err.InterfaceError,
    OSError,
)

StreamFactory = Callable[..., Any]


def to_rows_event(binlog_event: Any) -> RowsEvent | None:
    """Convert a pymysqlreplication row event, or ``None`` if not forwarded."""
    if isinstance(binlog_event, WriteRowsEvent):
        action = RowAction.INSERT
        rows = [list(row["values"].values()) for row in binlog_event.rows]
    elif isinstance(binlog_event, UpdateRowsEvent):
        action = RowAction.UPDATE
        rows = []
        for row in binlog_event.rows:
            rows.append(list(row["before_values"].values()))
            rows.append(list(row["after_values"].values()))
    else:
        return None

    return RowsEvent(
        table=binlog_event.table,
        action=action,
        rows=rows,
        columns=column_metadata(list(binlog_event.columns)),
    )


class BinlogReader:
    """Reads the binlog from a start position and feeds a handler.

    Lifecycle:
        1. Open a blocking ``BinLogStreamReader`` at the start position
        2. Fetch events one at a time in the default executor
        3. Dispatch row events / position advances to the handler
        4. Reconnect with backoff on connection loss
    """

    def __init__(
        self,
        config: SourceConfig,
        handler: BinlogHandler,
        *,
        start: Position | None = None,
        only_tables: list[str] | None = None,
        stream_factory: StreamFactory = BinLogStreamReader,
    ) -> None:
        self._config = config
        self._handler = handler
        self._position = start or Position.bootstrap()
        self._only_tables = only_tables or None
        self._stream_factory = stream_factory
        self._stream: Any = None
        self._running = False
        self._dispatched = 0

    @property
    def position(self) -> Position:
        """Last position reported to the handler (or the start position)."""
        return self._position

    @property
    def running(self) -> bool:
        return self._running

    def _open_stream(self) -> Any:
        kwargs: dict[str, Any] = {
            "connection_settings": self._config.connection_settings,
            "server_id": self._config.server_id,
            "blocking": True,
            "only_events": [
                WriteRowsEvent,
                UpdateRowsEvent,
                RotateEvent,
                XidEvent,
                QueryEvent,
            ],
            "slave_heartbeat": self._config.heartbeat_seconds,
            "is_mariadb": self._config.flavor == SourceFlavor.MARIADB,
        }
        if self._only_tables:
            kwargs["only_tables"] = self._only_tables
        if self._config.only_schemas:
            kwargs["only_schemas"] = self._config.only_schemas
        if not self._position.is_bootstrap:
            kwargs["log_file"] = self._position.log_name
            kwargs["log_pos"] = self._position.offset
            kwargs["resume_stream"] = True
        return self._stream_factory(**kwargs)

    async def start(self) -> None:
        """Follow the binlog until ``stop()``; re-raises once retries run out."""
        self._running = True
        max_retries = self._config.max_reconnect_attempts
        attempt = 0
        backoff = _BACKOFF_BASE

        logger.info(
            "binlog_reader.starting",
            host=self._config.host,
            port=self._config.port,
            position=str(self._position),
        )

        try:
            while self._running:
                dispatched = self._dispatched
                try:
                    await self._stream_events()
                    break
                except Exception as exc:
                    if not self._running:
                        # stop() closed the stream under a pending fetch.
                        break
                    if not isinstance(exc, _RECONNECTABLE_ERRORS):
                        raise
                    if self._dispatched > dispatched:
                        # The connection made progress before dropping.
                        attempt = 0
                        backoff = _BACKOFF_BASE
                    attempt += 1
                    if max_retries > 0 and attempt >= max_retries:
                        logger.error(
                            "binlog_reader.max_retries_exceeded",
                            max_retries=max_retries,
                            position=str(self._position),
                        )
                        raise
                    logger.warning(
                        "binlog_reader.connection_lost",
                        attempt=attempt,
                        backoff_seconds=backoff,
                        position=str(self._position),
                        exc_info=True,
                    )
                    await asyncio.sleep(backoff)
                    backoff = min(backoff * 2, _BACKOFF_CAP)
        finally:
            self._running = False

    async def _stream_events(self) -> None:
        loop = asyncio.get_running_loop()
        self._stream = self._open_stream()
        try:
            while self._running:
                binlog_event = await loop.run_in_executor(None, self._stream.fetchone)
                if binlog_event is None:
                    # Only a non-blocking stream runs dry.
                    break
                await self._dispatch(binlog_event)
                self._dispatched += 1
        finally:
            stream, self._stream = self._stream, None
            if stream is not None:
                stream.close()
            logger.info("binlog_reader.stream_closed", position=str(self._position))

    async def _dispatch(self, binlog_event: Any) -> None:
        if isinstance(binlog_event, RotateEvent):
            await self._sync(
                Position(binlog_event.next_binlog, binlog_event.position)
            )
            return

        rows_event = to_rows_event(binlog_event)
        if rows_event is not None:
            logger.debug(
                "binlog_reader.rows",
                table=rows_event.table,
                action=str(rows_event.action),
                rows=len(rows_event.rows),
            )
            await self._handler.on_rows(rows_event)
            return

        stream = self._stream
        if isinstance(binlog_event, (XidEvent, QueryEvent)) and stream is not None:
            await self._sync(Position(stream.log_file, stream.log_pos))

    async def _sync(self, position: Position) -> None:
        self._position = position
        await self._handler.on_position_synced(position)

    async def stop(self) -> None:
        """Signal the reader to stop; unblocks a pending fetch by closing the stream."""
        self._running = False
        stream = self._stream
        if stream is not None:
            try:
                stream.close()
            except _RECONNECTABLE_ERRORS:
                logger.debug("binlog_reader.close_failed", exc_info=True)
        logger.info("binlog_reader.stopping", position=str(self._position))
