"""Two-tier checkpoint store for the last synced binlog position.

Tiers:
    - fast: a Redis string under ``RedisConfig.position_key``
    - durable: the full content of ``CheckpointConfig.position_file``

Both tiers are written on every save, independently and best-effort.
Loading prefers the fast tier, falls back to the file, and finally to the
bootstrap position. Neither operation raises to the caller.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from binlog_relay.config.models import CheckpointConfig
from binlog_relay.sources.base import Position
from binlog_relay.streaming.codec import CodecError, decode_position, encode_position

logger = structlog.get_logger()


class CheckpointStore:
    """Persists and restores the relay's replication position."""

    def __init__(
        self,
        config: CheckpointConfig,
        redis: Redis | None,
        *,
        redis_key: str = "binlog_position",
    ) -> None:
        self._path = Path(config.position_file)
        self._redis = redis
        self._redis_key = redis_key
        self._last_saved: Position | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def last_saved(self) -> Position | None:
        return self._last_saved

    async def save(self, position: Position) -> None:
        """Write *position* to both tiers. Failures are logged, never raised."""
        last = self._last_saved
        if (
            last is not None
            and last.log_name == position.log_name
            and position.offset < last.offset
        ):
            logger.warning(
                "checkpoint.regression_ignored",
                last=str(last),
                position=str(position),
            )
            return

        data = encode_position(position)
        fast_ok = await self._save_fast(data, position)
        durable_ok = self._save_durable(data, position)
        if fast_ok or durable_ok:
            self._last_saved = position

    async def _save_fast(self, data: str, position: Position) -> bool:
        if self._redis is None:
            return False
        try:
            await self._redis.set(self._redis_key, data)
        except (RedisError, OSError) as exc:
            logger.error(
                "checkpoint.redis_save_failed", position=str(position), error=str(exc)
            )
            return False
        logger.debug("checkpoint.redis_saved", position=str(position))
        return True

    def _save_durable(self, data: str, position: Position) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(data)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error(
                "checkpoint.file_save_failed",
                path=str(self._path),
                position=str(position),
                error=str(exc),
            )
            return False
        logger.debug("checkpoint.file_saved", position=str(position))
        return True

    async def load(self) -> Position:
        """Return the last saved position, or the bootstrap position."""
        position = await self._load_fast()
        if position is None:
            position = self._load_durable()
        if position is None:
            logger.warning("checkpoint.not_found", fallback="start from scratch")
            return Position.bootstrap()
        self._last_saved = position
        return position

    async def _load_fast(self) -> Position | None:
        if self._redis is None:
            return None
        try:
            data = await self._redis.get(self._redis_key)
        except (RedisError, OSError) as exc:
            logger.warning("checkpoint.redis_load_failed", error=str(exc))
            return None
        if data is None:
            logger.warning("checkpoint.redis_miss", key=self._redis_key)
            return None
        try:
            position = decode_position(data)
        except CodecError as exc:
            logger.warning("checkpoint.redis_decode_failed", error=str(exc))
            return None
        logger.info("checkpoint.loaded", tier="redis", position=str(position))
        return position

    def _load_durable(self) -> Position | None:
        try:
            data = self._path.read_text()
        except FileNotFoundError:
            logger.warning("checkpoint.file_missing", path=str(self._path))
            return None
        except OSError as exc:
            logger.error(
                "checkpoint.file_load_failed", path=str(self._path), error=str(exc)
            )
            return None
        try:
            position = decode_position(data)
        except CodecError as exc:
            logger.error(
                "checkpoint.file_decode_failed", path=str(self._path), error=str(exc)
            )
            return None
        logger.info("checkpoint.loaded", tier="file", position=str(position))
        return position
