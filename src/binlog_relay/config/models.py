"""Pydantic configuration models for the binlog relay."""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path
from typing import Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

_HOST_PORT = re.compile(r"^(?P<host>[^:\s]+):(?P<port>\d{1,5})$")


class SourceFlavor(StrEnum):
    """Replication server flavours understood by the binlog client."""

    MYSQL = "mysql"
    MARIADB = "mariadb"


class DeliveryMode(StrEnum):
    """How a change record reaches the HTTP sink.

    ``queued`` enqueues and only pushes directly when the enqueue fails.
    ``dual`` always pushes directly as well (legacy behaviour).
    """

    QUEUED = "queued"
    DUAL = "dual"


class SourceConfig(BaseModel):
    """Connection settings for the replicated MySQL/MariaDB source."""

    host: str = "127.0.0.1"
    port: int = Field(default=3306, ge=1, le=65535)
    user: str = "root"
    password: SecretStr = SecretStr("")
    flavor: SourceFlavor = SourceFlavor.MYSQL
    # Must be unique across every replica attached to the source.
    server_id: int = Field(default=1001, ge=1)
    only_schemas: list[str] = Field(default_factory=list)
    heartbeat_seconds: float = Field(default=30.0, gt=0)
    # 0 = keep reconnecting forever
    max_reconnect_attempts: int = Field(default=5, ge=0)

    @property
    def connection_settings(self) -> dict[str, object]:
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "passwd": self.password.get_secret_value(),
        }


class RedisConfig(BaseModel):
    """Fast checkpoint tier and durable delivery queue."""

    addr: str = "localhost:6379"
    password: SecretStr | None = None
    db: int = Field(default=0, ge=0)
    position_key: str = Field(default="binlog_position", min_length=1)
    queue_key: str = Field(default="cdc_events", min_length=1)
    # The worker's blocking pop holds one connection for its whole wait.
    max_connections: int = Field(default=10, ge=2)
    connect_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("addr")
    @classmethod
    def validate_addr(cls, v: str) -> str:
        if not _HOST_PORT.match(v):
            msg = f"Redis addr '{v}' must be in host:port form (e.g. 'localhost:6379')"
            raise ValueError(msg)
        return v

    @property
    def url(self) -> str:
        return f"redis://{self.addr}/{self.db}"


class CheckpointConfig(BaseModel):
    """Durable (file) tier of the checkpoint store."""

    position_file: Path = Path("./storage/binlog_position.json")


class RetryConfig(BaseModel):
    """Retry / backoff configuration."""

    max_attempts: int = Field(default=3, ge=1)
    initial_wait_seconds: float = Field(default=0.5, gt=0)
    max_wait_seconds: float = Field(default=10.0, gt=0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: bool = True


class DeliveryConfig(BaseModel):
    """HTTP sink settings. Records are POSTed to ``{base_url}/{group}``."""

    base_url: str = "http://localhost:8080"
    timeout_seconds: float = Field(default=10.0, gt=0)
    headers: dict[str, str] = Field(default_factory=dict)
    mode: DeliveryMode = DeliveryMode.QUEUED
    retry: RetryConfig = RetryConfig()

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = f"base_url '{v}' must start with http:// or https://"
            raise ValueError(msg)
        return v.rstrip("/")


class WorkerConfig(BaseModel):
    """Delivery worker loop settings."""

    enabled: bool = True
    reconnect_interval_seconds: float = Field(default=5.0, gt=0)
    # 0 = block on the queue head indefinitely
    poll_timeout_seconds: float = Field(default=0.0, ge=0.0)


_LOG_LEVELS = {"trace", "debug", "info", "warn", "warning", "error"}


class RelayConfig(BaseModel, extra="forbid"):
    """Top-level relay configuration, consumed once at startup."""

    source: SourceConfig = SourceConfig()
    redis: RedisConfig = RedisConfig()
    checkpoint: CheckpointConfig = CheckpointConfig()
    delivery: DeliveryConfig = DeliveryConfig()
    worker: WorkerConfig = WorkerConfig()
    routing_file: Path = Path("./config/table_groups.yaml")
    log_level: str = "info"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().lower()
        if level not in _LOG_LEVELS:
            msg = f"log_level '{v}' must be one of {sorted(_LOG_LEVELS)}"
            raise ValueError(msg)
        return level

    @model_validator(mode="after")
    def check_queue_keys(self) -> Self:
        """The checkpoint key and the queue key must not collide."""
        if self.redis.position_key == self.redis.queue_key:
            msg = "redis.position_key and redis.queue_key must differ"
            raise ValueError(msg)
        return self
