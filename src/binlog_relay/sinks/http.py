"""HTTP (POST) delivery sink.

Each encoded change record is POSTed to ``{base_url}/{group}``. Non-2xx
responses and transport errors are retried with exponential backoff. Once
retries are exhausted the failure is logged and reported as ``False``; the
caller never sees an exception.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from binlog_relay.config.models import DeliveryConfig

logger = structlog.get_logger()


class HttpSink:
    """Forwards queue items to the downstream HTTP endpoint per routing group."""

    def __init__(self, config: DeliveryConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None
        self._delivered = 0
        self._failed = 0

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def started(self) -> bool:
        return self._client is not None

    def url_for(self, group: str) -> str:
        return f"{self._config.base_url}/{group}"

    async def start(self) -> None:
        headers = {"Content-Type": "application/json", **self._config.headers}
        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(self._config.timeout_seconds),
        )
        logger.info("http_sink.started", base_url=self._config.base_url)

    async def deliver(self, group: str, body: str) -> bool:
        """POST *body* to the group's URL. Returns whether it was accepted."""
        if self._client is None:
            msg = "HttpSink not started — call start() first"
            raise RuntimeError(msg)

        url = self.url_for(group)
        retry_cfg = self._config.retry
        client = self._client

        @retry(
            stop=stop_after_attempt(retry_cfg.max_attempts),
            wait=wait_exponential_jitter(
                initial=retry_cfg.initial_wait_seconds,
                max=retry_cfg.max_wait_seconds,
                exp_base=retry_cfg.multiplier,
                jitter=retry_cfg.initial_wait_seconds if retry_cfg.jitter else 0,
            ),
            retry=retry_if_exception_type(
                (httpx.HTTPStatusError, httpx.TransportError)
            ),
            reraise=True,
        )
        async def _send() -> httpx.Response:
            response = await client.post(url, content=body)
            response.raise_for_status()
            return response

        logger.info("http_sink.sending", url=url, payload=body)
        try:
            response = await _send()
        except httpx.HTTPError as exc:
            self._failed += 1
            logger.error("http_sink.delivery_failed", url=url, error=str(exc))
            return False

        self._delivered += 1
        logger.debug("http_sink.delivered", url=url, status=response.status_code)
        return True

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("http_sink.stopped")

    async def __aenter__(self) -> HttpSink:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    async def health(self) -> dict[str, Any]:
        return {
            "type": "http",
            "status": "running" if self._client is not None else "stopped",
            "base_url": self._config.base_url,
            "delivered": self._delivered,
            "failed": self._failed,
        }
