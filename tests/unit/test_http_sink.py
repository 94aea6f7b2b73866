"""Unit tests for the HTTP delivery sink."""

from __future__ import annotations

import httpx
import pytest
import respx

from binlog_relay.config.models import DeliveryConfig, RetryConfig
from binlog_relay.sinks.http import HttpSink

BODY = '{"before": null, "after": {"id": 1}, "source": {"table": "orders"}}'


def _make_sink(
    base_url: str = "http://relay.test/",
    max_attempts: int = 2,
    headers: dict[str, str] | None = None,
) -> HttpSink:
    cfg = DeliveryConfig(
        base_url=base_url,
        headers=headers or {},
        retry=RetryConfig(
            max_attempts=max_attempts,
            initial_wait_seconds=0.01,
            max_wait_seconds=0.05,
            jitter=False,
        ),
    )
    return HttpSink(cfg)


@pytest.mark.asyncio
class TestHttpSink:
    async def test_posts_body_to_group_url(self, respx_mock: respx.MockRouter):
        route = respx_mock.post("http://relay.test/orders").mock(
            return_value=httpx.Response(200)
        )
        async with _make_sink() as sink:
            assert await sink.deliver("orders", BODY) is True

        assert route.call_count == 1
        request = route.calls[0].request
        assert request.read().decode() == BODY
        assert request.headers["Content-Type"] == "application/json"

    async def test_custom_headers_sent(self, respx_mock: respx.MockRouter):
        route = respx_mock.post("http://relay.test/orders").mock(
            return_value=httpx.Response(204)
        )
        async with _make_sink(headers={"X-Api-Key": "k"}) as sink:
            await sink.deliver("orders", BODY)

        assert route.calls[0].request.headers["X-Api-Key"] == "k"

    async def test_retries_on_server_error(self, respx_mock: respx.MockRouter):
        route = respx_mock.post("http://relay.test/orders").mock(
            side_effect=[httpx.Response(503), httpx.Response(200)]
        )
        async with _make_sink() as sink:
            assert await sink.deliver("orders", BODY) is True

        assert route.call_count == 2

    async def test_exhausted_retries_return_false(self, respx_mock: respx.MockRouter):
        route = respx_mock.post("http://relay.test/orders").mock(
            return_value=httpx.Response(500)
        )
        async with _make_sink(max_attempts=3) as sink:
            assert await sink.deliver("orders", BODY) is False
            health = await sink.health()

        assert route.call_count == 3
        assert health["failed"] == 1
        assert health["delivered"] == 0

    async def test_transport_error_returns_false(self, respx_mock: respx.MockRouter):
        respx_mock.post("http://relay.test/orders").mock(
            side_effect=httpx.ConnectError("refused")
        )
        async with _make_sink() as sink:
            assert await sink.deliver("orders", BODY) is False

    async def test_deliver_before_start_raises(self):
        with pytest.raises(RuntimeError, match="not started"):
            await _make_sink().deliver("orders", BODY)

    async def test_health_reports_state(self):
        sink = _make_sink()
        assert (await sink.health())["status"] == "stopped"
        await sink.start()
        try:
            health = await sink.health()
            assert health["status"] == "running"
            assert health["base_url"] == "http://relay.test"
        finally:
            await sink.stop()


class TestUrlFor:
    def test_trailing_slash_stripped(self):
        assert _make_sink("http://relay.test/api/").url_for("g1") == (
            "http://relay.test/api/g1"
        )
