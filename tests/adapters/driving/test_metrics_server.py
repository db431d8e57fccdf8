"""Tests for the metrics HTTP endpoint."""

import socket

import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer
from prometheus_client.parser import text_string_to_metric_families

from mqtt_blackbox.adapters.driven.metrics.prometheus_metrics import PrometheusMetrics
from mqtt_blackbox.adapters.driving.metrics_server import MetricsServer
from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = []

SPEC = ProbeSpec(name="local", broker="tcp://localhost:1883", topic="probe/test")
LABELS = {"name": "local", "broker": "tcp://localhost:1883"}


def sample_value(body: str, name: str, labels: dict[str, str]) -> float | None:
    """Find a sample in exposition text regardless of label order."""
    for family in text_string_to_metric_families(body):
        for sample in family.samples:
            if sample.name == name and sample.labels == labels:
                return sample.value
    return None


def free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.asyncio
async def test_metrics_endpoint_renders_registry() -> None:
    """GET /metrics should return the registry in the Prometheus text format."""
    metrics = PrometheusMetrics()
    metrics.register(SPEC)
    metrics.message_published(SPEC)
    server = MetricsServer(metrics.registry, "127.0.0.1", 0)

    async with TestClient(TestServer(server.make_app())) as client:
        response = await client.get("/metrics")
        body = await response.text()

    assert response.status == 200
    assert response.headers["Content-Type"].startswith("text/plain")
    assert sample_value(body, "probe_mqtt_messages_published_total", LABELS) == 1.0
    assert sample_value(body, "probe_mqtt_errors_total", LABELS) == 0.0


@pytest.mark.asyncio
async def test_index_links_to_metrics() -> None:
    server = MetricsServer(PrometheusMetrics().registry, "127.0.0.1", 0)

    async with TestClient(TestServer(server.make_app())) as client:
        response = await client.get("/")
        body = await response.text()

    assert response.status == 200
    assert 'href="/metrics"' in body


@pytest.mark.asyncio
async def test_start_and_stop_serves_on_port() -> None:
    """start() should bind the configured address until stop()."""
    port = free_port()
    server = MetricsServer(PrometheusMetrics().registry, "127.0.0.1", port)

    await server.start()
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://127.0.0.1:{port}/metrics") as response:
                assert response.status == 200
    finally:
        await server.stop()

    await server.stop()


@pytest.mark.asyncio
async def test_start_fails_when_port_in_use() -> None:
    """Bind failures should surface as OSError."""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen()
        port = sock.getsockname()[1]
        server = MetricsServer(PrometheusMetrics().registry, "127.0.0.1", port)

        with pytest.raises(OSError):
            await server.start()
