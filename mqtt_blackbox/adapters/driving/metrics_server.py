"""HTTP endpoint exposing the probe metrics to Prometheus."""

from __future__ import annotations

import logging

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

__all__ = ["MetricsServer"]

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"


class MetricsServer:
    """Minimal aiohttp server for ``GET /metrics``.

    Attributes:
        registry: Registry rendered on every scrape.
        host: Host to bind to.
        port: Port to listen on.
    """

    def __init__(self, registry: CollectorRegistry, host: str, port: int) -> None:
        self.registry = registry
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get(METRICS_PATH, self.handle_metrics)
        app.router.add_get("/", self.handle_index)
        return app

    async def start(self) -> None:
        """Start listening.

        Raises:
            OSError: If the address cannot be bound.
        """
        if self._runner is not None:
            return
        runner = web.AppRunner(self.make_app(), access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner
        logger.info(f"Serving metrics on http://{self.host}:{self.port}{METRICS_PATH}")

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("Metrics server stopped")

    async def handle_metrics(self, request: web.Request) -> web.Response:
        """Render the registry in the Prometheus text format."""
        return web.Response(
            body=generate_latest(self.registry),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )

    async def handle_index(self, request: web.Request) -> web.Response:
        return web.Response(
            text=(
                "<html><head><title>MQTT Blackbox Exporter</title></head><body>"
                f'<h1>MQTT Blackbox Exporter</h1><p><a href="{METRICS_PATH}">Metrics</a></p>'
                "</body></html>"
            ),
            content_type="text/html",
        )
