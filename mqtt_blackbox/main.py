"""Application entrypoint."""

import asyncio
import logging
from functools import partial

from prometheus_client import disable_created_metrics

from mqtt_blackbox.adapters.driven.config.settings import load_settings, parse_listen_address
from mqtt_blackbox.adapters.driven.logging.logging_config import configure_logs, set_verbosity
from mqtt_blackbox.adapters.driven.metrics.prometheus_metrics import PrometheusMetrics
from mqtt_blackbox.adapters.driven.mqtt.client import connect_client
from mqtt_blackbox.adapters.driven.tls.tls_config import build_tls_context
from mqtt_blackbox.adapters.driving.metrics_server import MetricsServer
from mqtt_blackbox.adapters.driving.signals import make_stop_event
from mqtt_blackbox.core.identifiers import ClientIdSource
from mqtt_blackbox.core.round_trip import run_round_trip
from mqtt_blackbox.core.scheduler import start_scheduler

__all__ = ["main", "run"]

logger = logging.getLogger(__name__)


async def main() -> None:
    """Start the MQTT blackbox exporter.

    Startup sequence:
    1. Configure logging.
    2. Load and validate configuration.
    3. Start the metrics endpoint.
    4. Schedule one task per probe.
    5. Gracefully shutdown on SIGTERM/SIGINT.
    """
    configure_logs()
    logger.info("Starting MQTT blackbox exporter...")

    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as exc:
        logger.error(
            "Configuration error: %s\n"
            "Hint: check CONFIG_FILE and LISTEN_ADDRESS, and that every probe "
            "has a name, a broker_url and a topic.",
            exc,
        )
        return

    set_verbosity(debug=settings.debug, trace=settings.trace)

    # Counters expose *_total only, without *_created gauges
    disable_created_metrics()

    metrics = PrometheusMetrics()
    host, port = parse_listen_address(settings.listen_address)
    server = MetricsServer(registry=metrics.registry, host=host, port=port)

    run_fn = partial(
        run_round_trip,
        metrics=metrics,
        connect_fn=connect_client,
        tls_fn=build_tls_context,
        id_source=ClientIdSource(),
    )

    try:
        await server.start()
    except OSError as exc:
        logger.error(f"Failed to serve metrics endpoint on {settings.listen_address}: {exc}")
        return

    stop = make_stop_event()
    scheduler = asyncio.create_task(
        start_scheduler(probes=settings.probe_specs(), stop_fn=stop.is_set, run_fn=run_fn)
    )
    stopped = asyncio.create_task(stop.wait())

    try:
        await asyncio.wait({scheduler, stopped}, return_when=asyncio.FIRST_COMPLETED)
        if scheduler.done() and not scheduler.cancelled() and scheduler.exception():
            logger.error(
                f"Unhandled exception in scheduler: {scheduler.exception()}",
                exc_info=scheduler.exception(),
            )
    finally:
        for task in (scheduler, stopped):
            task.cancel()
        await asyncio.gather(scheduler, stopped, return_exceptions=True)
        await server.stop()

    logger.info("MQTT blackbox exporter stopped.")


def run() -> None:
    """Console script entrypoint."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user (Ctrl+C).")


if __name__ == "__main__":
    run()
