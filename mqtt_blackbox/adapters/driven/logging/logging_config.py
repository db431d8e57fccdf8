"""Structured logging setup for the exporter."""

import logging

__all__ = ["configure_logs", "set_verbosity"]


def configure_logs() -> None:
    """Configure console logging.

    Sets up:
    - Root logger at INFO level.
    - Framework loggers (aiohttp, asyncio, paho) at WARNING level.
    - Application loggers (mqtt_blackbox) at INFO level.
    - Structured format with timestamp, level, module, and line number.
    """
    log_format = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s"
    date_format = "%d/%m/%y %H:%M:%S"

    formatter = logging.Formatter(log_format, date_format)
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    # Root logger
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.addHandler(handler)

    # Suppress verbose framework loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("paho").setLevel(logging.WARNING)

    # Application loggers
    logging.getLogger("mqtt_blackbox").setLevel(logging.INFO)


def set_verbosity(*, debug: bool = False, trace: bool = False) -> None:
    """Raise log levels once the configuration is known.

    Args:
        debug: Log exporter internals (state transitions, run durations).
        trace: Log the MQTT protocol exchange of paho-mqtt.
    """
    if debug:
        logging.getLogger("mqtt_blackbox").setLevel(logging.DEBUG)
    if trace:
        logging.getLogger("paho").setLevel(logging.DEBUG)
