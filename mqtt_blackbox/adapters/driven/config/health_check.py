"""Container healthcheck: configuration and TLS material of every probe."""

import logging

from mqtt_blackbox.adapters.driven.config.settings import load_settings
from mqtt_blackbox.adapters.driven.logging.logging_config import configure_logs
from mqtt_blackbox.adapters.driven.tls.tls_config import build_tls_context
from mqtt_blackbox.ports.errors import ConfigError

__all__ = ["main"]

logger = logging.getLogger(__name__)


def main() -> int:
    """Check that the exporter could start and run its probes.

    Validates:
    - The YAML config file exists and every probe entry is valid.
    - Environment overrides (listen address, flags) are well formed.
    - Each probe's CA chain and client certificate/key can be loaded.

    Brokers are not contacted.

    Returns:
        0 if healthy, 1 if unhealthy.
    """
    configure_logs()

    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as exc:
        logger.error(f"Exporter healthcheck FAILED: {exc}")
        return 1

    failed = 0
    for spec in settings.probe_specs():
        try:
            build_tls_context(spec)
        except ConfigError as exc:
            logger.error(f"Exporter healthcheck FAILED: probe {spec.name}: {exc}")
            failed += 1

    if failed:
        return 1

    logger.info(f"Exporter healthcheck OK ({len(settings.probes)} probe(s))")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
