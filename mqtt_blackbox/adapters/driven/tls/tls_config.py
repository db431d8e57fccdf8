"""Transport security configuration derived from a probe specification."""

import logging
import ssl
from pathlib import Path

from mqtt_blackbox.ports.errors import ConfigError
from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = ["build_tls_context"]

logger = logging.getLogger(__name__)


def build_tls_context(spec: ProbeSpec) -> ssl.SSLContext:
    """Build the TLS context used by both clients of a probe.

    Performs no network I/O; only the configured PEM files are read.

    - ca_chain: loaded as the only trust roots (system roots otherwise).
    - insecure_skip_verify: broker certificate and hostname are not checked.
    - client_cert/client_key: loaded as a pair and sent to the broker.

    Args:
        spec: Probe whose transport security material is used.

    Returns:
        Client-side SSL context. Always valid, TLS material is optional.

    Raises:
        ConfigError: If exactly one of client_cert/client_key is set, or if a
            file cannot be read or parsed.
    """
    if bool(spec.client_cert) != bool(spec.client_key):
        raise ConfigError("incomplete client identity material: set both client_cert and client_key")

    if spec.ca_chain:
        try:
            pem_certs = Path(spec.ca_chain).read_text()
            context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cadata=pem_certs)
        except (OSError, ValueError) as e:
            raise ConfigError(f"trust chain unreadable: {spec.ca_chain}: {e}") from e
    else:
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)

    if spec.insecure_skip_verify:
        # Unsafe: any certificate is accepted
        logger.warning(f"Probe {spec.name}: broker certificate verification disabled")
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    if spec.client_cert and spec.client_key:
        # Concatenate leaf and intermediates into client_cert to send the chain
        try:
            context.load_cert_chain(certfile=spec.client_cert, keyfile=spec.client_key)
        except (OSError, ValueError) as e:
            raise ConfigError(f"could not read client certificate and key: {e}") from e

    return context
