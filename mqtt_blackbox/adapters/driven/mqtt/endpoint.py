"""Broker URL parsing."""

from dataclasses import dataclass
from urllib.parse import urlsplit

__all__ = ["BrokerEndpoint", "parse_broker_url"]

# scheme -> (transport, tls, default port)
_SCHEMES: dict[str, tuple[str, bool, int]] = {
    "tcp": ("tcp", False, 1883),
    "mqtt": ("tcp", False, 1883),
    "ssl": ("tcp", True, 8883),
    "tls": ("tcp", True, 8883),
    "tcps": ("tcp", True, 8883),
    "mqtts": ("tcp", True, 8883),
    "ws": ("websockets", False, 80),
    "wss": ("websockets", True, 443),
}


@dataclass(slots=True, frozen=True)
class BrokerEndpoint:
    """Network location of a broker.

    Attributes:
        host: Broker host name or address.
        port: Broker port.
        transport: paho transport, "tcp" or "websockets".
        tls: True if the connection must be wrapped in TLS.
        path: Websocket path (ignored for tcp).
    """

    host: str
    port: int
    transport: str
    tls: bool
    path: str = "/mqtt"


def parse_broker_url(url: str) -> BrokerEndpoint:
    """Parse a broker URL such as ``ssl://broker.example.com:8883``.

    Args:
        url: Broker URL.

    Returns:
        Parsed endpoint.

    Raises:
        ValueError: If scheme or host is missing or unsupported.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in _SCHEMES:
        supported = ", ".join(sorted(_SCHEMES))
        raise ValueError(f"Unsupported broker scheme in {url!r} (supported: {supported})")
    if not parts.hostname:
        raise ValueError(f"Missing broker host in {url!r}")

    transport, tls, default_port = _SCHEMES[scheme]
    return BrokerEndpoint(
        host=parts.hostname,
        port=parts.port or default_port,
        transport=transport,
        tls=tls,
        path=parts.path or "/mqtt",
    )
