"""Broker connection port definition (interface)."""

from __future__ import annotations

import ssl
from collections.abc import Awaitable, Callable
from typing import Protocol

from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = ["BrokerConnection", "ConnectFn", "MessageHandler", "TlsFn"]

# Called on the event loop with (topic, payload) for every inbound message
MessageHandler = Callable[[str, bytes], None]


class BrokerConnection(Protocol):
    """One established client connection owned by a single run.

    Implementations raise the errors of ``mqtt_blackbox.ports.errors``.
    """

    async def subscribe(self, topic: str, qos: int, timeout: float) -> None:
        """Subscribe and wait for the acknowledgment.

        Raises:
            SubscribeError: If rejected or not acknowledged within timeout.
        """
        ...

    async def publish(self, topic: str, payload: str, qos: int, timeout: float) -> None:
        """Publish one message and wait for its acknowledgment.

        Raises:
            PublishTimeout: If not acknowledged within timeout.
        """
        ...

    async def unsubscribe(self, topic: str) -> None:
        """Drop the subscription without waiting for the acknowledgment."""
        ...

    async def close(self) -> None:
        """Disconnect and release the network resources."""
        ...


class ConnectFn(Protocol):
    """Opens one connection; raises ConnectError on failure or timeout."""

    def __call__(
        self,
        spec: ProbeSpec,
        tls_context: ssl.SSLContext,
        timeout: float,
        client_id: str,
        on_message: MessageHandler | None = None,
    ) -> Awaitable[BrokerConnection]: ...


# Derives the transport security configuration; raises ConfigError
TlsFn = Callable[[ProbeSpec], ssl.SSLContext]
