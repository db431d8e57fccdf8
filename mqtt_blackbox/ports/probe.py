"""Probe specification port definition (DTO)."""

from dataclasses import dataclass

__all__ = [
    "DEFAULT_CLIENT_PREFIX",
    "DEFAULT_INTERVAL_SEC",
    "DEFAULT_MESSAGE_PAYLOAD",
    "ProbeSpec",
]

DEFAULT_CLIENT_PREFIX = "mqtt-blackbox"
DEFAULT_INTERVAL_SEC = 60.0
DEFAULT_MESSAGE_PAYLOAD = "This is msg %d!"


@dataclass(slots=True, frozen=True)
class ProbeSpec:
    """Immutable configuration of one probe.

    Decouples the core engine from the configuration source.

    Attributes:
        name: Probe name, used as metric label.
        broker: Broker URL, e.g. ``tcp://localhost:1883`` or ``ssl://host:8883``.
        topic: Topic messages are published to.
        subscribe_topic: Topic to subscribe to; defaults to ``topic``.
        client_prefix: Prefix of the per-run client identifiers.
        username: Broker username (empty for anonymous access).
        password: Broker password.
        ca_chain: Path to a PEM bundle used as trust roots.
        client_cert: Path to the client certificate (PEM).
        client_key: Path to the client private key (PEM).
        insecure_skip_verify: Do not verify the broker certificate. Unsafe.
        messages: Number of messages published per run.
        interval_sec: Seconds between runs; None means unset.
        message_payload: printf-style template taking the message index.
        qos: MQTT quality of service for publish and subscribe.
    """

    name: str
    broker: str
    topic: str
    subscribe_topic: str | None = None
    client_prefix: str = DEFAULT_CLIENT_PREFIX
    username: str = ""
    password: str = ""
    ca_chain: str | None = None
    client_cert: str | None = None
    client_key: str | None = None
    insecure_skip_verify: bool = False
    messages: int = 10
    interval_sec: float | None = None
    message_payload: str | None = None
    qos: int = 0

    @property
    def subscription_topic(self) -> str:
        """Topic the subscriber listens on."""
        return self.subscribe_topic or self.topic

    @property
    def payload_template(self) -> str:
        return self.message_payload or DEFAULT_MESSAGE_PAYLOAD

    @property
    def sleep_interval_sec(self) -> float:
        """Pause between two runs, falling back to the default when unset."""
        return self.interval_sec or DEFAULT_INTERVAL_SEC

    def payload(self, index: int) -> str:
        """Render the payload of the message with the given zero-based index.

        Templates without a ``%`` placeholder are sent verbatim.

        Args:
            index: Position of the message in the publish burst.

        Returns:
            Message payload.
        """
        template = self.payload_template
        if "%" not in template:
            return template
        return template % index
