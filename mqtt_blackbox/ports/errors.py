"""Error taxonomy shared by the core and its adapters."""

__all__ = [
    "ProbeError",
    "ConfigError",
    "ConnectError",
    "SubscribeError",
    "PublishTimeout",
    "ReceiveTimeout",
    "SETUP_ERRORS",
]


class ProbeError(Exception):
    """Base class for every error raised while running a probe."""


class ConfigError(ProbeError):
    """Transport security material is invalid or unreadable."""


class ConnectError(ProbeError):
    """A client could not connect to the broker in time."""


class SubscribeError(ProbeError):
    """The subscription was rejected or not acknowledged in time."""


class PublishTimeout(ProbeError):
    """A single message was not acknowledged in time. Never fatal to a run."""


class ReceiveTimeout(ProbeError):
    """The receive loop ran out of time before all messages arrived."""

    def __init__(self, received: int, expected: int) -> None:
        super().__init__(f"received {received} of {expected} messages")
        self.received = received
        self.expected = expected


# Errors that abort a run before anything is published
SETUP_ERRORS = (ConfigError, ConnectError, SubscribeError)
