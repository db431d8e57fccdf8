"""Metrics port definition (interface)."""

from __future__ import annotations

from typing import Protocol

from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = ["MetricsPort"]


class MetricsPort(Protocol):
    """Interface for recording probe metrics.

    Every call is scoped to the (probe name, broker) label pair of the spec.
    Implementations must tolerate concurrent calls from many probe tasks
    without locking on the caller side.
    """

    def register(self, spec: ProbeSpec, /) -> None:
        """Initialize the optional series of a probe with zero values."""
        ...

    def probe_started(self, spec: ProbeSpec, /) -> None: ...

    def probe_completed(self, spec: ProbeSpec, elapsed_sec: float, /) -> None:
        """Count a finished run and observe its total duration.

        Args:
            spec: Probe the run belongs to.
            elapsed_sec: Total run duration in seconds.
        """
        ...

    def message_published(self, spec: ProbeSpec, /) -> None: ...

    def publish_timed_out(self, spec: ProbeSpec, /) -> None: ...

    def message_received(self, spec: ProbeSpec, /) -> None: ...

    def run_timed_out(self, spec: ProbeSpec, /) -> None: ...

    def error(self, spec: ProbeSpec, /) -> None: ...
