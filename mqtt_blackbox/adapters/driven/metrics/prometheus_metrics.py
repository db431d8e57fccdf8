"""Prometheus metrics for probe runs."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram

from mqtt_blackbox.ports.metrics import MetricsPort
from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = ["PrometheusMetrics"]

LABELS = ("name", "broker")


class PrometheusMetrics(MetricsPort):
    """Probe counters and duration histogram labelled by (name, broker).

    prometheus_client metrics are thread-safe, so one instance is shared by
    every probe task.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Create and register all metrics.

        Args:
            registry: Registry to register into; a private one by default.
        """
        self.registry = registry or CollectorRegistry()

        self.messages_published = Counter(
            "probe_mqtt_messages_published",
            "Number of published messages.",
            LABELS,
            registry=self.registry,
        )
        self.messages_publish_timeout = Counter(
            "probe_mqtt_messages_publish_timeout",
            "Number of messages whose publish acknowledgment timed out.",
            LABELS,
            registry=self.registry,
        )
        self.messages_received = Counter(
            "probe_mqtt_messages_received",
            "Number of received messages.",
            LABELS,
            registry=self.registry,
        )
        self.timedout_tests = Counter(
            "probe_mqtt_timeouts",
            "Number of timed out tests.",
            LABELS,
            registry=self.registry,
        )
        self.probe_started_total = Counter(
            "probe_mqtt_started",
            "Number of started probes.",
            LABELS,
            registry=self.registry,
        )
        self.probe_completed_total = Counter(
            "probe_mqtt_completed",
            "Number of completed probes.",
            LABELS,
            registry=self.registry,
        )
        self.errors = Counter(
            "probe_mqtt_errors",
            "Number of errors occurred during test execution.",
            LABELS,
            registry=self.registry,
        )
        self.probe_duration = Histogram(
            "probe_mqtt_duration_seconds",
            "Time taken to execute probe.",
            LABELS,
            registry=self.registry,
        )

    @staticmethod
    def _labels(spec: ProbeSpec) -> tuple[str, str]:
        return spec.name, spec.broker

    def register(self, spec: ProbeSpec) -> None:
        """Expose every optional series with 0 before the first event."""
        labels = self._labels(spec)
        for counter in (
            self.messages_published,
            self.messages_publish_timeout,
            self.messages_received,
            self.timedout_tests,
            self.errors,
        ):
            counter.labels(*labels).inc(0)

    def probe_started(self, spec: ProbeSpec) -> None:
        self.probe_started_total.labels(*self._labels(spec)).inc()

    def probe_completed(self, spec: ProbeSpec, elapsed_sec: float) -> None:
        labels = self._labels(spec)
        self.probe_completed_total.labels(*labels).inc()
        self.probe_duration.labels(*labels).observe(elapsed_sec)

    def message_published(self, spec: ProbeSpec) -> None:
        self.messages_published.labels(*self._labels(spec)).inc()

    def publish_timed_out(self, spec: ProbeSpec) -> None:
        self.messages_publish_timeout.labels(*self._labels(spec)).inc()

    def message_received(self, spec: ProbeSpec) -> None:
        self.messages_received.labels(*self._labels(spec)).inc()

    def run_timed_out(self, spec: ProbeSpec) -> None:
        self.timedout_tests.labels(*self._labels(spec)).inc()

    def error(self, spec: ProbeSpec) -> None:
        self.errors.labels(*self._labels(spec)).inc()
