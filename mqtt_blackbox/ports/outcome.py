"""Run outcome port definition (DTO)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from mqtt_blackbox.ports.errors import ProbeError

__all__ = ["RunState", "RunOutcome"]


class RunState(Enum):
    """States of one round-trip run."""

    IDLE = "idle"
    CONNECTING_PUBLISHER = "connecting_publisher"
    CONNECTING_SUBSCRIBER = "connecting_subscriber"
    SUBSCRIBING = "subscribing"
    PUBLISHING = "publishing"
    RECEIVING = "receiving"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.TIMED_OUT, RunState.ABORTED)


@dataclass(slots=True)
class RunOutcome:
    """Result of a single round-trip run.

    Mutated only by the engine while the run is in progress.

    Attributes:
        probe_name: Name of the probe that produced this outcome.
        broker: Broker URL of the probe.
        published: Messages whose publish was acknowledged.
        publish_timeouts: Messages whose acknowledgment timed out.
        received: Messages observed by the subscriber.
        timed_out: True if the receive loop hit the execution deadline.
        elapsed_sec: Total run duration, connection release included.
        state: Current (finally terminal) state of the run.
        error: Setup error that aborted the run, if any.
    """

    probe_name: str
    broker: str
    published: int = 0
    publish_timeouts: int = 0
    received: int = 0
    timed_out: bool = False
    elapsed_sec: float = 0.0
    state: RunState = RunState.IDLE
    error: ProbeError | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.COMPLETED

    def __str__(self) -> str:
        return (
            f"state={self.state.value} | "
            f"published={self.published} | "
            f"publish_timeouts={self.publish_timeouts} | "
            f"received={self.received} | "
            f"elapsed={self.elapsed_sec * 1_000.0:.0f} ms"
        )
