"""Round-trip engine: one publish/subscribe probe run against a broker."""

import asyncio
import logging

from mqtt_blackbox.core.deadlines import MIN_WINDOW_SEC, compute_windows, get_now_time, time_left
from mqtt_blackbox.core.identifiers import ClientIdSource
from mqtt_blackbox.ports.broker import BrokerConnection, ConnectFn, TlsFn
from mqtt_blackbox.ports.errors import SETUP_ERRORS, ProbeError, PublishTimeout, ReceiveTimeout
from mqtt_blackbox.ports.metrics import MetricsPort
from mqtt_blackbox.ports.outcome import RunOutcome, RunState
from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = ["run_round_trip"]

logger = logging.getLogger(__name__)

_PHASE_LABELS = {
    RunState.IDLE: "setup TLS",
    RunState.CONNECTING_PUBLISHER: "connect publish client",
    RunState.CONNECTING_SUBSCRIBER: "connect subscribe client",
    RunState.SUBSCRIBING: "subscribe to topic",
}


async def run_round_trip(
    spec: ProbeSpec,
    *,
    metrics: MetricsPort,
    connect_fn: ConnectFn,
    tls_fn: TlsFn,
    id_source: ClientIdSource,
    min_window_sec: float = MIN_WINDOW_SEC,
) -> RunOutcome:
    """Run one probe: connect, subscribe, publish N messages, receive them.

    Steps:
    1. Derive the TLS context, connect publisher and subscriber, subscribe.
       All three share the setup deadline; any failure aborts the run.
    2. Publish N messages. Each acknowledgment waits at most until the
       execution deadline; a missing one is counted and the burst goes on.
    3. Count arrivals until N were seen or the execution deadline passes.
    4. Release the subscription and both connections.

    Args:
        spec: Probe to run.
        metrics: Sink receiving the counters of this run.
        connect_fn: Opens one broker connection.
        tls_fn: Derives the transport security configuration.
        id_source: Issues the per-run client identifiers.
        min_window_sec: Floor of the setup and execution windows.

    Returns:
        The outcome of the run, in a terminal state.

    Notes:
        - Both deadlines are fixed at run start, so slow connects shrink the
          publish burst and a slow burst shrinks the time left for receiving.
        - Arrivals are counted, not matched against published payloads.
    """
    setup_window, execution_window = compute_windows(spec.interval_sec, min_window_sec)
    t0 = get_now_time()
    setup_deadline = t0 + setup_window
    execution_deadline = t0 + execution_window
    outcome = RunOutcome(probe_name=spec.name, broker=spec.broker)

    # Initialize optional metrics so they are present from the first scrape
    metrics.register(spec)
    metrics.probe_started(spec)

    arrivals: asyncio.Queue[tuple[str, bytes]] = asyncio.Queue(maxsize=max(spec.messages, 1))

    def on_message(topic: str, payload: bytes) -> None:
        try:
            arrivals.put_nowait((topic, payload))
        except asyncio.QueueFull:
            logger.debug(f"Probe {spec.name}: dropped surplus message on {topic}")

    publisher_id, subscriber_id = id_source.client_ids(spec.client_prefix)
    publisher: BrokerConnection | None = None
    subscriber: BrokerConnection | None = None
    subscribed = False

    try:
        try:
            tls_context = tls_fn(spec)

            _enter(outcome, RunState.CONNECTING_PUBLISHER)
            publisher = await connect_fn(spec, tls_context, time_left(setup_deadline), publisher_id)

            _enter(outcome, RunState.CONNECTING_SUBSCRIBER)
            subscriber = await connect_fn(
                spec,
                tls_context,
                time_left(setup_deadline),
                subscriber_id,
                on_message=on_message,
            )

            _enter(outcome, RunState.SUBSCRIBING)
            await subscriber.subscribe(spec.subscription_topic, spec.qos, time_left(setup_deadline))
            subscribed = True
        except SETUP_ERRORS as e:
            _abort(spec, outcome, e, metrics)
            return outcome

        _enter(outcome, RunState.PUBLISHING)
        await _publish_burst(spec, publisher, execution_deadline, outcome, metrics)

        _enter(outcome, RunState.RECEIVING)
        try:
            await _receive(spec, arrivals, execution_deadline, outcome, metrics)
        except ReceiveTimeout as e:
            outcome.timed_out = True
            _enter(outcome, RunState.TIMED_OUT)
            metrics.run_timed_out(spec)
            logger.warning(
                f"Probe {spec.name}: timed out after "
                f"{(get_now_time() - t0) * 1_000.0:.0f} ms ({e})"
            )
        else:
            _enter(outcome, RunState.COMPLETED)
    finally:
        await _release(spec, publisher, subscriber, subscribed)
        outcome.elapsed_sec = get_now_time() - t0
        metrics.probe_completed(spec, outcome.elapsed_sec)
        logger.debug(f"Probe {spec.name}: took {outcome.elapsed_sec * 1_000.0:.0f} ms")

    return outcome


def _enter(outcome: RunOutcome, state: RunState) -> None:
    logger.debug(f"Probe {outcome.probe_name}: {outcome.state.value} -> {state.value}")
    outcome.state = state


def _abort(spec: ProbeSpec, outcome: RunOutcome, error: ProbeError, metrics: MetricsPort) -> None:
    """Record a setup failure: error counter, error log, terminal state."""
    label = _PHASE_LABELS.get(outcome.state, outcome.state.value)
    outcome.error = error
    _enter(outcome, RunState.ABORTED)
    metrics.error(spec)
    logger.error(f"Probe {spec.name}: {label} -> {error}")


async def _publish_burst(
    spec: ProbeSpec,
    publisher: BrokerConnection,
    deadline: float,
    outcome: RunOutcome,
    metrics: MetricsPort,
) -> None:
    for index in range(spec.messages):
        try:
            await publisher.publish(spec.topic, spec.payload(index), spec.qos, time_left(deadline))
        except PublishTimeout as e:
            outcome.publish_timeouts += 1
            metrics.publish_timed_out(spec)
            logger.debug(f"Probe {spec.name}: message {index} -> {e}")
        else:
            outcome.published += 1
            metrics.message_published(spec)


async def _receive(
    spec: ProbeSpec,
    arrivals: asyncio.Queue[tuple[str, bytes]],
    deadline: float,
    outcome: RunOutcome,
    metrics: MetricsPort,
) -> None:
    """Consume arrivals until all messages were seen.

    Raises:
        ReceiveTimeout: If the deadline passes first.
    """
    while outcome.received < spec.messages:
        try:
            arrivals.get_nowait()
        except asyncio.QueueEmpty:
            try:
                await asyncio.wait_for(arrivals.get(), time_left(deadline))
            except asyncio.TimeoutError:
                raise ReceiveTimeout(outcome.received, spec.messages) from None
        outcome.received += 1
        metrics.message_received(spec)


async def _release(
    spec: ProbeSpec,
    publisher: BrokerConnection | None,
    subscriber: BrokerConnection | None,
    subscribed: bool,
) -> None:
    """Best-effort release; failures here never fail the run."""
    if subscriber is not None and subscribed:
        try:
            await subscriber.unsubscribe(spec.subscription_topic)
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Probe {spec.name}: unsubscribe failed: {e}")

    for connection in (subscriber, publisher):
        if connection is None:
            continue
        try:
            await connection.close()
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Probe {spec.name}: disconnect failed: {e}")
