"""Probe scheduler that runs every configured probe on its own interval."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from mqtt_blackbox.ports.outcome import RunOutcome
from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = ["start_probe_loop", "start_scheduler"]

logger = logging.getLogger(__name__)

RunFn = Callable[[ProbeSpec], Awaitable[RunOutcome]]


async def start_probe_loop(
    spec: ProbeSpec,
    stop_fn: Callable[[], bool],
    run_fn: RunFn,
) -> None:
    """Run one probe repeatedly.

    Periodically:
    1. Run the probe once and wait for its outcome.
    2. Log the outcome.
    3. Sleep for the probe interval (60 s when unset).
    4. Repeat until stop_fn() returns True.

    Args:
        spec: Probe to run.
        stop_fn: Callable that returns True when loop should exit.
        run_fn: Async function performing one run of the probe.

    Notes:
        - A failed run (aborted, timed out or raising) never ends the loop;
          the next run is attempted unconditionally after the interval.
    """
    delay = spec.sleep_interval_sec

    while not stop_fn():
        try:
            outcome = await run_fn(spec)
        except asyncio.CancelledError:
            logger.info(f"Probe {spec.name}: shutdown requested (task cancelled).")
            raise
        except Exception as e:  # noqa: BLE001
            logger.error(f"Probe {spec.name}: unexpected error in run: {e}", exc_info=True)
        else:
            logger.info(f"Probe {spec.name}: {outcome}")

        await asyncio.sleep(delay)


async def start_scheduler(
    probes: Sequence[ProbeSpec],
    stop_fn: Callable[[], bool],
    run_fn: RunFn,
) -> None:
    """Start one independent task per probe and wait for all of them.

    Args:
        probes: Probes to schedule.
        stop_fn: Callable that returns True when loops should exit.
        run_fn: Async function performing one run of a probe.

    Notes:
        - Probes share nothing but the metrics sink behind run_fn.
        - On cancellation (process shutdown), all probe tasks are cancelled
          and awaited to ensure a clean exit.
    """
    loop = asyncio.get_running_loop()
    tasks: list[asyncio.Task[None]] = [
        loop.create_task(start_probe_loop(spec, stop_fn, run_fn), name=f"probe-{spec.name}")
        for spec in probes
    ]
    logger.info(f"Scheduled {len(tasks)} probe(s)")

    try:
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
