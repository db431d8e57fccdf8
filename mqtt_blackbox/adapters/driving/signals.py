"""Signal handling for graceful shutdown."""

import asyncio
import logging
import signal

__all__ = ["make_stop_event"]

logger = logging.getLogger(__name__)


def make_stop_event() -> asyncio.Event:
    """Create an event set on SIGTERM or SIGINT.

    The main coroutine awaits the event; probe loops poll ``event.is_set``
    between runs. In-progress runs are not interrupted by the event itself,
    they are cancelled when the scheduler task is.

    On Docker/Kubernetes, SIGTERM is sent 30s before SIGKILL,
    allowing graceful shutdown.

    Returns:
        Event set once a termination signal has been received.
    """
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info(f"{sig.name} received, initiating graceful shutdown...")
        stop.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    return stop
