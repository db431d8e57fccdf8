"""Time budgeting for a single probe run."""

import asyncio

__all__ = ["MIN_WINDOW_SEC", "compute_windows", "get_now_time", "time_left"]

MIN_WINDOW_SEC = 10.0


def get_now_time() -> float:
    """Get current monotonic time in seconds.

    Uses event loop's monotonic clock so that deadlines are immune to
    wall-clock drift.

    Returns:
        Current time in seconds (monotonic).
    """
    return asyncio.get_running_loop().time()


def time_left(deadline: float) -> float:
    """Seconds remaining until the given monotonic deadline (never negative)."""
    return max(0.0, deadline - get_now_time())


def compute_windows(
    interval_sec: float | None,
    min_window_sec: float = MIN_WINDOW_SEC,
) -> tuple[float, float]:
    """Split a probe interval into setup and execution windows.

    Each window is one third of the interval, floored at ``min_window_sec``
    so that brokers with a slow handshake are not starved by a short
    interval.

    Args:
        interval_sec: Configured probe interval; None or 0 when unset.
        min_window_sec: Lower bound of each window.

    Returns:
        Tuple of (setup window, execution window) in seconds.
    """
    third = (interval_sec or 0.0) / 3
    setup_window = max(third, min_window_sec)
    execution_window = max(third, min_window_sec)
    return setup_window, execution_window
