"""Tests for main application entrypoint."""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from mqtt_blackbox.main import main
from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = []


def make_settings() -> Mock:
    settings = Mock()
    settings.listen_address = ":9214"
    settings.debug = False
    settings.trace = False
    settings.probe_specs.return_value = [
        ProbeSpec(name="local", broker="tcp://localhost:1883", topic="probe/test")
    ]
    return settings


def make_server_class() -> Mock:
    server_class = Mock()
    server_class.return_value.start = AsyncMock()
    server_class.return_value.stop = AsyncMock()
    return server_class


@pytest.mark.asyncio
async def test_main_starts_and_runs_successfully() -> None:
    """Main should serve metrics, run the scheduler and stop the server."""
    server_class = make_server_class()

    with (
        patch("mqtt_blackbox.main.configure_logs"),
        patch("mqtt_blackbox.main.load_settings", return_value=make_settings()),
        patch("mqtt_blackbox.main.MetricsServer", server_class),
        patch("mqtt_blackbox.main.make_stop_event", return_value=asyncio.Event()),
        patch("mqtt_blackbox.main.start_scheduler", new_callable=AsyncMock) as mock_scheduler,
    ):
        await main()

    server_class.assert_called_once()
    assert server_class.call_args.kwargs["port"] == 9214
    server_class.return_value.start.assert_awaited_once()
    server_class.return_value.stop.assert_awaited_once()
    mock_scheduler.assert_awaited_once()
    assert [spec.name for spec in mock_scheduler.call_args.kwargs["probes"]] == ["local"]


@pytest.mark.asyncio
async def test_main_disables_created_series() -> None:
    """Counters should be exported without *_created companion series."""
    with (
        patch("mqtt_blackbox.main.configure_logs"),
        patch("mqtt_blackbox.main.load_settings", return_value=make_settings()),
        patch("mqtt_blackbox.main.MetricsServer", make_server_class()),
        patch("mqtt_blackbox.main.make_stop_event", return_value=asyncio.Event()),
        patch("mqtt_blackbox.main.start_scheduler", new_callable=AsyncMock),
        patch("mqtt_blackbox.main.disable_created_metrics") as mock_disable,
    ):
        await main()

    mock_disable.assert_called_once_with()


@pytest.mark.asyncio
async def test_main_aborts_on_configuration_error() -> None:
    """Main should not start anything if configuration is invalid."""
    server_class = make_server_class()

    with (
        patch("mqtt_blackbox.main.configure_logs"),
        patch("mqtt_blackbox.main.load_settings", side_effect=ValueError("Config file not found")),
        patch("mqtt_blackbox.main.MetricsServer", server_class),
        patch("mqtt_blackbox.main.start_scheduler", new_callable=AsyncMock) as mock_scheduler,
    ):
        await main()

    server_class.assert_not_called()
    mock_scheduler.assert_not_called()


@pytest.mark.asyncio
async def test_main_aborts_when_metrics_endpoint_unavailable() -> None:
    """Probes should not run when the metrics endpoint cannot be bound."""
    server_class = make_server_class()
    server_class.return_value.start.side_effect = OSError("Address already in use")

    with (
        patch("mqtt_blackbox.main.configure_logs"),
        patch("mqtt_blackbox.main.load_settings", return_value=make_settings()),
        patch("mqtt_blackbox.main.MetricsServer", server_class),
        patch("mqtt_blackbox.main.start_scheduler", new_callable=AsyncMock) as mock_scheduler,
    ):
        await main()

    mock_scheduler.assert_not_called()


@pytest.mark.asyncio
async def test_main_stops_scheduler_on_signal() -> None:
    """A set stop event should cancel the running scheduler."""
    server_class = make_server_class()
    stop = asyncio.Event()
    stop.set()
    cancelled = False

    async def run_forever(**kwargs) -> None:
        nonlocal cancelled
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled = True
            raise

    with (
        patch("mqtt_blackbox.main.configure_logs"),
        patch("mqtt_blackbox.main.load_settings", return_value=make_settings()),
        patch("mqtt_blackbox.main.MetricsServer", server_class),
        patch("mqtt_blackbox.main.make_stop_event", return_value=stop),
        patch("mqtt_blackbox.main.start_scheduler", side_effect=run_forever),
    ):
        await asyncio.wait_for(main(), timeout=5)

    assert cancelled is True
    server_class.return_value.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_main_logs_scheduler_exception() -> None:
    """Main should log scheduler failures instead of raising them."""
    server_class = make_server_class()

    with (
        patch("mqtt_blackbox.main.configure_logs"),
        patch("mqtt_blackbox.main.load_settings", return_value=make_settings()),
        patch("mqtt_blackbox.main.MetricsServer", server_class),
        patch("mqtt_blackbox.main.make_stop_event", return_value=asyncio.Event()),
        patch("mqtt_blackbox.main.start_scheduler", new_callable=AsyncMock) as mock_scheduler,
        patch("mqtt_blackbox.main.logger") as mock_logger,
    ):
        mock_scheduler.side_effect = RuntimeError("Test error in scheduler")

        try:
            await main()
        except RuntimeError:
            pytest.fail("main() should not raise; exceptions are caught internally")

    mock_logger.error.assert_called()
    server_class.return_value.stop.assert_awaited_once()
