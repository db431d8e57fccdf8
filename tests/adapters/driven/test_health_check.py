"""Tests for health check validator."""
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from mqtt_blackbox.adapters.driven.config.health_check import main

__all__ = []

FIXTURES = Path(__file__).resolve().parents[2] / "fixtures"


@pytest.fixture
def write_probes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Write a probes config and point CONFIG_FILE at it."""
    path = tmp_path / "config.yaml"
    monkeypatch.setenv("CONFIG_FILE", str(path))
    monkeypatch.delenv("LISTEN_ADDRESS", raising=False)

    def write(*probes: dict) -> None:
        path.write_text(yaml.safe_dump({"probes": list(probes)}))

    return write


def make_probe(name: str = "local", **overrides) -> dict:
    probe = {"name": name, "broker_url": "ssl://localhost:8883", "topic": "probe/test"}
    probe.update(overrides)
    return probe


@pytest.fixture(autouse=True)
def quiet_logs():
    with patch("mqtt_blackbox.adapters.driven.config.health_check.configure_logs"):
        yield


def test_health_check_success(write_probes) -> None:
    """Health check should return 0 when configuration and TLS material load."""
    write_probes(
        make_probe(
            ca_chain=str(FIXTURES / "ca.pem"),
            client_cert=str(FIXTURES / "client.pem"),
            client_key=str(FIXTURES / "client.key"),
        ),
        make_probe("plain", broker_url="tcp://localhost:1883"),
    )

    assert main() == 0


def test_health_check_failure_on_config_error() -> None:
    """Health check should return 1 when configuration fails to load."""
    with patch("mqtt_blackbox.adapters.driven.config.health_check.load_settings") as mock_load:
        mock_load.side_effect = ValueError("Config file not found: config.yaml")
        result = main()

    assert result == 1


def test_health_check_failure_on_unreadable_ca_chain(write_probes, caplog) -> None:
    """A probe whose CA chain cannot be read should fail the health check."""
    write_probes(make_probe(), make_probe("broken", ca_chain=str(FIXTURES / "missing.pem")))

    assert main() == 1
    assert "probe broken: trust chain unreadable" in caplog.text


def test_health_check_failure_on_mismatched_key(write_probes) -> None:
    """A key not matching the client certificate should fail the health check."""
    write_probes(
        make_probe(
            client_cert=str(FIXTURES / "client.pem"),
            client_key=str(FIXTURES / "other.key"),
        )
    )

    assert main() == 1
