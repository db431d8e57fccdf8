"""Configuration loading from environment variables and the YAML probe file."""

import logging
import os
import re
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from mqtt_blackbox.adapters.driven.mqtt.endpoint import parse_broker_url
from mqtt_blackbox.ports.probe import DEFAULT_CLIENT_PREFIX, ProbeSpec

__all__ = ["ProbeConfig", "Settings", "load_settings", "parse_duration", "parse_listen_address"]

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"
DEFAULT_LISTEN_ADDRESS = ":9214"

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_TRUE_VALUES = {"1", "true", "yes", "on"}


def parse_duration(value: str | int | float) -> float:
    """Convert a duration to seconds.

    Accepts plain numbers (seconds) and duration strings made of
    number/unit pairs, e.g. ``30s``, ``1m30s``, ``500ms`` or ``1h``.

    Args:
        value: Duration to convert.

    Returns:
        Duration in seconds.

    Raises:
        ValueError: If the string is not a valid duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int | float):
        return float(value)

    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if not text or position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


def parse_listen_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` listen address; an empty host binds all interfaces.

    Raises:
        ValueError: If the port is missing or not a number.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address: {address!r} (expected host:port)")
    return host.strip("[]") or "0.0.0.0", int(port)  # noqa: S104


class ProbeConfig(BaseModel):
    """One entry of the ``probes`` list in the YAML configuration.

    Attributes:
        name: Probe name (metric label).
        broker_url: Broker URL, e.g. ``tcp://localhost:1883``.
        topic: Publish topic.
        subscribe_topic: Subscribe topic; defaults to ``topic``.
        client_prefix: Client identifier prefix.
        username: Broker username.
        password: Broker password.
        client_cert: Client certificate PEM file.
        client_key: Client key PEM file.
        ca_chain: PEM bundle of trusted certificates.
        insecure_skip_verify: Skip broker certificate verification.
        messages: Messages per run.
        interval: Seconds between runs (duration strings accepted).
        message_payload: printf-style payload template.
        qos: MQTT quality of service.
    """

    name: str = Field(..., min_length=1)
    broker_url: str
    topic: str = Field(..., min_length=1)
    subscribe_topic: str | None = None
    client_prefix: str = DEFAULT_CLIENT_PREFIX
    username: str = ""
    password: str = ""
    client_cert: str | None = None
    client_key: str | None = None
    ca_chain: str | None = None
    insecure_skip_verify: bool = False
    messages: int = Field(default=10, ge=1)
    interval: float | None = Field(default=None, ge=0)
    message_payload: str | None = None
    qos: int = Field(default=0, ge=0, le=2)

    @field_validator("broker_url")
    @classmethod
    def validate_broker_url(cls, v: str) -> str:
        """Validate that the broker URL has a supported scheme and a host.

        Raises:
            ValueError: If the URL cannot be used to reach a broker.
        """
        parse_broker_url(v)
        return v

    @field_validator("interval", mode="before")
    @classmethod
    def validate_interval(cls, v: Any) -> float | None:
        if v is None or v == "":
            return None
        return parse_duration(v)

    @field_validator("message_payload")
    @classmethod
    def validate_message_payload(cls, v: str | None) -> str | None:
        """Validate that the template accepts one integer argument.

        Raises:
            ValueError: If the template cannot be rendered.
        """
        if v is None or "%" not in v:
            return v
        try:
            v % 0
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid message_payload template: {e}") from e
        return v

    @model_validator(mode="after")
    def validate_client_identity(self) -> "ProbeConfig":
        if bool(self.client_cert) != bool(self.client_key):
            raise ValueError("client_cert and client_key must be set together")
        return self

    def to_spec(self) -> ProbeSpec:
        """Convert to the core probe specification."""
        return ProbeSpec(
            name=self.name,
            broker=self.broker_url,
            topic=self.topic,
            subscribe_topic=self.subscribe_topic or None,
            client_prefix=self.client_prefix,
            username=self.username,
            password=self.password,
            ca_chain=self.ca_chain or None,
            client_cert=self.client_cert or None,
            client_key=self.client_key or None,
            insecure_skip_verify=self.insecure_skip_verify,
            messages=self.messages,
            interval_sec=self.interval,
            message_payload=self.message_payload or None,
            qos=self.qos,
        )


class Settings(BaseModel):
    """Runtime configuration of the exporter.

    Attributes:
        config_file: Path of the YAML probe configuration.
        listen_address: ``host:port`` of the metrics endpoint.
        debug: Enable debug logging of the exporter.
        trace: Enable paho-mqtt protocol tracing.
        probes: Configured probes.
    """

    config_file: str = DEFAULT_CONFIG_FILE
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    debug: bool = False
    trace: bool = False
    probes: list[ProbeConfig] = Field(..., min_length=1)

    @field_validator("listen_address")
    @classmethod
    def validate_listen_address(cls, v: str) -> str:
        parse_listen_address(v)
        return v

    @field_validator("probes")
    @classmethod
    def validate_unique_names(cls, v: list[ProbeConfig]) -> list[ProbeConfig]:
        """Reject duplicated probe names, they would share metric series.

        Raises:
            ValueError: If two probes have the same name.
        """
        seen: set[str] = set()
        for probe in v:
            if probe.name in seen:
                raise ValueError(f"Duplicate probe name: {probe.name}")
            seen.add(probe.name)
        return v

    def probe_specs(self) -> list[ProbeSpec]:
        return [probe.to_spec() for probe in self.probes]


def read_config_file(path: str) -> dict[str, Any]:
    """Read and parse the YAML probe configuration.

    Raises:
        ValueError: If file not found, invalid YAML or not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ValueError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Config file contains invalid YAML: {path}: {e}") from e

    if data is None:
        raise ValueError(f"Config file is empty: {path}")
    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping with a 'probes' list")
    return data


def load_settings() -> Settings:
    """Load and validate settings from environment and the config file.

    Optional environment variables:
    - CONFIG_FILE: YAML probe configuration (default: config.yaml).
    - LISTEN_ADDRESS: Metrics endpoint address (default: :9214).
    - DEBUG_ENABLE: Enable debug logging.
    - TRACE_ENABLE: Enable MQTT protocol tracing.

    Returns:
        Validated Settings object.

    Raises:
        ValueError: If configuration is invalid.
    """
    config_file = os.getenv("CONFIG_FILE", DEFAULT_CONFIG_FILE)
    listen_address = os.getenv("LISTEN_ADDRESS", DEFAULT_LISTEN_ADDRESS)
    debug = os.getenv("DEBUG_ENABLE", "").strip().lower() in _TRUE_VALUES
    trace = os.getenv("TRACE_ENABLE", "").strip().lower() in _TRUE_VALUES

    data = read_config_file(config_file)

    settings = Settings(
        config_file=config_file,
        listen_address=listen_address,
        debug=debug,
        trace=trace,
        probes=data.get("probes") or [],
    )

    logger.info(
        f"Exporter configured: config={settings.config_file}, "
        f"listen={settings.listen_address}, "
        f"probes={', '.join(p.name for p in settings.probes)}"
    )

    return settings
