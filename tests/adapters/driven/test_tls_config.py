"""Tests for transport security configuration."""

import ssl
from pathlib import Path

import pytest

from mqtt_blackbox.adapters.driven.tls.tls_config import build_tls_context
from mqtt_blackbox.ports.errors import ConfigError
from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = []

FIXTURES = Path(__file__).resolve().parents[2] / "fixtures"


def make_spec(**overrides) -> ProbeSpec:
    values = {"name": "secure", "broker": "ssl://localhost:8883", "topic": "probe/test"}
    values.update(overrides)
    return ProbeSpec(**values)


def test_default_context_without_material() -> None:
    """No TLS material should still give a verifying default context."""
    context = build_tls_context(make_spec())

    assert isinstance(context, ssl.SSLContext)
    assert context.verify_mode == ssl.CERT_REQUIRED
    assert context.check_hostname is True


def test_ca_chain_is_loaded_as_trust_roots() -> None:
    """CA chain certificates should be the trusted roots."""
    context = build_tls_context(make_spec(ca_chain=str(FIXTURES / "ca.pem")))

    ca_certs = context.get_ca_certs()
    assert len(ca_certs) == 1
    assert ("commonName", "mqtt-blackbox test CA") in ca_certs[0]["subject"][0]


def test_missing_ca_chain_is_config_error() -> None:
    """Unreadable CA chain should raise ConfigError."""
    with pytest.raises(ConfigError, match="trust chain unreadable"):
        build_tls_context(make_spec(ca_chain=str(FIXTURES / "missing.pem")))


def test_invalid_ca_chain_is_config_error() -> None:
    """CA chain without certificates should raise ConfigError."""
    with pytest.raises(ConfigError, match="trust chain unreadable"):
        build_tls_context(make_spec(ca_chain=str(FIXTURES / "garbage.pem")))


def test_insecure_skip_verify_disables_verification() -> None:
    """Skip verification should accept any broker certificate."""
    context = build_tls_context(make_spec(insecure_skip_verify=True))

    assert context.check_hostname is False
    assert context.verify_mode == ssl.CERT_NONE


@pytest.mark.parametrize(
    "overrides",
    [
        {"client_cert": str(FIXTURES / "client.pem")},
        {"client_key": str(FIXTURES / "client.key")},
    ],
)
def test_incomplete_client_identity_is_config_error(overrides) -> None:
    """Exactly one of certificate and key should be rejected."""
    with pytest.raises(ConfigError, match="incomplete client identity material"):
        build_tls_context(make_spec(**overrides))


def test_incomplete_client_identity_is_checked_before_reading_files() -> None:
    """Pairing should be rejected even when the given file does not exist."""
    with pytest.raises(ConfigError, match="incomplete client identity material"):
        build_tls_context(make_spec(client_cert="/nonexistent/client.pem"))


def test_client_identity_is_loaded() -> None:
    """Matching certificate and key should load without error."""
    context = build_tls_context(
        make_spec(
            ca_chain=str(FIXTURES / "ca.pem"),
            client_cert=str(FIXTURES / "client.pem"),
            client_key=str(FIXTURES / "client.key"),
        )
    )

    assert isinstance(context, ssl.SSLContext)


def test_mismatched_client_identity_is_config_error() -> None:
    """A key not belonging to the certificate should raise ConfigError."""
    with pytest.raises(ConfigError, match="client certificate and key"):
        build_tls_context(
            make_spec(
                client_cert=str(FIXTURES / "client.pem"),
                client_key=str(FIXTURES / "other.key"),
            )
        )


def test_builder_is_deterministic() -> None:
    """Same spec should produce equivalent contexts."""
    spec = make_spec(ca_chain=str(FIXTURES / "ca.pem"))

    first = build_tls_context(spec)
    second = build_tls_context(spec)

    assert first.get_ca_certs() == second.get_ca_certs()
    assert first.verify_mode == second.verify_mode
