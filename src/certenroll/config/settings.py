"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from certenroll.config import get_config

    enrollment = get_config().settings.enrollment
    print(enrollment.retrieve_timeout_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from certenroll.models.spec import CertificateSpec

# ---------------------------------------------------------------------------
# Connector
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExternalConnectorSettings:
    """HTTPS connector settings (endpoint, auth, TLS trust)."""

    base_url: str
    zone: str
    auth_header: str
    auth_value: str
    ca_cert_path: str | None
    client_cert_path: str | None
    client_key_path: str | None
    timeout_seconds: int
    poll_interval_seconds: float


@dataclass(frozen=True)
class LocalConnectorSettings:
    """Local signing connector settings (root cert, key, validity)."""

    root_cert_path: str
    root_key_path: str
    chain_path: str | None
    validity_days: int
    hash_algorithm: str
    key_usages: tuple[str, ...]
    extended_key_usages: tuple[str, ...]


@dataclass(frozen=True)
class ConnectorSettings:
    """CA connector selection and per-backend sections."""

    backend: str
    external: ExternalConnectorSettings
    local: LocalConnectorSettings


def _build_connector(data: dict | None) -> ConnectorSettings:
    d = data or {}
    ext_d = d.get("external") or {}
    local_d = d.get("local") or {}
    return ConnectorSettings(
        backend=d.get("backend", "external"),
        external=ExternalConnectorSettings(
            base_url=ext_d.get("base_url", "").rstrip("/"),
            zone=ext_d.get("zone", ""),
            auth_header=ext_d.get("auth_header", "Authorization"),
            auth_value=ext_d.get("auth_value", ""),
            ca_cert_path=ext_d.get("ca_cert_path"),
            client_cert_path=ext_d.get("client_cert_path"),
            client_key_path=ext_d.get("client_key_path"),
            timeout_seconds=ext_d.get("timeout_seconds", 30),
            poll_interval_seconds=float(ext_d.get("poll_interval_seconds", 2)),
        ),
        local=LocalConnectorSettings(
            root_cert_path=local_d.get("root_cert_path", ""),
            root_key_path=local_d.get("root_key_path", ""),
            chain_path=local_d.get("chain_path"),
            validity_days=local_d.get("validity_days", 90),
            hash_algorithm=local_d.get("hash_algorithm", "sha256"),
            key_usages=tuple(
                local_d.get("key_usages", ("digital_signature", "key_encipherment")),
            ),
            extended_key_usages=tuple(
                local_d.get("extended_key_usages", ("server_auth", "client_auth")),
            ),
        ),
    )


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnrollmentSettings:
    """Protocol timing (settle delay, retrieval timeout)."""

    settle_delay_seconds: float
    retrieve_timeout_seconds: float


def _build_enrollment(data: dict | None) -> EnrollmentSettings:
    d = data or {}
    return EnrollmentSettings(
        settle_delay_seconds=float(d.get("settle_delay_seconds", 2)),
        retrieve_timeout_seconds=float(d.get("retrieve_timeout_seconds", 180)),
    )


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StateSettings:
    """Location of the persisted certificate records."""

    path: str


def _build_state(data: dict | None) -> StateSettings:
    d = data or {}
    return StateSettings(path=d.get("path", "./certenroll-state.json"))


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format)."""

    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
    )


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


def _build_certificates(data: dict[str, Any] | None) -> dict[str, CertificateSpec]:
    return {name: CertificateSpec.from_dict(spec) for name, spec in (data or {}).items()}


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertEnrollSettings:
    connector: ConnectorSettings
    enrollment: EnrollmentSettings
    state: StateSettings
    logging: LoggingSettings
    certificates: dict[str, CertificateSpec]


def build_settings(data: dict) -> CertEnrollSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`CertEnrollConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return CertEnrollSettings(
        connector=_build_connector(data.get("connector")),
        enrollment=_build_enrollment(data.get("enrollment")),
        state=_build_state(data.get("state")),
        logging=_build_logging(data.get("logging")),
        certificates=_build_certificates(data.get("certificates")),
    )
