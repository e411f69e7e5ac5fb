"""Root conftest for the certenroll test suite."""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from cryptography import x509  # noqa: E402
from cryptography.hazmat.primitives import hashes, serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import ec  # noqa: E402
from cryptography.x509.oid import NameOID  # noqa: E402


# ---------------------------------------------------------------------------
# Crypto material
# ---------------------------------------------------------------------------


def _self_signed(key, cn: str, not_before: datetime, not_after: datetime, *, ca: bool):
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )


@pytest.fixture()
def make_cert():
    """Return a factory ``(key, not_before, not_after, cn=...) -> PEM str``."""

    def _make(key, not_before: datetime, not_after: datetime, cn: str = "example.com") -> str:
        cert = _self_signed(key, cn, not_before, not_after, ca=False)
        return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")

    return _make


@pytest.fixture()
def ec_key():
    """A throwaway P-256 key (fast to generate)."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture()
def root_ca(tmp_path: Path) -> dict:
    """Write a root CA certificate and key to *tmp_path*.

    Returns a dict with ``cert_path``, ``key_path``, ``cert`` and ``key``.
    """
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(UTC)
    cert = _self_signed(
        key,
        "certenroll Test Root",
        now - timedelta(days=1),
        now + timedelta(days=3650),
        ca=True,
    )
    cert_path = tmp_path / "root.pem"
    key_path = tmp_path / "root.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ),
    )
    key_path.chmod(0o600)
    return {"cert_path": cert_path, "key_path": key_path, "cert": cert, "key": key}


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data(root_ca: dict, tmp_path: Path) -> dict:
    """Return a dict containing a complete local-connector configuration."""
    return {
        "connector": {
            "backend": "local",
            "local": {
                "root_cert_path": str(root_ca["cert_path"]),
                "root_key_path": str(root_ca["key_path"]),
            },
        },
        "enrollment": {"settle_delay_seconds": 0, "retrieve_timeout_seconds": 30},
        "state": {"path": str(tmp_path / "state.json")},
        "certificates": {
            "web": {
                "common_name": "example.com",
                "algorithm": "ECDSA",
                "ecdsa_curve": "P256",
                "san_dns": ["www.example.com"],
            },
        },
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Config singleton cleanup -- autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the CertEnrollConfig singleton before and after every test."""
    from certenroll.config.certenroll_config import CertEnrollConfig

    CertEnrollConfig.reset()
    yield
    CertEnrollConfig.reset()


@pytest.fixture(autouse=True)
def restore_certenroll_logger():
    """Undo ``configure_logging`` so caplog sees records in later tests."""
    yield
    logger = logging.getLogger("certenroll")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
