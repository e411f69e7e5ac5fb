"""End-to-end tests for CertificateService against the local connector."""

from __future__ import annotations

from datetime import timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from certenroll.ca.local import LocalCAConnector
from certenroll.config.settings import EnrollmentSettings, build_settings
from certenroll.errors import InvalidRenewalWindow, KeyMismatch
from certenroll.models.bundle import CertificateBundle
from certenroll.models.spec import CertificateSpec
from certenroll.repositories.state import MemoryStateStore
from certenroll.services.certificate import CertificateService


@pytest.fixture()
def connector(root_ca) -> LocalCAConnector:
    settings = build_settings(
        {
            "connector": {
                "backend": "local",
                "local": {
                    "root_cert_path": str(root_ca["cert_path"]),
                    "root_key_path": str(root_ca["key_path"]),
                    "validity_days": 30,
                },
            },
        },
    )
    return LocalCAConnector(settings.connector)


@pytest.fixture()
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture()
def service(connector, store) -> CertificateService:
    return CertificateService(
        connector,
        store,
        EnrollmentSettings(settle_delay_seconds=0, retrieve_timeout_seconds=30),
    )


def _leaf(bundle: CertificateBundle) -> x509.Certificate:
    return x509.load_pem_x509_certificate(bundle.certificate.encode("ascii"))


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    def test_rsa_2048_example_com(self, service, store, root_ca):
        spec = CertificateSpec(common_name="example.com", algorithm="RSA", rsa_bits=2048)

        bundle = service.create(spec)

        leaf = _leaf(bundle)
        cn = leaf.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
        assert cn == "example.com"
        san = leaf.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        assert san.get_values_for_type(x509.DNSName) == ["example.com"]

        key = serialization.load_pem_private_key(
            bundle.private_key_pem.encode("ascii"),
            password=None,
        )
        assert isinstance(key, rsa.RSAPrivateKey)
        assert key.key_size == 2048
        assert key.public_key().public_numbers() == leaf.public_key().public_numbers()

        root_pem = root_ca["cert"].public_bytes(serialization.Encoding.PEM).decode("ascii")
        assert bundle.chain == root_pem
        assert store.get(bundle.tracking_id) == bundle

    def test_ecdsa_with_sans_and_passphrase(self, service):
        spec = CertificateSpec(
            common_name="example.com",
            algorithm="ECDSA",
            ecdsa_curve="P256",
            san_dns=("www.example.com",),
            san_ip=("192.0.2.1",),
            key_password="pw",
        )

        bundle = service.create(spec)

        san = _leaf(bundle).extensions.get_extension_for_class(x509.SubjectAlternativeName)
        assert san.value.get_values_for_type(x509.DNSName) == ["www.example.com", "example.com"]
        assert "ENCRYPTED" in bundle.private_key_pem


# ---------------------------------------------------------------------------
# read
# ---------------------------------------------------------------------------


@pytest.fixture()
def ec_spec() -> CertificateSpec:
    return CertificateSpec(
        common_name="example.com",
        algorithm="ECDSA",
        ecdsa_curve="P256",
        expiration_window=timedelta(days=7),
    )


class TestRead:
    def test_missing_record(self, service, ec_spec):
        assert service.read("nope", ec_spec) is None

    def test_fresh_certificate_kept(self, service, ec_spec):
        bundle = service.create(ec_spec)
        assert service.read(bundle.tracking_id, ec_spec) == bundle

    def test_due_certificate_renewed(self, service, store, ec_spec):
        bundle = service.create(ec_spec)
        not_after = _leaf(bundle).not_valid_after_utc

        renewed = service.read(bundle.tracking_id, ec_spec, now=not_after - timedelta(days=5))

        assert renewed is not None
        assert renewed.tracking_id != bundle.tracking_id
        assert renewed.certificate != bundle.certificate
        assert store.get(bundle.tracking_id) is None
        assert store.get(renewed.tracking_id) == renewed
        assert len(store) == 1

    def test_window_longer_than_validity(self, service, ec_spec):
        bundle = service.create(ec_spec)
        too_long = CertificateSpec(
            common_name="example.com",
            algorithm="ECDSA",
            ecdsa_curve="P256",
            expiration_window=timedelta(days=40),
        )
        with pytest.raises(InvalidRenewalWindow):
            service.read(bundle.tracking_id, too_long)

    def test_wrong_passphrase(self, service):
        spec = CertificateSpec(
            common_name="example.com",
            algorithm="ECDSA",
            ecdsa_curve="P256",
            key_password="right",
        )
        bundle = service.create(spec)
        other = CertificateSpec(
            common_name="example.com",
            algorithm="ECDSA",
            ecdsa_curve="P256",
            key_password="wrong",
        )
        with pytest.raises(KeyMismatch):
            service.read(bundle.tracking_id, other)


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    def test_delete_clears_record(self, service, store, ec_spec):
        bundle = service.create(ec_spec)
        service.delete(bundle.tracking_id)
        assert store.get(bundle.tracking_id) is None

    def test_delete_unknown_is_noop(self, service, store):
        service.delete("unknown")
        assert len(store) == 0
