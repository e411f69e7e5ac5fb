"""Local CA connector -- sign certificates with a root key from disk.

Loads a PEM-encoded root certificate and private key (plus an optional
intermediate chain), signs each submitted CSR immediately and keeps the
result until it is retrieved.  There is no pending phase, so
:meth:`LocalCAConnector.retrieve` never waits.

Meant for development setups and end-to-end tests that exercise the
full submit / settle / retrieve protocol without a remote CA.
"""

from __future__ import annotations

import logging
import os
import re
import secrets
import stat
import threading
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization

from certenroll.ca.base import CAConnector
from certenroll.ca.cert_utils import build_eku, build_key_usage
from certenroll.errors import (
    CertEnrollError,
    ConnectorUnreachable,
    RetrievalError,
    SubmissionError,
)
from certenroll.models.bundle import RetrievedCertificate

_HASH_ALGORITHMS = {
    "sha256": hashes.SHA256(),
    "sha384": hashes.SHA384(),
    "sha512": hashes.SHA512(),
}

_PEM_CERT_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----.+?-----END CERTIFICATE-----\n?",
    re.DOTALL,
)

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )

    from certenroll.config.settings import ConnectorSettings
    from certenroll.models.request import SigningRequest

log = logging.getLogger(__name__)


class LocalCAConnector(CAConnector):
    """Sign CSRs using a local root CA certificate and key.

    The root material is loaded lazily on the first call that needs it,
    so the connector can be constructed while paths are still being
    provisioned.  Issued certificates are kept in memory, keyed by the
    tracking ID returned from :meth:`submit`.
    """

    def __init__(self, settings: ConnectorSettings) -> None:
        super().__init__(settings)
        self._local = settings.local
        self._root_cert: x509.Certificate | None = None
        self._root_key: CertificateIssuerPrivateKeyTypes | None = None
        self._chain: tuple[str, ...] = ()
        self._hash_algorithm = _HASH_ALGORITHMS.get(
            self._local.hash_algorithm,
            hashes.SHA256(),
        )
        self._issued: dict[str, RetrievedCertificate] = {}
        self._lock = threading.Lock()

    def startup_check(self) -> None:
        """Verify root cert and key are loadable."""
        self.ping()

    def ping(self) -> None:
        """Report the connector reachable once its root material loads."""
        try:
            self._ensure_loaded()
        except CertEnrollError as exc:
            raise ConnectorUnreachable(exc.detail) from exc

    # -- loading --------------------------------------------------------------

    def _ensure_loaded(self) -> None:
        """Lazily load root certificate, key, and optional chain."""
        with self._lock:
            if self._root_cert is not None:
                return

            root_cert = self._load_root_cert(self._local.root_cert_path)
            self._root_key = self._load_root_key(self._local.root_key_path)
            self._check_key_permissions(self._local.root_key_path)

            chain: list[str] = []
            if self._local.chain_path:
                chain.extend(self._load_chain(self._local.chain_path))
            chain.append(
                root_cert.public_bytes(serialization.Encoding.PEM).decode("ascii"),
            )
            self._chain = tuple(chain)
            self._root_cert = root_cert

        log.info(
            "Local CA connector loaded (cert=%s, key=%s, chain=%s)",
            self._local.root_cert_path,
            self._local.root_key_path,
            self._local.chain_path or "none",
        )

    @staticmethod
    def _load_root_cert(cert_path: str) -> x509.Certificate:
        if not cert_path:
            msg = "connector.local.root_cert_path is required for the local connector"
            raise CertEnrollError(msg)
        try:
            return x509.load_pem_x509_certificate(Path(cert_path).read_bytes())
        except FileNotFoundError:
            msg = f"Root certificate not found: {cert_path}"
            raise CertEnrollError(msg) from None
        except (OSError, ValueError) as exc:
            msg = f"Failed to load root certificate from {cert_path}: {exc}"
            raise CertEnrollError(msg) from exc

    @staticmethod
    def _load_root_key(key_path: str) -> CertificateIssuerPrivateKeyTypes:
        if not key_path:
            msg = "connector.local.root_key_path is required for the local connector"
            raise CertEnrollError(msg)
        try:
            key = serialization.load_pem_private_key(
                Path(key_path).read_bytes(),
                password=None,
            )
        except FileNotFoundError:
            msg = f"Root private key not found: {key_path}"
            raise CertEnrollError(msg) from None
        except (OSError, ValueError, TypeError) as exc:
            msg = f"Failed to load root private key from {key_path}: {exc}"
            raise CertEnrollError(msg) from exc
        return key  # type: ignore[return-value]

    @staticmethod
    def _check_key_permissions(key_path: str) -> None:
        """Warn if the root key file is readable by group or others."""
        try:
            mode = os.stat(key_path).st_mode
        except OSError:
            return
        if mode & (stat.S_IRGRP | stat.S_IROTH | stat.S_IWGRP | stat.S_IWOTH):
            log.warning(
                "Private key file '%s' has overly permissive "
                "permissions (mode=%o). Recommend chmod 600.",
                key_path,
                stat.S_IMODE(mode),
            )

    @staticmethod
    def _load_chain(chain_path: str) -> list[str]:
        """Return the PEM blocks of the intermediate chain file, in file order."""
        try:
            text = Path(chain_path).read_text(encoding="ascii")
        except FileNotFoundError:
            msg = f"Chain file not found: {chain_path}"
            raise CertEnrollError(msg) from None
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Failed to load chain from {chain_path}: {exc}"
            raise CertEnrollError(msg) from exc
        return [
            block if block.endswith("\n") else block + "\n"
            for block in _PEM_CERT_RE.findall(text)
        ]

    # -- protocol -------------------------------------------------------------

    def submit(self, request: SigningRequest) -> str:
        """Sign the CSR of *request* and return a fresh tracking ID."""
        try:
            self._ensure_loaded()
            csr = x509.load_pem_x509_csr(request.csr_pem.encode("ascii"))
            leaf = self._sign(csr)
        except CertEnrollError as exc:
            raise SubmissionError(exc.detail, retryable=False) from exc
        except ValueError as exc:
            msg = f"Local CA could not sign request: {exc}"
            raise SubmissionError(msg, retryable=False) from exc

        tracking_id = uuid.uuid4().hex
        pem = leaf.public_bytes(serialization.Encoding.PEM).decode("ascii")
        with self._lock:
            self._issued[tracking_id] = RetrievedCertificate(
                certificate=pem,
                chain=self._chain,
            )
        log.info(
            "Local CA signed certificate: serial=%x, subject=%s, tracking_id=%s",
            leaf.serial_number,
            leaf.subject.rfc4514_string(),
            tracking_id,
        )
        return tracking_id

    def retrieve(self, tracking_id: str, *, timeout: float) -> RetrievedCertificate:  # noqa: ARG002
        """Hand back the certificate issued for *tracking_id*, once."""
        with self._lock:
            retrieved = self._issued.pop(tracking_id, None)
        if retrieved is None:
            msg = f"Local CA has no request with tracking ID {tracking_id!r}"
            raise RetrievalError(msg, retryable=False)
        return retrieved

    def _sign(self, csr: x509.CertificateSigningRequest) -> x509.Certificate:
        """Issue a leaf certificate for *csr*.

        Subject and SANs are copied from the CSR; key usage and EKU come
        from the ``connector.local`` section.
        """
        if self._root_cert is None or self._root_key is None:
            msg = "Root certificate not loaded"
            raise CertEnrollError(msg)

        # RFC 5280 sec 4.1.2.2: at most 20 octets, positive
        serial_number = int.from_bytes(secrets.token_bytes(20), "big") >> 1
        now = datetime.now(UTC)

        builder = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(self._root_cert.subject)
            .public_key(csr.public_key())
            .serial_number(serial_number)
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=self._local.validity_days))
            .add_extension(
                x509.BasicConstraints(ca=False, path_length=None),
                critical=True,
            )
        )

        try:
            san_ext = csr.extensions.get_extension_for_class(
                x509.SubjectAlternativeName,
            )
        except x509.ExtensionNotFound:
            pass
        else:
            builder = builder.add_extension(san_ext.value, critical=san_ext.critical)

        if self._local.key_usages:
            builder = builder.add_extension(
                build_key_usage(self._local.key_usages),
                critical=True,
            )
        if self._local.extended_key_usages:
            builder = builder.add_extension(
                build_eku(self._local.extended_key_usages),
                critical=False,
            )

        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(
                self._root_cert.public_key(),  # type: ignore[arg-type]
            ),
            critical=False,
        ).add_extension(
            x509.SubjectKeyIdentifier.from_public_key(csr.public_key()),  # type: ignore[arg-type]
            critical=False,
        )

        return builder.sign(self._root_key, self._hash_algorithm)
