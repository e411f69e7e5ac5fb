"""Bundle assembly and key/certificate pairing checks.

Combines a retrieved certificate and chain with the locally generated
private key into the :class:`~certenroll.models.bundle.CertificateBundle`
that gets persisted, and provides the inverse helpers used when a stored
bundle is read back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from certenroll.errors import CertificateParseError, KeyMismatch, MissingPrivateKey
from certenroll.models.bundle import CertificateBundle

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import (
        PrivateKeyTypes,
    )

    from certenroll.models.bundle import RetrievedCertificate

log = logging.getLogger(__name__)

_ENCRYPTED_MARKER = b"ENCRYPTED"


def serialize_private_key(
    private_key: PrivateKeyTypes,
    passphrase: str | None = None,
) -> str:
    """Return *private_key* as PEM, encrypted when *passphrase* is non-empty."""
    encryption: serialization.KeySerializationEncryption
    if passphrase:
        encryption = serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=encryption,
    ).decode("ascii")


def assemble_bundle(
    retrieved: RetrievedCertificate,
    private_key: PrivateKeyTypes,
    *,
    tracking_id: str,
    passphrase: str | None = None,
    csr_pem: str = "",
) -> CertificateBundle:
    """Build the final bundle for a retrieved certificate.

    Parameters
    ----------
    retrieved:
        Leaf certificate and chain as returned by the CA connector.
    private_key:
        The key generated for the request.
    tracking_id:
        CA pickup ID; becomes the bundle's persisted identifier.
    passphrase:
        Optional passphrase used to encrypt the key PEM.
    csr_pem:
        The submitted request, kept alongside the bundle.

    The chain blocks are concatenated exactly as received: no separator
    is inserted and no reordering is attempted.
    """
    bundle = CertificateBundle(
        tracking_id=tracking_id,
        certificate=retrieved.certificate,
        chain="".join(retrieved.chain),
        private_key_pem=serialize_private_key(private_key, passphrase),
        csr_pem=csr_pem,
    )
    log.debug(
        "Assembled bundle %s (chain blocks=%d, key encrypted=%s)",
        tracking_id,
        len(retrieved.chain),
        bool(passphrase),
    )
    return bundle


# ---------------------------------------------------------------------------
# Read-side helpers
# ---------------------------------------------------------------------------


def load_certificate(certificate_pem: str | None) -> x509.Certificate:
    """Parse the leaf certificate of a stored bundle.

    Raises
    ------
    CertificateParseError
        If *certificate_pem* is empty or not a PEM X.509 certificate.

    """
    if not certificate_pem:
        msg = "error parsing cert: no certificate PEM stored"
        raise CertificateParseError(msg)
    try:
        return x509.load_pem_x509_certificate(certificate_pem.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as exc:
        msg = f"error parsing cert: {exc}"
        raise CertificateParseError(msg) from exc


def load_private_key(
    private_key_pem: str | None,
    passphrase: str | None = None,
) -> PrivateKeyTypes:
    """Load a stored private key, decrypting it with *passphrase* if needed.

    Raises
    ------
    MissingPrivateKey
        If no key PEM is stored.
    KeyMismatch
        If the key cannot be decrypted with *passphrase* or does not parse.

    """
    if not private_key_pem:
        msg = "error getting key: no private key stored"
        raise MissingPrivateKey(msg)

    data = private_key_pem.encode("ascii", errors="replace")
    password = passphrase.encode("utf-8") if passphrase and _ENCRYPTED_MARKER in data else None
    try:
        return serialization.load_pem_private_key(data, password=password)
    except (ValueError, TypeError) as exc:
        msg = f"error getting key: {exc}"
        raise KeyMismatch(msg) from exc


def _spki(key) -> bytes:
    return key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def verify_key_pair(certificate: x509.Certificate, private_key: PrivateKeyTypes) -> None:
    """Check that *private_key* is the key certified by *certificate*.

    Raises
    ------
    KeyMismatch
        If the public keys differ.

    """
    if _spki(certificate.public_key()) != _spki(private_key.public_key()):
        msg = "error comparing certificate and key: private key does not match public key"
        raise KeyMismatch(msg)
