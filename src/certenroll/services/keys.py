"""Key pair and signing request builder.

Generates the private key described by a
:class:`~certenroll.models.spec.CertificateSpec` and wraps it, together
with the assembled subject and SANs, in a signed PKCS#10 request.  No
external calls are made here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cryptography import exceptions as crypto_exceptions
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from certenroll.core.types import EllipticCurve, KeyAlgorithm
from certenroll.errors import (
    InvalidSAN,
    InvalidSubject,
    KeyGenerationError,
    UnsupportedAlgorithm,
)
from certenroll.models.request import COMMON_NAME_MAX_LENGTH, SigningRequest
from certenroll.services.subject import assemble_identity, build_subject

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )

    from certenroll.models.request import Subject
    from certenroll.models.spec import CertificateSpec
    from certenroll.services.subject import AssembledIdentity

log = logging.getLogger(__name__)

_CURVES: dict[EllipticCurve, type[ec.EllipticCurve]] = {
    EllipticCurve.P224: ec.SECP224R1,
    EllipticCurve.P256: ec.SECP256R1,
    EllipticCurve.P384: ec.SECP384R1,
    EllipticCurve.P521: ec.SECP521R1,
}

_RSA_PUBLIC_EXPONENT = 65537


def resolve_algorithm(name: str | None) -> KeyAlgorithm:
    """Map a configured algorithm name to :class:`KeyAlgorithm`.

    An empty name means RSA.
    """
    if not name:
        return KeyAlgorithm.RSA
    try:
        return KeyAlgorithm(name)
    except ValueError:
        msg = f"Can't determine key algorithm {name!r}; supported: {[a.value for a in KeyAlgorithm]}"
        raise UnsupportedAlgorithm(msg) from None


def resolve_curve(name: str) -> EllipticCurve:
    """Map a configured curve name to :class:`EllipticCurve`."""
    try:
        return EllipticCurve(name)
    except ValueError:
        msg = f"Unsupported ECDSA curve {name!r}; supported: {[c.value for c in EllipticCurve]}"
        raise UnsupportedAlgorithm(msg) from None


def generate_private_key(
    algorithm: str | KeyAlgorithm,
    *,
    rsa_bits: int = 2048,
    ecdsa_curve: str | EllipticCurve = EllipticCurve.P224,
) -> CertificateIssuerPrivateKeyTypes:
    """Generate a private key for *algorithm*.

    Parameters
    ----------
    algorithm:
        ``"RSA"`` or ``"ECDSA"``.
    rsa_bits:
        RSA modulus length; the generated key has exactly this size.
    ecdsa_curve:
        One of ``P224``, ``P256``, ``P384``, ``P521``.

    Raises
    ------
    UnsupportedAlgorithm
        If the algorithm or curve is unknown.
    KeyGenerationError
        If the cryptographic library fails to produce the key.

    """
    key_algorithm = resolve_algorithm(algorithm)

    if key_algorithm is KeyAlgorithm.RSA:
        try:
            return rsa.generate_private_key(
                public_exponent=_RSA_PUBLIC_EXPONENT,
                key_size=rsa_bits,
            )
        except (ValueError, TypeError, crypto_exceptions.UnsupportedAlgorithm) as exc:
            msg = f"error generating {rsa_bits}-bit RSA key: {exc}"
            raise KeyGenerationError(msg) from exc

    curve = resolve_curve(ecdsa_curve)
    try:
        return ec.generate_private_key(_CURVES[curve]())
    except (ValueError, crypto_exceptions.UnsupportedAlgorithm) as exc:
        msg = f"error generating ECDSA key on {curve.value}: {exc}"
        raise KeyGenerationError(msg) from exc


def encode_subject(subject: Subject, *, defaulted_common_name: bool) -> x509.Name:
    """Encode *subject*, mapping attribute bound violations to engine errors.

    A common name taken over from a DNS SAN that exceeds the RFC 5280
    bound of 64 characters is left out of the subject; it is still
    carried in the DNS SANs.

    Raises
    ------
    InvalidSubject
        If an explicitly configured attribute cannot be encoded.

    """
    include_cn = True
    if len(subject.common_name) > COMMON_NAME_MAX_LENGTH:
        if not defaulted_common_name:
            msg = (
                f"common name {subject.common_name!r} is longer than "
                f"{COMMON_NAME_MAX_LENGTH} characters"
            )
            raise InvalidSubject(msg)
        log.info(
            "Leaving CN out of the subject: %s is longer than %d characters",
            subject.common_name,
            COMMON_NAME_MAX_LENGTH,
        )
        include_cn = False
    try:
        return subject.to_x509_name(include_common_name=include_cn)
    except ValueError as exc:
        msg = f"invalid subject: {exc}"
        raise InvalidSubject(msg) from exc


def encode_subject_alt_names(identity: AssembledIdentity) -> list[x509.GeneralName]:
    """Return the SANs of *identity*: DNS first, then e-mail, then IP.

    Raises
    ------
    InvalidSAN
        If a DNS name or e-mail address cannot be encoded.

    """
    names: list[x509.GeneralName] = []
    for kind, values in (
        (x509.DNSName, identity.dns_names),
        (x509.RFC822Name, identity.email_addresses),
    ):
        for value in values:
            try:
                names.append(kind(value))
            except (ValueError, TypeError) as exc:
                msg = f"invalid SAN {value!r}: {exc}"
                raise InvalidSAN(msg, value=str(value)) from exc
    names.extend(x509.IPAddress(ip) for ip in identity.ip_addresses)
    return names


def build_csr(
    private_key: CertificateIssuerPrivateKeyTypes,
    name: x509.Name,
    names: list[x509.GeneralName],
) -> x509.CertificateSigningRequest:
    """Sign a PKCS#10 request for subject *name* and SANs *names*.

    The SAN extension is marked critical when the subject is empty.
    """
    builder = x509.CertificateSigningRequestBuilder().subject_name(name)
    if names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(names),
            critical=len(name) == 0,
        )
    return builder.sign(private_key, hashes.SHA256())


def build_signing_request(spec: CertificateSpec) -> SigningRequest:
    """Turn *spec* into a :class:`SigningRequest` in state ``built``.

    The identity, subject and SANs are encoded before any key is
    generated, so malformed input fails without touching the key
    generator.
    """
    key_algorithm = resolve_algorithm(spec.algorithm)
    if key_algorithm is KeyAlgorithm.ECDSA:
        resolve_curve(spec.ecdsa_curve)

    identity = assemble_identity(
        spec.common_name,
        spec.san_dns,
        spec.san_email,
        spec.san_ip,
    )
    subject = build_subject(spec, identity.common_name)
    name = encode_subject(subject, defaulted_common_name=not spec.common_name)
    san = encode_subject_alt_names(identity)

    private_key = generate_private_key(
        key_algorithm,
        rsa_bits=spec.rsa_bits,
        ecdsa_curve=spec.ecdsa_curve,
    )
    csr = build_csr(private_key, name, san)
    log.info(
        "Built %s signing request for CN=%s (SAN dns=%s email=%s ip=%s)",
        key_algorithm.value,
        identity.common_name,
        list(identity.dns_names),
        list(identity.email_addresses),
        [str(ip) for ip in identity.ip_addresses],
    )

    return SigningRequest(
        key_algorithm=key_algorithm,
        private_key=private_key,
        subject=subject,
        dns_names=identity.dns_names,
        email_addresses=identity.email_addresses,
        ip_addresses=identity.ip_addresses,
        csr_pem=csr.public_bytes(serialization.Encoding.PEM).decode("ascii"),
    )
