"""Signing request and its canonical subject."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.x509.oid import NameOID

from certenroll.core.types import EnrollmentState, KeyAlgorithm

if TYPE_CHECKING:
    from ipaddress import IPv4Address, IPv6Address

    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )


# RFC 5280 ub-common-name
COMMON_NAME_MAX_LENGTH = 64


@dataclass(frozen=True)
class Subject:
    """Distinguished name of the requested certificate."""

    common_name: str
    organization: str | None = None
    organizational_units: tuple[str, ...] = ()
    country: str | None = None
    state: str | None = None
    locality: str | None = None

    def to_x509_name(self, *, include_common_name: bool = True) -> x509.Name:
        """Encode the subject as an :class:`x509.Name`.

        ``cryptography`` enforces the RFC 5280 upper bounds here and
        raises :class:`ValueError` for attributes that exceed them.
        """
        attrs = []
        if include_common_name:
            attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, self.common_name))
        if self.organization:
            attrs.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, self.organization))
        attrs.extend(
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, ou)
            for ou in self.organizational_units
        )
        if self.country:
            attrs.append(x509.NameAttribute(NameOID.COUNTRY_NAME, self.country))
        if self.state:
            attrs.append(x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, self.state))
        if self.locality:
            attrs.append(x509.NameAttribute(NameOID.LOCALITY_NAME, self.locality))
        return x509.Name(attrs)


@dataclass
class SigningRequest:
    """A locally generated key pair plus the CSR built from it.

    Owned by the enrollment driver: only the driver assigns
    :attr:`pickup_id` and advances :attr:`state`.  The private key never
    leaves the request except by being absorbed into a
    :class:`~certenroll.models.bundle.CertificateBundle`.
    """

    key_algorithm: KeyAlgorithm
    private_key: CertificateIssuerPrivateKeyTypes = field(repr=False)
    subject: Subject
    dns_names: tuple[str, ...]
    email_addresses: tuple[str, ...]
    ip_addresses: tuple[IPv4Address | IPv6Address, ...]
    csr_pem: str = field(repr=False)
    pickup_id: str | None = None
    state: EnrollmentState = EnrollmentState.BUILT

    @property
    def common_name(self) -> str:
        return self.subject.common_name
