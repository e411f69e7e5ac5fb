"""Issued artifacts and renewal decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime, timedelta


@dataclass(frozen=True)
class RetrievedCertificate:
    """What a CA connector hands back once a request is issued.

    Attributes
    ----------
    certificate:
        PEM-encoded leaf certificate.
    chain:
        PEM blocks of the issuing chain, in the order the CA returned them.

    """

    certificate: str
    chain: tuple[str, ...] = ()


@dataclass(frozen=True)
class CertificateBundle:
    """The persisted result of one successful enrollment.

    ``tracking_id`` (the CA pickup ID) is the record's primary key.  A
    renewal produces a new bundle that replaces this one wholesale.
    """

    tracking_id: str
    certificate: str
    chain: str
    private_key_pem: str = field(repr=False)
    csr_pem: str = ""

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.tracking_id,
            "certificate": self.certificate,
            "chain": self.chain,
            "private_key_pem": self.private_key_pem,
            "csr_pem": self.csr_pem,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> CertificateBundle:
        return cls(
            tracking_id=record["id"],
            certificate=record.get("certificate", ""),
            chain=record.get("chain", ""),
            private_key_pem=record.get("private_key_pem", ""),
            csr_pem=record.get("csr_pem", ""),
        )


@dataclass(frozen=True)
class RenewalDecision:
    """Outcome of evaluating a certificate against its expiration window."""

    renew: bool
    time_until_expiry: timedelta
    window: timedelta
    not_before: datetime
    not_after: datetime
