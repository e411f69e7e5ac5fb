"""Declarative certificate specification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

DEFAULT_RSA_BITS = 2048
DEFAULT_ECDSA_CURVE = "P224"
DEFAULT_EXPIRATION_WINDOW_HOURS = 168


@dataclass(frozen=True)
class CertificateSpec:
    """What the caller wants issued.

    ``algorithm`` and ``ecdsa_curve`` are kept as the raw strings from
    configuration; they are resolved (and rejected if unknown) by the key
    builder so that the error surfaces at enrollment time.
    """

    common_name: str = ""
    algorithm: str = "RSA"
    rsa_bits: int = DEFAULT_RSA_BITS
    ecdsa_curve: str = DEFAULT_ECDSA_CURVE
    organization: str | None = None
    organizational_units: tuple[str, ...] = ()
    country: str | None = None
    state: str | None = None
    locality: str | None = None
    san_dns: tuple[str, ...] = ()
    san_email: tuple[str, ...] = ()
    san_ip: tuple[str, ...] = ()
    key_password: str | None = field(default=None, repr=False)
    expiration_window: timedelta = timedelta(hours=DEFAULT_EXPIRATION_WINDOW_HOURS)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CertificateSpec:
        """Build a spec from the configuration-file shape.

        ``expiration_window`` is given in hours, as an integer.
        """
        d = data or {}
        return cls(
            common_name=d.get("common_name") or "",
            algorithm=d.get("algorithm") or "RSA",
            rsa_bits=d.get("rsa_bits", DEFAULT_RSA_BITS),
            ecdsa_curve=d.get("ecdsa_curve", DEFAULT_ECDSA_CURVE),
            organization=d.get("organization_name"),
            organizational_units=tuple(d.get("organizational_unit") or ()),
            country=d.get("country"),
            state=d.get("state"),
            locality=d.get("locality"),
            san_dns=tuple(d.get("san_dns") or ()),
            san_email=tuple(d.get("san_email") or ()),
            san_ip=tuple(d.get("san_ip") or ()),
            key_password=d.get("key_password") or None,
            expiration_window=timedelta(
                hours=d.get("expiration_window", DEFAULT_EXPIRATION_WINDOW_HOURS),
            ),
        )
