"""Subject and SAN assembly.

Turns the raw common name and SAN lists of a
:class:`~certenroll.models.spec.CertificateSpec` into the canonical
identity presented to the CA:

- IP SANs must parse (:class:`~certenroll.errors.InvalidSAN` otherwise),
- an empty common name defaults to the first DNS SAN,
- at least one of the two must be present
  (:class:`~certenroll.errors.MissingIdentity`),
- the common name is appended to the DNS SANs when it is not already
  there, and appears in them exactly once.

SAN order is the input order; the common-name append is the only change.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from certenroll.errors import InvalidSAN, MissingIdentity
from certenroll.models.request import Subject

if TYPE_CHECKING:
    from collections.abc import Sequence
    from ipaddress import IPv4Address, IPv6Address

    from certenroll.models.spec import CertificateSpec

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssembledIdentity:
    """Canonical identity of a request."""

    common_name: str
    dns_names: tuple[str, ...]
    email_addresses: tuple[str, ...]
    ip_addresses: tuple[IPv4Address | IPv6Address, ...]


def parse_ip_addresses(values: Sequence[str]) -> tuple[IPv4Address | IPv6Address, ...]:
    """Parse IP SAN strings, preserving order.

    Raises
    ------
    InvalidSAN
        On the first value that is not an IPv4 or IPv6 address.

    """
    parsed = []
    for value in values:
        try:
            parsed.append(ipaddress.ip_address(value))
        except ValueError as exc:
            msg = f"invalid IP address {value!r}"
            raise InvalidSAN(msg, value=str(value)) from exc
    return tuple(parsed)


def assemble_identity(
    common_name: str,
    san_dns: Sequence[str] = (),
    san_email: Sequence[str] = (),
    san_ip: Sequence[str] = (),
) -> AssembledIdentity:
    """Validate and canonicalise the identity of a certificate request.

    Parameters
    ----------
    common_name:
        Requested common name; may be empty.
    san_dns, san_email, san_ip:
        Subject alternative names as given by the caller.

    Returns
    -------
    AssembledIdentity
        Effective common name and SAN sequences.

    Raises
    ------
    InvalidSAN
        If an IP SAN cannot be parsed.
    MissingIdentity
        If both the common name and the DNS SAN list are empty.

    """
    ip_addresses = parse_ip_addresses(san_ip)

    dns_names = list(san_dns)
    if not common_name and not dns_names:
        msg = "no domains specified on certificate"
        raise MissingIdentity(msg)
    if not common_name:
        common_name = dns_names[0]

    if common_name in dns_names:
        first = dns_names.index(common_name)
        dns_names = [
            name for i, name in enumerate(dns_names) if name != common_name or i == first
        ]
    else:
        log.debug("Adding CN %s to SAN %s because it wasn't included", common_name, dns_names)
        dns_names.append(common_name)

    log.debug("Using CN %s and SAN %s", common_name, dns_names)
    return AssembledIdentity(
        common_name=common_name,
        dns_names=tuple(dns_names),
        email_addresses=tuple(san_email),
        ip_addresses=ip_addresses,
    )


def build_subject(spec: CertificateSpec, common_name: str) -> Subject:
    """Return the request subject for *spec* using the effective *common_name*."""
    return Subject(
        common_name=common_name,
        organization=spec.organization,
        organizational_units=tuple(spec.organizational_units),
        country=spec.country,
        state=spec.state,
        locality=spec.locality,
    )
