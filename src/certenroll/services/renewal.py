"""Renewal policy evaluation.

A stored certificate is renewed once it enters its expiration window::

    renew  <=>  (not_after - now) - window <= 0

The window must fit inside the certificate's own lifetime; a window
longer than ``not_after - not_before`` is a configuration error and is
reported as such rather than triggering an endless re-enrollment.

Before any window arithmetic the stored certificate and key are checked:
an unparseable certificate, a missing key, or a key that does not match
(including one that cannot be decrypted with the configured passphrase)
is a read-time failure.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from certenroll.errors import InvalidRenewalWindow
from certenroll.models.bundle import RenewalDecision
from certenroll.services.bundle import load_certificate, load_private_key, verify_key_pair

if TYPE_CHECKING:
    from cryptography import x509

    from certenroll.models.bundle import CertificateBundle

log = logging.getLogger(__name__)


def evaluate_renewal(
    not_before: datetime,
    not_after: datetime,
    window: timedelta,
    now: datetime,
) -> RenewalDecision:
    """Decide whether a certificate valid from *not_before* to *not_after* must be renewed.

    Raises
    ------
    InvalidRenewalWindow
        If *window* is longer than the certificate's validity duration.

    """
    duration = not_after - not_before
    if duration < window:
        msg = (
            f"certificate validity duration {duration} is less than "
            f"configured expiration window {window}"
        )
        raise InvalidRenewalWindow(msg)

    until_expiry = not_after - now
    renew = until_expiry - window <= timedelta(0)
    return RenewalDecision(
        renew=renew,
        time_until_expiry=until_expiry,
        window=window,
        not_before=not_before,
        not_after=not_after,
    )


def check_stored_bundle(
    certificate_pem: str | None,
    private_key_pem: str | None,
    passphrase: str | None = None,
) -> x509.Certificate:
    """Validate a stored certificate/key pair and return the parsed certificate.

    Raises
    ------
    CertificateParseError
        If the certificate does not parse.
    MissingPrivateKey
        If no key is stored.
    KeyMismatch
        If the key cannot be loaded or does not match the certificate.

    """
    certificate = load_certificate(certificate_pem)
    private_key = load_private_key(private_key_pem, passphrase)
    verify_key_pair(certificate, private_key)
    return certificate


class RenewalPolicyEvaluator:
    """Evaluates stored bundles against a fixed expiration window.

    Parameters
    ----------
    window:
        How long before ``not_after`` a certificate is renewed.

    """

    def __init__(self, window: timedelta) -> None:
        self._window = window

    @property
    def window(self) -> timedelta:
        return self._window

    def evaluate(
        self,
        bundle: CertificateBundle,
        passphrase: str | None = None,
        now: datetime | None = None,
    ) -> RenewalDecision:
        certificate = check_stored_bundle(
            bundle.certificate,
            bundle.private_key_pem,
            passphrase,
        )
        decision = evaluate_renewal(
            certificate.not_valid_before_utc,
            certificate.not_valid_after_utc,
            self._window,
            now or datetime.now(UTC),
        )
        if decision.renew:
            log.info(
                "Certificate %s expires in %s, within expiration window %s; renewal required",
                bundle.tracking_id,
                decision.time_until_expiry,
                self._window,
            )
        return decision
