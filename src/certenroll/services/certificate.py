"""Certificate lifecycle service.

Binds the builder, the enrollment driver, the renewal evaluator and the
state store into the three operations an orchestration tool performs on
a certificate resource:

- :meth:`CertificateService.create` enrolls a new certificate,
- :meth:`CertificateService.read` checks a stored one and re-enrolls it
  when it has entered its expiration window,
- :meth:`CertificateService.delete` forgets it (no CA-side revocation).

Every error propagates unchanged; retrying is the caller's decision.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from certenroll.services.enrollment import (
    DEFAULT_RETRIEVE_TIMEOUT_SECONDS,
    SETTLE_DELAY_SECONDS,
    EnrollmentDriver,
)
from certenroll.services.keys import build_signing_request
from certenroll.services.renewal import RenewalPolicyEvaluator

if TYPE_CHECKING:
    from datetime import datetime

    from certenroll.ca.base import CAConnector
    from certenroll.config.settings import EnrollmentSettings
    from certenroll.models.bundle import CertificateBundle
    from certenroll.models.spec import CertificateSpec
    from certenroll.repositories.state import StateStore

log = logging.getLogger(__name__)


class CertificateService:
    """Create, read (and renew) and delete certificate records.

    Parameters
    ----------
    connector:
        CA connector handle shared by all operations.
    store:
        State store holding one record per tracking ID.
    settings:
        Optional ``enrollment`` settings (settle delay, retrieval timeout).
    driver:
        Pre-built driver; overrides *settings* when given.

    """

    def __init__(
        self,
        connector: CAConnector,
        store: StateStore,
        settings: EnrollmentSettings | None = None,
        *,
        driver: EnrollmentDriver | None = None,
    ) -> None:
        self._store = store
        if driver is None:
            driver = EnrollmentDriver(
                connector,
                settle_delay=(
                    settings.settle_delay_seconds if settings else SETTLE_DELAY_SECONDS
                ),
                retrieve_timeout=(
                    settings.retrieve_timeout_seconds
                    if settings
                    else DEFAULT_RETRIEVE_TIMEOUT_SECONDS
                ),
            )
        self._driver = driver

    def create(self, spec: CertificateSpec) -> CertificateBundle:
        """Enroll a certificate for *spec* and persist it."""
        log.info("Creating certificate")
        bundle = self._enroll(spec)
        self._store.put(bundle)
        return bundle

    def read(
        self,
        tracking_id: str,
        spec: CertificateSpec,
        now: datetime | None = None,
    ) -> CertificateBundle | None:
        """Return the current bundle for *tracking_id*, renewing it if due.

        Returns ``None`` when no record exists.  When renewal is required
        the new bundle is written under its own tracking ID and the old
        record is removed.

        Raises
        ------
        CertificateParseError, MissingPrivateKey, KeyMismatch
            If the stored record is unusable.
        InvalidRenewalWindow
            If the expiration window exceeds the certificate lifetime.

        """
        bundle = self._store.get(tracking_id)
        if bundle is None:
            log.info("No stored certificate for %s", tracking_id)
            return None

        evaluator = RenewalPolicyEvaluator(spec.expiration_window)
        decision = evaluator.evaluate(bundle, spec.key_password, now=now)
        if not decision.renew:
            return bundle

        log.info(
            "Requesting new certificate because its expiration date %s is within "
            "expiration window %s",
            decision.not_after.isoformat(),
            decision.window,
        )
        renewed = self._enroll(spec)
        self._store.put(renewed)
        if renewed.tracking_id != tracking_id:
            self._store.delete(tracking_id)
        return renewed

    def delete(self, tracking_id: str) -> None:
        """Clear the record for *tracking_id*."""
        self._store.delete(tracking_id)
        log.info("Certificate record %s removed", tracking_id)

    def _enroll(self, spec: CertificateSpec) -> CertificateBundle:
        request = build_signing_request(spec)
        return self._driver.enroll(request, passphrase=spec.key_password)
