"""Enrollment protocol driver.

Drives one :class:`~certenroll.models.request.SigningRequest` through the
CA protocol as an explicit state machine::

    built --submit--> submitted --settle--> pending --retrieve--> retrieved
                                                                 (bundle)
    any state --error--> failed

Each step is a separate method so that the suspension points (the
submission call, the settle delay, the polling retrieval) can be named,
timed and tested on their own.  :meth:`EnrollmentDriver.enroll` chains
them and either returns a complete bundle or raises; nothing partial is
ever returned.

The settle delay works around a CA-side race where a request is not yet
persisted when the first retrieval arrives.  It counts against the
retrieval timeout.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from certenroll.core.state import assert_transition, log_transition
from certenroll.core.types import EnrollmentState
from certenroll.errors import (
    CertEnrollError,
    ConnectorUnreachable,
    RetrievalError,
    RetrievalTimeout,
    SubmissionError,
)
from certenroll.services.bundle import assemble_bundle

if TYPE_CHECKING:
    from collections.abc import Callable

    from certenroll.ca.base import CAConnector
    from certenroll.models.bundle import CertificateBundle, RetrievedCertificate
    from certenroll.models.request import SigningRequest

log = logging.getLogger(__name__)

SETTLE_DELAY_SECONDS = 2.0
DEFAULT_RETRIEVE_TIMEOUT_SECONDS = 180.0


class EnrollmentDriver:
    """Runs the submit / settle / retrieve protocol against a connector.

    The driver keeps no state between calls; all per-enrollment state
    lives on the :class:`SigningRequest`.  One driver can therefore serve
    many concurrent enrollments as long as its connector is thread-safe.

    Parameters
    ----------
    connector:
        The CA connector handle.
    settle_delay:
        Seconds to wait after submission before the first retrieval.
    retrieve_timeout:
        Overall retrieval budget in seconds, settle delay included.
    sleep, clock:
        Injection points for :func:`time.sleep` and :func:`time.monotonic`.

    """

    def __init__(
        self,
        connector: CAConnector,
        *,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        retrieve_timeout: float = DEFAULT_RETRIEVE_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._connector = connector
        self._settle_delay = max(0.0, settle_delay)
        self._retrieve_timeout = retrieve_timeout
        self._sleep = sleep
        self._clock = clock

    # -- individual steps ---------------------------------------------------

    def check_connector(self) -> None:
        """Ping the CA; raise :class:`ConnectorUnreachable` on failure."""
        try:
            self._connector.ping()
        except ConnectorUnreachable:
            log.exception("CA connector ping failed")
            raise
        except Exception as exc:
            log.exception("CA connector ping failed")
            msg = f"CA connector is unreachable: {exc}"
            raise ConnectorUnreachable(msg) from exc
        log.info("CA connector ping successful")

    def submit(self, request: SigningRequest) -> str:
        """Send *request* to the CA and record its pickup ID.

        ``built -> submitted``.
        """
        assert_transition(request.state, EnrollmentState.SUBMITTED)
        log.info("Making certificate request for CN=%s", request.common_name)
        try:
            pickup_id = self._connector.submit(request)
        except SubmissionError as exc:
            self._fail(request, exc)
            raise
        except Exception as exc:
            msg = f"certificate request submission failed: {exc}"
            error = SubmissionError(msg)
            self._fail(request, error)
            raise error from exc

        if not pickup_id:
            error = SubmissionError("CA returned an empty request identifier")
            self._fail(request, error)
            raise error

        request.pickup_id = pickup_id
        self._advance(request, EnrollmentState.SUBMITTED)
        return pickup_id

    def settle(self, request: SigningRequest) -> None:
        """Wait out the post-submission settle delay.

        ``submitted -> pending``.
        """
        assert_transition(request.state, EnrollmentState.PENDING)
        if self._settle_delay:
            log.debug(
                "Waiting %.1fs before first retrieval of %s",
                self._settle_delay,
                request.pickup_id,
            )
            self._sleep(self._settle_delay)
        self._advance(request, EnrollmentState.PENDING)

    def retrieve(self, request: SigningRequest, *, deadline: float) -> RetrievedCertificate:
        """Block until the certificate is issued or *deadline* passes.

        ``pending -> retrieved``.  *deadline* is a value of the driver's
        clock.
        """
        assert_transition(request.state, EnrollmentState.RETRIEVED)
        remaining = deadline - self._clock()
        try:
            if remaining <= 0:
                msg = f"retrieval of {request.pickup_id} timed out before the first poll"
                raise RetrievalTimeout(msg)
            retrieved = self._connector.retrieve(request.pickup_id, timeout=remaining)
            if self._clock() > deadline:
                msg = (
                    f"certificate {request.pickup_id} was not retrieved within "
                    f"{self._retrieve_timeout:.0f}s"
                )
                raise RetrievalTimeout(msg)
        except CertEnrollError as exc:
            self._fail(request, exc)
            raise
        except Exception as exc:
            msg = f"certificate retrieval failed: {exc}"
            error = RetrievalError(msg)
            self._fail(request, error)
            raise error from exc

        self._advance(request, EnrollmentState.RETRIEVED)
        return retrieved

    # -- full flow ----------------------------------------------------------

    def enroll(
        self,
        request: SigningRequest,
        *,
        passphrase: str | None = None,
    ) -> CertificateBundle:
        """Run the whole protocol for *request* and return its bundle.

        Parameters
        ----------
        request:
            A freshly built request (state ``built``).
        passphrase:
            Optional passphrase protecting the private key in the bundle.

        Raises
        ------
        CertEnrollError
            Any connector, timeout or rejection error, unmodified.

        """
        try:
            self.check_connector()
        except ConnectorUnreachable as exc:
            self._fail(request, exc)
            raise

        pickup_id = self.submit(request)
        deadline = self._clock() + self._retrieve_timeout
        self.settle(request)
        retrieved = self.retrieve(request, deadline=deadline)

        bundle = assemble_bundle(
            retrieved,
            request.private_key,
            tracking_id=pickup_id,
            passphrase=passphrase,
            csr_pem=request.csr_pem,
        )
        log.info("Certificate %s enrolled for CN=%s", pickup_id, request.common_name)
        return bundle

    # -- helpers ------------------------------------------------------------

    def _advance(self, request: SigningRequest, target: EnrollmentState) -> None:
        previous = request.state
        request.state = target
        log_transition(request.pickup_id or request.common_name, previous, target)

    def _fail(self, request: SigningRequest, exc: Exception) -> None:
        if request.state in (EnrollmentState.RETRIEVED, EnrollmentState.FAILED):
            return
        previous = request.state
        request.state = EnrollmentState.FAILED
        log_transition(
            request.pickup_id or request.common_name,
            previous,
            EnrollmentState.FAILED,
            reason=type(exc).__name__,
        )
