"""Abstract base class for CA connectors.

All connectors (built-in and custom) must inherit from
:class:`CAConnector` and implement :meth:`submit`, :meth:`retrieve` and
:meth:`ping`.

The CA is asynchronous: :meth:`submit` hands over a signing request and
returns a tracking ("pickup") identifier; :meth:`retrieve` blocks, polling
the CA internally, until the certificate is issued, the CA rejects it,
or the timeout elapses.

Connectors are shared between independent enrollment flows and must be
safe for concurrent use.
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certenroll.config.settings import ConnectorSettings
    from certenroll.models.bundle import RetrievedCertificate
    from certenroll.models.request import SigningRequest

log = logging.getLogger(__name__)


class CAConnector(abc.ABC):
    """Base class for all CA connector implementations.

    Parameters
    ----------
    settings:
        The full ``connector`` configuration section.

    """

    def __init__(self, settings: ConnectorSettings) -> None:
        self._settings = settings

    @abc.abstractmethod
    def submit(self, request: SigningRequest) -> str:
        """Submit the CSR of *request* and return the CA tracking identifier.

        Raises
        ------
        SubmissionError
            On any network or protocol failure.

        """

    @abc.abstractmethod
    def retrieve(self, tracking_id: str, *, timeout: float) -> RetrievedCertificate:
        """Wait for and return the certificate issued for *tracking_id*.

        Parameters
        ----------
        tracking_id:
            Identifier returned by :meth:`submit`.
        timeout:
            Maximum number of seconds to wait, polling included.

        Raises
        ------
        RetrievalTimeout
            If the certificate is still pending when *timeout* elapses.
        IssuanceRejected
            If the CA reports the request as rejected.
        RetrievalError
            On any other transport failure.

        """

    @abc.abstractmethod
    def ping(self) -> None:
        """Check that the CA endpoint is reachable.

        Raises
        ------
        ConnectorUnreachable
            If the endpoint does not answer.

        """

    def startup_check(self) -> None:
        """Optional configuration check run when the connector is loaded.

        Default implementation is a no-op.

        Raises
        ------
        ConnectorUnreachable
            If the connector is misconfigured.

        """
