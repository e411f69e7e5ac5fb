r"""External CA connector -- enrolls against a remote CA over HTTPS.

Supports enterprise PKI workflows by communicating with an
asynchronous certificate authority.  Authentication options include:

- **Header-based auth**: API tokens, Bearer tokens, custom headers
  (configured via ``auth_header`` / ``auth_value``)
- **Mutual TLS (mTLS)**: Client certificate + key
  (configured via ``client_cert_path`` / ``client_key_path``)
- **Custom CA trust**: Pin the upstream CA's TLS certificate
  (configured via ``ca_cert_path``)

API contract
------------
**Ping** -- ``GET {base_url}/ping``; any HTTP 2xx means reachable.

**Request** -- ``POST {base_url}/certificates/request``

Request body (JSON)::

    {
        "csr": "-----BEGIN CERTIFICATE REQUEST-----\\n...",
        "zone": "Default"
    }

Response body (JSON, HTTP 200)::

    {"request_id": "\\VED\\Policy\\Certificates\\example.com"}

**Retrieve** -- ``POST {base_url}/certificates/retrieve``

Request body (JSON)::

    {"request_id": "..."}

Response body (JSON)::

    {"status": "issued", "certificate": "-----BEGIN ...", "chain": [...]}
    {"status": "pending"}                      (or HTTP 202)
    {"status": "rejected", "detail": "policy violation"}

``chain`` may be a list of PEM blocks or one concatenated string; it is
passed through in the order the CA returned it.
"""

from __future__ import annotations

import contextlib
import json
import logging
import ssl
import time
import urllib.error
import urllib.request
from typing import TYPE_CHECKING, Any

from cryptography import x509

from certenroll.ca.base import CAConnector
from certenroll.core.types import IssuanceStatus
from certenroll.errors import (
    ConnectorError,
    ConnectorUnreachable,
    IssuanceRejected,
    RetrievalError,
    RetrievalTimeout,
    SubmissionError,
)
from certenroll.logging.sanitize import sanitize_for_logs
from certenroll.models.bundle import RetrievedCertificate

if TYPE_CHECKING:
    from certenroll.config.settings import ConnectorSettings
    from certenroll.models.request import SigningRequest

log = logging.getLogger(__name__)

_HTTP_OK = 200
_HTTP_ACCEPTED = 202


class _Pending(Exception):  # noqa: N818
    """Internal signal: the CA has not issued the certificate yet."""


class ExternalCAConnector(CAConnector):
    """Drives the submit / retrieve protocol of a remote CA over HTTPS.

    Every call opens its own connection, so one connector instance can
    serve concurrent enrollments.
    """

    def __init__(self, settings: ConnectorSettings) -> None:
        super().__init__(settings)
        self._ext = settings.external
        self._ssl_ctx: ssl.SSLContext | None = None

    def startup_check(self) -> None:
        """Verify external connector settings are configured."""
        if not self._ext.base_url:
            msg = "connector.external.base_url is required for the external connector"
            raise ConnectorUnreachable(msg, retryable=False)

    # -- transport ------------------------------------------------------------

    def _get_ssl_context(self) -> ssl.SSLContext:
        """Build (and cache) an SSL context with mTLS and CA trust config."""
        if self._ssl_ctx is not None:
            return self._ssl_ctx

        ctx = ssl.create_default_context()

        # Custom CA trust anchor
        if self._ext.ca_cert_path:
            ctx.load_verify_locations(self._ext.ca_cert_path)

        # mTLS client certificate
        if self._ext.client_cert_path and self._ext.client_key_path:
            ctx.load_cert_chain(
                self._ext.client_cert_path,
                self._ext.client_key_path,
            )

        self._ssl_ctx = ctx
        return ctx

    def _build_request(
        self,
        url: str,
        payload: dict | None = None,
    ) -> urllib.request.Request:
        """Build a request with auth headers and an optional JSON body."""
        headers = {"Accept": "application/json"}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = urllib.request.Request(
            url,
            data=data,
            method="POST" if payload is not None else "GET",
            headers=headers,
        )
        if self._ext.auth_value:
            req.add_header(self._ext.auth_header, self._ext.auth_value)
        return req

    def _do_request(
        self,
        path: str,
        payload: dict | None = None,
        *,
        timeout: float | None = None,
    ) -> tuple[int, dict]:
        """Send one request and return ``(status, parsed JSON body)``.

        Raises
        ------
        ConnectorError
            On transport failures, non-2xx answers or undecodable bodies.
            HTTP 5xx and network errors are retryable, 4xx are not.

        """
        url = f"{self._ext.base_url}{path}"
        req = self._build_request(url, payload)
        handler = urllib.request.HTTPSHandler(context=self._get_ssl_context())
        opener = urllib.request.build_opener(handler)

        try:
            resp = opener.open(req, timeout=timeout or self._ext.timeout_seconds)
        except urllib.error.HTTPError as exc:
            body = ""
            with contextlib.suppress(Exception):
                body = exc.read().decode("utf-8", errors="replace")[:500]
            msg = f"External CA returned HTTP {exc.code}: {body}"
            raise ConnectorError(msg, retryable=exc.code >= 500) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"Failed to reach external CA at {url}: {exc}"
            raise ConnectorError(msg, retryable=True) from exc

        status = resp.status
        if not _HTTP_OK <= status < 300:
            msg = f"External CA returned unexpected HTTP {status}"
            raise ConnectorError(msg, retryable=status >= 500)

        try:
            raw = resp.read().decode("utf-8")
            body = json.loads(raw) if raw.strip() else {}
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            msg = f"External CA returned invalid JSON response: {exc}"
            raise ConnectorError(msg, retryable=False) from exc
        if not isinstance(body, dict):
            msg = "External CA returned a JSON body that is not an object"
            raise ConnectorError(msg, retryable=False)
        return status, body

    # -- protocol -------------------------------------------------------------

    def ping(self) -> None:
        """Check that ``{base_url}/ping`` answers."""
        try:
            self._do_request("/ping")
        except ConnectorError as exc:
            raise ConnectorUnreachable(exc.detail, retryable=exc.retryable) from exc
        log.debug("External CA at %s is reachable", self._ext.base_url)

    def submit(self, request: SigningRequest) -> str:
        """Post the CSR to the CA and return its ``request_id``."""
        payload = {"csr": request.csr_pem, "zone": self._ext.zone}
        log.debug(
            "Submitting CSR to external CA %s (zone=%s): %s",
            self._ext.base_url,
            self._ext.zone,
            sanitize_for_logs(request.csr_pem),
        )
        try:
            _, body = self._do_request("/certificates/request", payload)
        except ConnectorError as exc:
            raise SubmissionError(exc.detail, retryable=exc.retryable) from exc

        request_id = body.get("request_id")
        if not request_id or not isinstance(request_id, str):
            msg = "External CA response missing 'request_id' field"
            raise SubmissionError(msg, retryable=False)
        log.info("External CA accepted request %s", request_id)
        return request_id

    def retrieve(self, tracking_id: str, *, timeout: float) -> RetrievedCertificate:
        """Poll the CA until *tracking_id* is issued, rejected or timed out."""
        deadline = time.monotonic() + timeout
        attempt = 0
        while True:
            attempt += 1
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                msg = (
                    f"Certificate {tracking_id} was not issued within "
                    f"{timeout:g}s ({attempt - 1} polls)"
                )
                raise RetrievalTimeout(msg)
            try:
                return self._poll_once(tracking_id, remaining)
            except _Pending:
                log.debug(
                    "Certificate %s still pending (poll %d)",
                    tracking_id,
                    attempt,
                )
            remaining = deadline - time.monotonic()
            if remaining > 0:
                time.sleep(min(self._ext.poll_interval_seconds, remaining))

    def _poll_once(self, tracking_id: str, remaining: float) -> RetrievedCertificate:
        """Ask the CA once for *tracking_id*; raise :class:`_Pending` if not ready."""
        try:
            status_code, body = self._do_request(
                "/certificates/retrieve",
                {"request_id": tracking_id},
                timeout=min(self._ext.timeout_seconds, remaining),
            )
        except ConnectorError as exc:
            raise RetrievalError(exc.detail, retryable=exc.retryable) from exc

        status = body.get("status")
        if status_code == _HTTP_ACCEPTED or status == IssuanceStatus.PENDING:
            raise _Pending
        if status == IssuanceStatus.REJECTED:
            detail = body.get("detail") or "no reason given"
            msg = f"CA rejected request {tracking_id}: {detail}"
            raise IssuanceRejected(msg)
        if status != IssuanceStatus.ISSUED:
            msg = f"External CA returned unknown status {status!r} for {tracking_id}"
            raise RetrievalError(msg, retryable=False)

        return self._parse_issued(tracking_id, body)

    @staticmethod
    def _parse_issued(tracking_id: str, body: dict[str, Any]) -> RetrievedCertificate:
        certificate = body.get("certificate")
        if not certificate or not isinstance(certificate, str):
            msg = f"External CA response for {tracking_id} missing 'certificate' field"
            raise RetrievalError(msg, retryable=False)
        try:
            leaf = x509.load_pem_x509_certificate(certificate.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as exc:
            msg = f"Failed to parse certificate returned for {tracking_id}: {exc}"
            raise RetrievalError(msg, retryable=False) from exc

        chain = body.get("chain") or ()
        if isinstance(chain, str):
            chain = (chain,)
        log.info(
            "External CA issued certificate: serial=%x, subject=%s",
            leaf.serial_number,
            leaf.subject.rfc4514_string(),
        )
        return RetrievedCertificate(certificate=certificate, chain=tuple(chain))
