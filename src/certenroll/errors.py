"""Error hierarchy for the enrollment and renewal engine.

Every failure the engine can surface is a subclass of
:class:`CertEnrollError`.  Errors carry a human-readable ``detail`` and a
``retryable`` flag so that an outer reconciliation loop can decide
whether re-invoking the operation later makes sense:

- configuration-shape errors are deterministic and never retryable,
- connector (transport) errors are retryable,
- a CA rejection is a terminal decision and is not retryable,
- stored-certificate errors mean the record must be re-enrolled.

The engine itself never retries.
"""

from __future__ import annotations


class CertEnrollError(Exception):
    """Base class for all engine errors.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and the operation may be retried
        by a higher layer.

    """

    default_retryable = False

    def __init__(self, detail: str, *, retryable: bool | None = None) -> None:
        self.detail = detail
        self.retryable = self.default_retryable if retryable is None else retryable
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Configuration shape (fail fast, before any network call)
# ---------------------------------------------------------------------------


class ConfigurationError(CertEnrollError):
    """The certificate specification cannot produce a valid request."""


class UnsupportedAlgorithm(ConfigurationError):
    """Unknown key algorithm or elliptic curve name."""


class InvalidSAN(ConfigurationError):
    """A subject alternative name is malformed.

    The offending value is available as :attr:`value`.
    """

    def __init__(self, detail: str, *, value: str) -> None:
        self.value = value
        super().__init__(detail)


class InvalidSubject(ConfigurationError):
    """A subject attribute cannot be encoded (e.g. a three-letter country)."""


class MissingIdentity(ConfigurationError):
    """Neither a common name nor a DNS SAN was supplied."""


class InvalidRenewalWindow(ConfigurationError):
    """The expiration window exceeds the certificate's total validity."""


# ---------------------------------------------------------------------------
# Key generation
# ---------------------------------------------------------------------------


class KeyGenerationError(CertEnrollError):
    """The cryptographic library failed to generate a private key."""


# ---------------------------------------------------------------------------
# Connector / transport (transient)
# ---------------------------------------------------------------------------


class ConnectorError(CertEnrollError):
    """Base for transient failures talking to the CA connector."""

    default_retryable = True


class ConnectorUnreachable(ConnectorError):
    """The liveness check against the CA connector failed."""


class SubmissionError(ConnectorError):
    """The signing request could not be submitted."""


class RetrievalError(ConnectorError):
    """Polling for the issued certificate failed."""


class RetrievalTimeout(RetrievalError):
    """The certificate was not issued before the retrieval deadline."""


# ---------------------------------------------------------------------------
# Terminal CA decision
# ---------------------------------------------------------------------------


class IssuanceRejected(CertEnrollError):
    """The CA refused to issue the certificate."""


# ---------------------------------------------------------------------------
# Stored certificate checks (must re-enroll)
# ---------------------------------------------------------------------------


class StoredCertificateError(CertEnrollError):
    """A persisted certificate/key pair is unusable."""


class KeyMismatch(StoredCertificateError):
    """The private key does not match the certificate, or cannot be decrypted."""


class CertificateParseError(StoredCertificateError):
    """The stored certificate is not a parseable PEM X.509 certificate."""


class MissingPrivateKey(StoredCertificateError):
    """The stored record has a certificate but no private key."""


# ---------------------------------------------------------------------------
# State store
# ---------------------------------------------------------------------------


class StateStoreError(CertEnrollError):
    """The state file exists but cannot be read as a record store."""
