"""Value types for the enrollment engine.

Specs, bundles and decisions are frozen dataclasses; use
:func:`dataclasses.replace` for modifications.  :class:`SigningRequest`
is the one mutable type: it is owned by the enrollment driver for the
duration of a single enrollment.
"""

from certenroll.models.bundle import (
    CertificateBundle,
    RenewalDecision,
    RetrievedCertificate,
)
from certenroll.models.request import SigningRequest, Subject
from certenroll.models.spec import CertificateSpec

__all__ = [
    "CertificateBundle",
    "CertificateSpec",
    "RenewalDecision",
    "RetrievedCertificate",
    "SigningRequest",
    "Subject",
]
