"""Enrollment service layer.

Request building, the enrollment protocol driver, renewal evaluation,
bundle assembly and the certificate lifecycle service that ties them
together.
"""

from certenroll.services.bundle import assemble_bundle
from certenroll.services.certificate import CertificateService
from certenroll.services.enrollment import EnrollmentDriver
from certenroll.services.keys import build_signing_request
from certenroll.services.renewal import RenewalPolicyEvaluator, evaluate_renewal
from certenroll.services.subject import assemble_identity

__all__ = [
    "CertificateService",
    "EnrollmentDriver",
    "RenewalPolicyEvaluator",
    "assemble_bundle",
    "assemble_identity",
    "build_signing_request",
    "evaluate_renewal",
]
