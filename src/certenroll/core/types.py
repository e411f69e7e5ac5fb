"""Enumerated types shared across the enrollment engine.

All enums inherit from ``StrEnum`` so their ``.value`` is the plain
string used in configuration files and in the persisted state record.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class KeyAlgorithm(StrEnum):
    RSA = "RSA"
    ECDSA = "ECDSA"


class EllipticCurve(StrEnum):
    P224 = "P224"
    P256 = "P256"
    P384 = "P384"
    P521 = "P521"


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


class EnrollmentState(StrEnum):
    BUILT = "built"
    SUBMITTED = "submitted"
    PENDING = "pending"
    RETRIEVED = "retrieved"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Retrieval status reported by a CA
# ---------------------------------------------------------------------------


class IssuanceStatus(StrEnum):
    PENDING = "pending"
    ISSUED = "issued"
    REJECTED = "rejected"
