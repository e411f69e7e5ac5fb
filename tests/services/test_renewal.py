"""Unit tests for certenroll.services.renewal -- expiration window policy."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from certenroll.errors import (
    CertificateParseError,
    InvalidRenewalWindow,
    KeyMismatch,
    MissingPrivateKey,
)
from certenroll.models.bundle import CertificateBundle
from certenroll.services.bundle import serialize_private_key
from certenroll.services.renewal import RenewalPolicyEvaluator, evaluate_renewal

_NOT_BEFORE = datetime(2026, 1, 1, tzinfo=UTC)
_DAY = timedelta(days=1)


# ---------------------------------------------------------------------------
# evaluate_renewal (pure arithmetic)
# ---------------------------------------------------------------------------


class TestEvaluateRenewal:
    def test_window_longer_than_validity_is_invalid(self):
        with pytest.raises(InvalidRenewalWindow, match="less than"):
            evaluate_renewal(_NOT_BEFORE, _NOT_BEFORE + 30 * _DAY, 40 * _DAY, _NOT_BEFORE)

    def test_invalid_window_is_not_retryable(self):
        with pytest.raises(InvalidRenewalWindow) as exc_info:
            evaluate_renewal(_NOT_BEFORE, _NOT_BEFORE + _DAY, 2 * _DAY, _NOT_BEFORE)
        assert exc_info.value.retryable is False

    def test_inside_window_renews(self):
        not_after = _NOT_BEFORE + 30 * _DAY
        decision = evaluate_renewal(_NOT_BEFORE, not_after, 7 * _DAY, not_after - 5 * _DAY)
        assert decision.renew is True
        assert decision.time_until_expiry == 5 * _DAY

    def test_outside_window_keeps(self):
        not_after = _NOT_BEFORE + 30 * _DAY
        decision = evaluate_renewal(_NOT_BEFORE, not_after, 7 * _DAY, not_after - 10 * _DAY)
        assert decision.renew is False
        assert decision.window == 7 * _DAY

    def test_exactly_at_window_edge_renews(self):
        not_after = _NOT_BEFORE + 30 * _DAY
        decision = evaluate_renewal(_NOT_BEFORE, not_after, 7 * _DAY, not_after - 7 * _DAY)
        assert decision.renew is True

    def test_expired_certificate_renews(self):
        not_after = _NOT_BEFORE + 30 * _DAY
        decision = evaluate_renewal(_NOT_BEFORE, not_after, 7 * _DAY, not_after + _DAY)
        assert decision.renew is True
        assert decision.time_until_expiry == -_DAY

    def test_window_equal_to_validity_is_allowed(self):
        not_after = _NOT_BEFORE + 7 * _DAY
        decision = evaluate_renewal(_NOT_BEFORE, not_after, 7 * _DAY, _NOT_BEFORE)
        assert decision.renew is True


# ---------------------------------------------------------------------------
# RenewalPolicyEvaluator (stored bundle checks + arithmetic)
# ---------------------------------------------------------------------------


@pytest.fixture()
def stored(ec_key, make_cert):
    """Return a factory building a stored bundle valid for *days* days."""

    def _make(days: int = 30, passphrase: str | None = None) -> CertificateBundle:
        return CertificateBundle(
            tracking_id="pickup-1",
            certificate=make_cert(ec_key, _NOT_BEFORE, _NOT_BEFORE + days * _DAY),
            chain="",
            private_key_pem=serialize_private_key(ec_key, passphrase),
        )

    return _make


class TestRenewalPolicyEvaluator:
    def test_no_renewal_needed(self, stored):
        evaluator = RenewalPolicyEvaluator(7 * _DAY)
        decision = evaluator.evaluate(stored(), now=_NOT_BEFORE + 20 * _DAY)
        assert decision.renew is False
        assert decision.not_after == _NOT_BEFORE + 30 * _DAY

    def test_renewal_needed(self, stored):
        decision = RenewalPolicyEvaluator(7 * _DAY).evaluate(
            stored(),
            now=_NOT_BEFORE + 25 * _DAY,
        )
        assert decision.renew is True

    def test_invalid_window(self, stored):
        with pytest.raises(InvalidRenewalWindow):
            RenewalPolicyEvaluator(40 * _DAY).evaluate(stored(), now=_NOT_BEFORE)

    def test_encrypted_key_with_passphrase(self, stored):
        bundle = stored(passphrase="pw")
        decision = RenewalPolicyEvaluator(7 * _DAY).evaluate(
            bundle,
            "pw",
            now=_NOT_BEFORE + _DAY,
        )
        assert decision.renew is False

    def test_wrong_passphrase_is_key_mismatch(self, stored):
        with pytest.raises(KeyMismatch):
            RenewalPolicyEvaluator(7 * _DAY).evaluate(
                stored(passphrase="pw"),
                "other",
                now=_NOT_BEFORE,
            )

    def test_key_from_other_pair_is_key_mismatch(self, stored):
        bundle = stored()
        other = serialize_private_key(ec.generate_private_key(ec.SECP256R1()))
        swapped = CertificateBundle(
            tracking_id=bundle.tracking_id,
            certificate=bundle.certificate,
            chain="",
            private_key_pem=other,
        )
        with pytest.raises(KeyMismatch):
            RenewalPolicyEvaluator(7 * _DAY).evaluate(swapped, now=_NOT_BEFORE)

    def test_missing_key(self, stored):
        bundle = stored()
        keyless = CertificateBundle(
            tracking_id=bundle.tracking_id,
            certificate=bundle.certificate,
            chain="",
            private_key_pem="",
        )
        with pytest.raises(MissingPrivateKey):
            RenewalPolicyEvaluator(7 * _DAY).evaluate(keyless, now=_NOT_BEFORE)

    def test_unparseable_certificate_checked_first(self):
        broken = CertificateBundle(
            tracking_id="t",
            certificate="not a certificate",
            chain="",
            private_key_pem="",
        )
        with pytest.raises(CertificateParseError):
            RenewalPolicyEvaluator(7 * _DAY).evaluate(broken, now=_NOT_BEFORE)

    def test_key_check_runs_before_window_check(self, stored):
        bundle = stored()
        keyless = CertificateBundle(
            tracking_id=bundle.tracking_id,
            certificate=bundle.certificate,
            chain="",
            private_key_pem="",
        )
        # the window is also invalid; the key problem is reported
        with pytest.raises(MissingPrivateKey):
            RenewalPolicyEvaluator(40 * _DAY).evaluate(keyless, now=_NOT_BEFORE)
