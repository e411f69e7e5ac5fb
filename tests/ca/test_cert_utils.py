"""Unit tests for certenroll.ca.cert_utils."""

from __future__ import annotations

import pytest
from cryptography.x509.oid import ExtendedKeyUsageOID

from certenroll.ca.cert_utils import build_eku, build_key_usage
from certenroll.errors import ConfigurationError


class TestBuildKeyUsage:
    def test_flags(self):
        ku = build_key_usage(("digital_signature", "key_encipherment"))
        assert ku.digital_signature is True
        assert ku.key_encipherment is True
        assert ku.content_commitment is False
        assert ku.key_cert_sign is False
        assert ku.crl_sign is False

    def test_encipher_only_needs_key_agreement(self):
        ku = build_key_usage(("key_agreement", "encipher_only"))
        assert ku.key_agreement is True
        assert ku.encipher_only is True

    def test_ca_usages_rejected(self):
        with pytest.raises(ConfigurationError, match="key_cert_sign"):
            build_key_usage(("key_cert_sign",))


class TestBuildEku:
    def test_order_kept(self):
        eku = build_eku(("client_auth", "server_auth"))
        assert list(eku) == [ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.SERVER_AUTH]

    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown extended key usage"):
            build_eku(("smtp",))
