"""Unit tests for certenroll.ca.registry.load_connector."""

from __future__ import annotations

import pytest

from certenroll.ca.base import CAConnector
from certenroll.ca.external import ExternalCAConnector
from certenroll.ca.local import LocalCAConnector
from certenroll.ca.registry import load_connector
from certenroll.config.settings import build_settings
from certenroll.errors import ConfigurationError
from certenroll.models.bundle import RetrievedCertificate

# ---------------------------------------------------------------------------
# Custom connectors used via ``ext:``
# ---------------------------------------------------------------------------


class StubConnector(CAConnector):
    def submit(self, request):
        return "stub-1"

    def retrieve(self, tracking_id, *, timeout):
        return RetrievedCertificate(certificate="")

    def ping(self):
        return None


class IncompleteConnector(CAConnector):
    def submit(self, request):
        return "x"

    def ping(self):
        return None


class NotAConnector:
    pass


def _settings(backend: str):
    return build_settings(
        {"connector": {"backend": backend, "external": {"base_url": "https://ca"}}},
    ).connector


class TestLoadConnector:
    def test_external_builtin(self):
        assert isinstance(load_connector(_settings("external")), ExternalCAConnector)

    def test_local_builtin(self):
        assert isinstance(load_connector(_settings("local")), LocalCAConnector)

    def test_custom_connector(self):
        connector = load_connector(_settings(f"ext:{__name__}.StubConnector"))
        assert isinstance(connector, StubConnector)
        assert connector.submit(None) == "stub-1"

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError, match="Unknown CA connector"):
            load_connector(_settings("venafi"))

    def test_ext_without_module(self):
        with pytest.raises(ConfigurationError, match="fully"):
            load_connector(_settings("ext:Stub"))

    def test_ext_missing_module(self):
        with pytest.raises(ConfigurationError, match="Failed to load"):
            load_connector(_settings("ext:no_such_pkg.mod.Cls"))

    def test_ext_missing_class(self):
        with pytest.raises(ConfigurationError, match="Failed to load"):
            load_connector(_settings(f"ext:{__name__}.Nope"))

    def test_ext_not_subclass(self):
        with pytest.raises(ConfigurationError, match="not a subclass"):
            load_connector(_settings(f"ext:{__name__}.NotAConnector"))

    def test_ext_abstract_method_left(self):
        with pytest.raises(ConfigurationError, match="retrieve"):
            load_connector(_settings(f"ext:{__name__}.IncompleteConnector"))
