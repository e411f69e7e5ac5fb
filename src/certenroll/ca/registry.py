"""CA connector registry.

Loads the configured CA connector by name and returns an initialised
:class:`CAConnector` instance.  Supports built-in connectors
(``external``, ``local``) and custom connectors via the ``ext:`` prefix.

Usage::

    from certenroll.ca.registry import load_connector

    connector = load_connector(settings.connector)
    tracking_id = connector.submit(request)
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from certenroll.ca.base import CAConnector
from certenroll.errors import ConfigurationError

if TYPE_CHECKING:
    from certenroll.config.settings import ConnectorSettings

log = logging.getLogger(__name__)

# Maps config string -> (module_path, class_name)
_BUILTIN_CONNECTORS: dict[str, tuple[str, str]] = {
    "external": ("certenroll.ca.external", "ExternalCAConnector"),
    "local": ("certenroll.ca.local", "LocalCAConnector"),
}

_REQUIRED_METHODS = ("submit", "retrieve", "ping")


def load_connector(settings: ConnectorSettings) -> CAConnector:
    """Load and return the configured CA connector.

    Parameters
    ----------
    settings:
        The ``connector`` section from :class:`CertEnrollSettings`.

    Returns
    -------
    CAConnector
        An initialised connector instance.

    Raises
    ------
    ConfigurationError
        If the connector cannot be loaded.

    """
    name = settings.backend

    if name in _BUILTIN_CONNECTORS:
        mod_path, cls_name = _BUILTIN_CONNECTORS[name]
        cls = _import_class(mod_path, cls_name, name)
    elif name.startswith("ext:"):
        fqn = name[4:]
        mod_path, _, cls_name = fqn.rpartition(".")
        if not mod_path:
            msg = (
                f"Invalid custom connector '{fqn}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise ConfigurationError(msg)
        cls = _import_class(mod_path, cls_name, name)
    else:
        msg = (
            f"Unknown CA connector '{name}'; "
            f"built-in options: {sorted(_BUILTIN_CONNECTORS)}. "
            "Use 'ext:mypackage.module.ClassName' for custom connectors."
        )
        raise ConfigurationError(msg)

    _validate_class(cls, name)
    connector = cls(settings)
    log.info("Loaded CA connector: %s", name)
    return connector


def _import_class(mod_path: str, cls_name: str, label: str) -> type:
    try:
        module = importlib.import_module(mod_path)
        return getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load CA connector '{label}': {exc}"
        raise ConfigurationError(msg) from exc


def _validate_class(cls: type, label: str) -> None:
    """Verify that a connector class has the required methods."""
    if not (isinstance(cls, type) and issubclass(cls, CAConnector)):
        msg = f"CA connector '{label}' is not a subclass of CAConnector"
        raise ConfigurationError(msg)

    for method_name in _REQUIRED_METHODS:
        method = getattr(cls, method_name, None)
        if method is None or getattr(method, "__isabstractmethod__", False):
            msg = f"CA connector '{label}' does not implement '{method_name}()'"
            raise ConfigurationError(msg)
