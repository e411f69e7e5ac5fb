"""Configuration subsystem for certenroll.

Public API::

    from certenroll.config import get_config, CertEnrollConfig

    # At startup (CLI only):
    CertEnrollConfig(config_file="config.yaml")

    # Everywhere else:
    cfg     = get_config()
    timeout = cfg.settings.enrollment.retrieve_timeout_seconds
    zone    = cfg.get("connector.external.zone")
"""

from certenroll.config.certenroll_config import (
    CertEnrollConfig,
    ConfigValidationError,
    get_config,
)
from certenroll.config.settings import (
    CertEnrollSettings,
    ConnectorSettings,
    EnrollmentSettings,
    ExternalConnectorSettings,
    LocalConnectorSettings,
    LoggingSettings,
    StateSettings,
)

__all__ = [
    "CertEnrollConfig",
    "CertEnrollSettings",
    "ConfigValidationError",
    "ConnectorSettings",
    "EnrollmentSettings",
    "ExternalConnectorSettings",
    "LocalConnectorSettings",
    "LoggingSettings",
    "StateSettings",
    "get_config",
]
