"""Logging subsystem for certenroll.

Public API::

    from certenroll.logging import configure_logging

    configure_logging(settings.logging)
"""

from certenroll.logging.sanitize import sanitize_for_logs, sanitize_pem
from certenroll.logging.setup import configure_logging

__all__ = ["configure_logging", "sanitize_for_logs", "sanitize_pem"]
