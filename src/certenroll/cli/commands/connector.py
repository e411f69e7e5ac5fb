"""Connector subcommands."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from certenroll.ca.registry import load_connector
from certenroll.errors import CertEnrollError

if TYPE_CHECKING:
    import argparse

    from certenroll.config import CertEnrollConfig

log = logging.getLogger(__name__)


def run_ping(config: CertEnrollConfig, args: argparse.Namespace) -> None:  # noqa: ARG001
    """Check that the configured CA connector answers."""
    backend = config.settings.connector.backend
    try:
        connector = load_connector(config.settings.connector)
        connector.startup_check()
        connector.ping()
    except CertEnrollError as exc:
        print(f"connector '{backend}' unreachable: {exc.detail}", file=sys.stderr)
        sys.exit(1)
    print(f"connector '{backend}' is reachable")
