"""Certificate subcommands: ``enroll``, ``check`` and ``delete``.

Results are printed to stdout as one JSON object.  Private keys are
written to the state file only, never to stdout.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import TYPE_CHECKING

from cryptography import x509

from certenroll.ca.registry import load_connector
from certenroll.errors import CertEnrollError
from certenroll.repositories.state import JsonFileStateStore
from certenroll.services.certificate import CertificateService

if TYPE_CHECKING:
    import argparse

    from certenroll.config import CertEnrollConfig
    from certenroll.models.bundle import CertificateBundle
    from certenroll.models.spec import CertificateSpec

log = logging.getLogger(__name__)


def _build_service(config: CertEnrollConfig, *, check: bool = True) -> CertificateService:
    settings = config.settings
    connector = load_connector(settings.connector)
    if check:
        connector.startup_check()
    return CertificateService(
        connector,
        JsonFileStateStore(settings.state.path),
        settings.enrollment,
    )


def _lookup_spec(config: CertEnrollConfig, name: str) -> CertificateSpec:
    certificates = config.settings.certificates
    if name not in certificates:
        known = ", ".join(sorted(certificates)) or "none"
        print(
            f"error: certificate '{name}' is not configured (known: {known})",
            file=sys.stderr,
        )
        sys.exit(1)
    return certificates[name]


def _summary(bundle: CertificateBundle, **extra: object) -> str:
    cert = x509.load_pem_x509_certificate(bundle.certificate.encode("ascii"))
    data = {
        "tracking_id": bundle.tracking_id,
        "subject": cert.subject.rfc4514_string(),
        "serial_number": format(cert.serial_number, "x"),
        "not_before": cert.not_valid_before_utc.isoformat(),
        "not_after": cert.not_valid_after_utc.isoformat(),
        **extra,
    }
    return json.dumps(data, indent=2)


def run_certificate(config: CertEnrollConfig, args: argparse.Namespace) -> None:
    """Dispatch the certificate subcommands."""
    try:
        if args.command == "enroll":
            spec = _lookup_spec(config, args.name)
            bundle = _build_service(config).create(spec)
            print(_summary(bundle))
        elif args.command == "check":
            spec = _lookup_spec(config, args.name)
            bundle = _build_service(config).read(args.tracking_id, spec)
            if bundle is None:
                print(
                    f"error: no stored certificate with tracking ID {args.tracking_id}",
                    file=sys.stderr,
                )
                sys.exit(1)
            print(_summary(bundle, renewed=bundle.tracking_id != args.tracking_id))
        elif args.command == "delete":
            _build_service(config, check=False).delete(args.tracking_id)
            print(f"certificate record {args.tracking_id} removed")
        else:
            sys.exit(1)
    except CertEnrollError as exc:
        if args.debug:
            raise
        retry = " (retryable)" if exc.retryable else ""
        print(f"error: {type(exc).__name__}: {exc.detail}{retry}", file=sys.stderr)
        sys.exit(1)
