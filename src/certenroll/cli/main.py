"""certenroll command-line entry point.

Usage::

    certenroll -c /etc/certenroll/config.yaml ping
    certenroll -c config.yaml --validate-only
    certenroll -c config.yaml enroll web
    certenroll -c config.yaml check web <tracking-id>
    certenroll -c config.yaml delete <tracking-id>
    python -m certenroll -c config.yaml ping
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certenroll.config import CertEnrollConfig

log = logging.getLogger(__name__)


def _get_version() -> str:
    from certenroll import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="certenroll",
        description="certenroll: X.509 certificate enrollment and renewal",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("ping", help="Check that the CA connector is reachable")

    enroll = subparsers.add_parser("enroll", help="Enroll a configured certificate")
    enroll.add_argument("name", help="Certificate name under 'certificates'")

    check = subparsers.add_parser(
        "check",
        help="Check a stored certificate and renew it if it is due",
    )
    check.add_argument("name", help="Certificate name under 'certificates'")
    check.add_argument("tracking_id", help="Tracking ID returned by 'enroll'")

    delete = subparsers.add_parser("delete", help="Forget a stored certificate")
    delete.add_argument("tracking_id", help="Tracking ID returned by 'enroll'")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"error: {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs the command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    from certenroll.config import CertEnrollConfig, ConfigValidationError

    try:
        config = CertEnrollConfig(config_file=config_path)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except (OSError, ValueError) as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from certenroll.logging import configure_logging

    configure_logging(config.settings.logging)
    if args.debug:
        logging.getLogger("certenroll").setLevel(logging.DEBUG)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    # -- dispatch subcommand ---
    command = args.command

    if command == "ping":
        from certenroll.cli.commands.connector import run_ping

        run_ping(config, args)
    elif command in ("enroll", "check", "delete"):
        from certenroll.cli.commands.certificate import run_certificate

        run_certificate(config, args)
    else:
        parser.print_help(sys.stderr)
        sys.exit(1)


def _print_settings_summary(config: CertEnrollConfig) -> None:
    """Print a short summary of the loaded configuration."""
    settings = config.settings
    print(f"configuration OK: {config._source}")  # noqa: SLF001
    print(f"  connector: {settings.connector.backend}")
    print(
        f"  enrollment: settle {settings.enrollment.settle_delay_seconds:g}s, "
        f"timeout {settings.enrollment.retrieve_timeout_seconds:g}s",
    )
    print(f"  state: {settings.state.path}")
    names = ", ".join(sorted(settings.certificates)) or "none"
    print(f"  certificates: {names}")
