"""certenroll configuration loader.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    CertEnrollConfig(config_file="/etc/certenroll/config.yaml")

    # 2. Any module retrieves it afterwards
    from certenroll.config import get_config
    cfg = get_config()
    cfg.settings.enrollment.retrieve_timeout_seconds  # typed access

    # 3. Dynamic access
    cfg.get("connector.external.zone", default="Default")

Loading order: read YAML/JSON, resolve ``${VAR}`` references, validate
against the bundled JSON schema, run cross-field checks, build the typed
settings tree.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from certenroll.config.settings import CertEnrollSettings, build_settings
from certenroll.core.types import EllipticCurve, KeyAlgorithm

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_BUILTIN_BACKENDS = frozenset({"external", "local"})

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

_MIN_RSA_BITS = 512
_RECOMMENDED_RSA_BITS = 2048

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: CertEnrollConfig | None = None


def get_config() -> CertEnrollConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`CertEnrollConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "CertEnrollConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_file(config_file: Path) -> dict:
    with config_file.open(encoding="utf-8") as f:
        if config_file.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{config_file}: top-level configuration must be a mapping"
        raise ConfigValidationError([msg])
    return data


def _schema_errors(data: dict) -> list[str]:
    schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
    validator = Draft202012Validator(schema)
    errors = []
    for err in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        location = ".".join(str(p) for p in err.absolute_path) or "(root)"
        errors.append(f"{location}: {err.message}")
    return errors


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class CertEnrollConfig:
    """Central configuration for certenroll.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(self, *, config_file: str | Path) -> None:
        """Load, validate and materialise the configuration singleton.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file.

        Raises
        ------
        ConfigValidationError
            If the file violates the schema or the cross-field checks.

        """
        global _instance  # noqa: PLW0603

        self._source = Path(config_file)
        self._data = self._load()

        schema_errors = _schema_errors(self._data)
        if schema_errors:
            raise ConfigValidationError(schema_errors)
        self.additional_checks()

        self._settings: CertEnrollSettings = build_settings(self._data)
        _instance = self

    # -- lifecycle ------------------------------------------------------------

    def _load(self) -> dict:
        """Load config file then resolve ``${VAR}`` env-var references.

        Runs env-var resolution **before** schema validation so that
        substituted values (e.g. ``${LOG_LEVEL:-INFO}``) are checked
        against enum constraints in the schema.
        """
        data = _read_file(self._source)
        _resolve_env_vars(data)
        return data

    # -- access ---------------------------------------------------------------

    @property
    def data(self) -> dict:
        """Raw, env-resolved configuration mapping."""
        return self._data

    @property
    def settings(self) -> CertEnrollSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    def get(self, path: str, default: Any = None) -> Any:  # noqa: ANN401
        """Return the raw value at dotted *path*, or *default*."""
        node: Any = self._data
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- cross-field validation -----------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation run after schema validation."""
        errors: list[str] = []
        warnings: list[str] = []

        connector = self._data.get("connector") or {}
        enrollment = self._data.get("enrollment") or {}
        certificates = self._data.get("certificates") or {}

        # -- connector --
        backend = connector.get("backend", "external")
        if backend == "external":
            ext = connector.get("external") or {}
            if not ext.get("base_url"):
                errors.append(
                    "connector.external.base_url is required when connector.backend is 'external'",
                )
            if bool(ext.get("client_cert_path")) != bool(ext.get("client_key_path")):
                errors.append(
                    "connector.external.client_cert_path and client_key_path "
                    "must be configured together",
                )
        elif backend == "local":
            local = connector.get("local") or {}
            for key in ("root_cert_path", "root_key_path"):
                if not local.get(key):
                    errors.append(
                        f"connector.local.{key} is required when connector.backend is 'local'",
                    )
        elif backend.startswith("ext:"):
            if not _CLASS_PATH_RE.match(backend[4:]):
                errors.append(
                    f"connector.backend '{backend}' is not a valid fully qualified "
                    "Python class path (expected 'ext:package.module.ClassName')",
                )
        else:
            errors.append(
                f"connector.backend '{backend}' is unknown. "
                f"Built-in backends: {sorted(_BUILTIN_BACKENDS)}. "
                "Use 'ext:fully.qualified.Class' for custom connectors.",
            )

        # -- enrollment --
        settle = enrollment.get("settle_delay_seconds", 2)
        timeout = enrollment.get("retrieve_timeout_seconds", 180)
        if settle >= timeout:
            errors.append(
                f"enrollment.settle_delay_seconds ({settle}) must be < "
                f"enrollment.retrieve_timeout_seconds ({timeout})",
            )

        # -- certificates --
        algorithms = {a.value for a in KeyAlgorithm}
        curves = {c.value for c in EllipticCurve}
        for name, cert in certificates.items():
            prefix = f"certificates.{name}"
            algorithm = cert.get("algorithm") or "RSA"
            if algorithm not in algorithms:
                errors.append(
                    f"{prefix}.algorithm '{algorithm}' is not supported; "
                    f"choose one of {sorted(algorithms)}",
                )
            if algorithm == "ECDSA" and cert.get("ecdsa_curve", "P224") not in curves:
                errors.append(
                    f"{prefix}.ecdsa_curve '{cert.get('ecdsa_curve')}' is not supported; "
                    f"choose one of {sorted(curves)}",
                )
            rsa_bits = cert.get("rsa_bits", _RECOMMENDED_RSA_BITS)
            if algorithm == "RSA":
                if rsa_bits < _MIN_RSA_BITS:
                    errors.append(
                        f"{prefix}.rsa_bits ({rsa_bits}) must be >= {_MIN_RSA_BITS}",
                    )
                elif rsa_bits < _RECOMMENDED_RSA_BITS:
                    warnings.append(
                        f"{prefix}.rsa_bits ({rsa_bits}) is below the recommended "
                        f"{_RECOMMENDED_RSA_BITS}",
                    )
            if not cert.get("common_name") and not cert.get("san_dns"):
                errors.append(
                    f"{prefix} needs a common_name or at least one san_dns entry",
                )
            if cert.get("expiration_window", 168) <= 0:
                errors.append(
                    f"{prefix}.expiration_window must be a positive number of hours",
                )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers --------------------------------------------------------------

    def reload_settings(self) -> CertEnrollSettings:
        """Re-read the config file and rebuild settings.

        Does not reset the singleton.
        """
        data = self._load()
        schema_errors = _schema_errors(data)
        if schema_errors:
            raise ConfigValidationError(schema_errors)
        return build_settings(data)

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return f"<CertEnrollConfig config_file={self._source}>"
