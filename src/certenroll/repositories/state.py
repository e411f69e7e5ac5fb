"""Persisted state records, keyed by tracking identifier.

The engine's contract with its state store is small: write a bundle on
successful enrollment, overwrite it wholesale on renewal, and clear it on
delete.  Two implementations are provided: an in-process dict for tests
and embedding, and a JSON file for the CLI.
"""

from __future__ import annotations

import abc
import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from certenroll.errors import StateStoreError
from certenroll.models.bundle import CertificateBundle

log = logging.getLogger(__name__)


class StateStore(abc.ABC):
    """Key-value store of :class:`CertificateBundle` records."""

    @abc.abstractmethod
    def get(self, tracking_id: str) -> CertificateBundle | None:
        """Return the record for *tracking_id*, or ``None``."""

    @abc.abstractmethod
    def put(self, bundle: CertificateBundle) -> None:
        """Write *bundle* under its tracking ID, replacing any previous record."""

    @abc.abstractmethod
    def delete(self, tracking_id: str) -> None:
        """Clear the record for *tracking_id*.  Missing records are ignored."""


class MemoryStateStore(StateStore):
    """Thread-safe in-memory store."""

    def __init__(self) -> None:
        self._records: dict[str, dict] = {}
        self._lock = threading.Lock()

    def get(self, tracking_id: str) -> CertificateBundle | None:
        with self._lock:
            record = self._records.get(tracking_id)
        return CertificateBundle.from_record(record) if record is not None else None

    def put(self, bundle: CertificateBundle) -> None:
        with self._lock:
            self._records[bundle.tracking_id] = bundle.to_record()

    def delete(self, tracking_id: str) -> None:
        with self._lock:
            self._records.pop(tracking_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class JsonFileStateStore(StateStore):
    """Store records in a single JSON file.

    Every write rewrites the file through a temporary file and
    :func:`os.replace`, so readers never see a half-written record.  The
    file holds private keys; it is created with mode ``0600``.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, dict]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Failed to read state file {self._path}: {exc}"
            raise StateStoreError(msg) from exc
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"State file {self._path} is not valid JSON: {exc}"
            raise StateStoreError(msg) from exc
        records = data.get("certificates", {}) if isinstance(data, dict) else None
        if not isinstance(records, dict):
            msg = f"State file {self._path} has no 'certificates' mapping"
            raise StateStoreError(msg)
        return records

    def _write_all(self, records: dict[str, dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"certificates": records}, fh, indent=2, sort_keys=True)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, tracking_id: str) -> CertificateBundle | None:
        with self._lock:
            record = self._read_all().get(tracking_id)
        return CertificateBundle.from_record(record) if record is not None else None

    def put(self, bundle: CertificateBundle) -> None:
        with self._lock:
            records = self._read_all()
            records[bundle.tracking_id] = bundle.to_record()
            self._write_all(records)
        log.debug("Stored certificate record %s in %s", bundle.tracking_id, self._path)

    def delete(self, tracking_id: str) -> None:
        with self._lock:
            records = self._read_all()
            if records.pop(tracking_id, None) is None:
                return
            self._write_all(records)
        log.debug("Removed certificate record %s from %s", tracking_id, self._path)

    def tracking_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._read_all())
