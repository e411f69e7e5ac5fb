"""Tests for the certenroll command-line interface."""

from __future__ import annotations

import json

import pytest
import yaml

from certenroll import __version__
from certenroll.cli.main import main
from certenroll.repositories.state import JsonFileStateStore


def _run(argv: list[str]) -> int:
    """Run the CLI and return its exit code (0 when it returns normally)."""
    try:
        main(argv)
    except SystemExit as exc:
        return exc.code or 0
    return 0


@pytest.fixture()
def state(minimal_config_data) -> JsonFileStateStore:
    return JsonFileStateStore(minimal_config_data["state"]["path"])


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


class TestGlobalOptions:
    def test_version(self, capsys):
        assert _run(["-c", "x", "--version"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_missing_config_file(self, tmp_path, capsys):
        assert _run(["-c", str(tmp_path / "missing.yaml"), "ping"]) == 1
        assert "configuration file not found" in capsys.readouterr().err

    def test_invalid_config(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"connector": {"backend": "local"}}), encoding="utf-8")
        assert _run(["-c", str(path), "ping"]) == 1
        assert "Configuration validation failed" in capsys.readouterr().err

    def test_validate_only(self, tmp_config_file, capsys):
        assert _run(["-c", str(tmp_config_file), "--validate-only"]) == 0
        out = capsys.readouterr().out
        assert "configuration OK" in out
        assert "connector: local" in out
        assert "certificates: web" in out

    def test_no_command(self, tmp_config_file):
        assert _run(["-c", str(tmp_config_file)]) == 1


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestCommands:
    def test_ping(self, tmp_config_file, capsys):
        assert _run(["-c", str(tmp_config_file), "ping"]) == 0
        assert "reachable" in capsys.readouterr().out

    def test_ping_failure(self, tmp_config_file, root_ca, capsys):
        root_ca["cert_path"].unlink()
        assert _run(["-c", str(tmp_config_file), "ping"]) == 1
        assert "unreachable" in capsys.readouterr().err

    def test_enroll_check_delete(self, tmp_config_file, state, capsys):
        cfg = str(tmp_config_file)

        assert _run(["-c", cfg, "enroll", "web"]) == 0
        enrolled = json.loads(capsys.readouterr().out)
        tracking_id = enrolled["tracking_id"]
        assert "CN=example.com" in enrolled["subject"]
        assert state.get(tracking_id) is not None

        assert _run(["-c", cfg, "check", "web", tracking_id]) == 0
        checked = json.loads(capsys.readouterr().out)
        assert checked["tracking_id"] == tracking_id
        assert checked["renewed"] is False

        assert _run(["-c", cfg, "delete", tracking_id]) == 0
        assert state.get(tracking_id) is None

    def test_enroll_does_not_print_private_key(self, tmp_config_file, capsys):
        assert _run(["-c", str(tmp_config_file), "enroll", "web"]) == 0
        assert "PRIVATE KEY" not in capsys.readouterr().out

    def test_enroll_unknown_name(self, tmp_config_file, capsys):
        assert _run(["-c", str(tmp_config_file), "enroll", "mail"]) == 1
        assert "not configured" in capsys.readouterr().err

    def test_check_unknown_tracking_id(self, tmp_config_file, capsys):
        assert _run(["-c", str(tmp_config_file), "check", "web", "nope"]) == 1
        assert "no stored certificate" in capsys.readouterr().err

    def test_engine_error_reported(self, tmp_config_file, root_ca, capsys):
        root_ca["key_path"].unlink()
        assert _run(["-c", str(tmp_config_file), "enroll", "web"]) == 1
        err = capsys.readouterr().err
        assert "ConnectorUnreachable" in err
        assert "(retryable)" in err

    def test_corrupt_state_file_reported(self, tmp_config_file, state, capsys):
        state.path.write_text("not json", encoding="utf-8")
        assert _run(["-c", str(tmp_config_file), "check", "web", "abc"]) == 1
        err = capsys.readouterr().err
        assert "StateStoreError" in err
        assert "not valid JSON" in err
