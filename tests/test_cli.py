"""
Tests for the command line interface (scan_audit/cli.py).
"""

import json
from unittest.mock import patch

import pytest

from scan_audit import cli
from scan_audit.config import Config
from scan_audit.errors import AuthenticationError
from scan_audit.session import ServiceConnection, SessionContext, TokenCredential
from scan_audit.version_gate import parse_service_version


def fake_session(version="3.41.4"):
    connection = ServiceConnection("https://acme.io/xray/", TokenCredential("tok"))
    return SessionContext(connection=connection, version=parse_service_version(version))


def scan_file(tmp_path, licenses=1):
    path = tmp_path / "results.json"
    path.write_text(json.dumps([{"vulnerabilities": [{"issue_id": "X1"}], "licenses": [{}] * licenses}]))
    return str(path)


class TestParser:
    """Tests for argument parsing."""

    def test_requires_subcommand(self):
        """Test a bare invocation is a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 2

    def test_version_flag(self, capsys):
        """Test --version prints the harness version."""
        with pytest.raises(SystemExit):
            cli.main(["--version"])
        assert "scan-audit 1.0.0" in capsys.readouterr().out

    def test_unknown_shell(self):
        """Test only bash and zsh completion are offered."""
        with pytest.raises(SystemExit):
            cli.main(["completion", "fish"])


class TestCompletionCommand:
    """Tests for 'completion'."""

    def test_bash(self, capsys):
        """Test the bash script lists the sub-commands."""
        assert cli.main(["completion", "bash"]) == 0
        out = capsys.readouterr().out
        assert 'words="run validate version completion"' in out

    def test_zsh(self, capsys):
        """Test the zsh script header."""
        assert cli.main(["completion", "zsh"]) == 0
        assert capsys.readouterr().out.startswith("#compdef scan-audit")


class TestValidateCommand:
    """Tests for 'validate'."""

    def test_pass(self, tmp_path, capsys):
        """Test results meeting the floors exit 0."""
        assert cli.main(["validate", scan_file(tmp_path), "--min-vulnerabilities", "1", "--min-licenses", "1"]) == 0
        assert "OK: 1 scan response(s)" in capsys.readouterr().out

    def test_below_threshold(self, tmp_path, capsys):
        """Test a deficit exits 1 and names the category."""
        assert cli.main(["validate", scan_file(tmp_path, licenses=0), "--min-licenses", "2"]) == 1
        err = capsys.readouterr().err
        assert "validation failed" in err
        assert "licenses" in err

    def test_malformed(self, tmp_path, capsys):
        """Test unparsable output exits 1 as a validation stage failure."""
        path = tmp_path / "results.json"
        path.write_text("Scanning...")
        assert cli.main(["validate", str(path)]) == 1
        assert "validation failed" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        """Test an unreadable file exits 1."""
        assert cli.main(["validate", str(tmp_path / "absent.json")]) == 1
        assert "Cannot read" in capsys.readouterr().err

    def test_negative_threshold(self, tmp_path):
        """Test negative floors are rejected."""
        assert cli.main(["validate", scan_file(tmp_path), "--min-licenses", "-1"]) == 1


class TestRunCommand:
    """Tests for 'run'."""

    def test_disabled_skips_everything(self, tmp_path, capsys):
        """Test a disabled harness reports every scenario skipped and exits 0."""
        config = Config(resources_path=str(tmp_path))
        with patch("scan_audit.cli.load_config", return_value=config), \
                patch("scan_audit.cli.open_session") as mock_open:
            assert cli.main(["run", "--json"]) == 0

        mock_open.assert_not_called()
        data = json.loads(capsys.readouterr().out)
        assert {r["status"] for r in data["results"]} == {"skipped"}
        assert len(data["results"]) == 4

    def test_enabled_without_entrypoint(self, tmp_path, capsys):
        """Test a missing entrypoint is a configuration failure."""
        config = Config(enabled=True, resources_path=str(tmp_path))
        with patch("scan_audit.cli.load_config", return_value=config):
            assert cli.main(["run"]) == 1
        err = capsys.readouterr().err
        assert "configuration failed" in err
        assert "SCAN_AUDIT_ENTRYPOINT" in err

    def test_auth_failure_names_stage(self, tmp_path, capsys):
        """Test a rejected handshake aborts with the auth stage."""
        config = Config(enabled=True, url="https://acme.io", access_token="t",
                        entrypoint="json:dumps", resources_path=str(tmp_path))
        with patch("scan_audit.cli.load_config", return_value=config), \
                patch("scan_audit.cli.open_session", side_effect=AuthenticationError("rejected")):
            assert cli.main(["run", "binary-scan"]) == 1
        assert "auth failed: rejected" in capsys.readouterr().err

    def test_run_scenario(self, tmp_path, capsys):
        """Test a selected scenario runs through the loaded entrypoint."""
        (tmp_path / "xray" / "binaries").mkdir(parents=True)
        calls = []

        def fake_cli(argv):
            calls.append(argv)
            print(json.dumps([{"vulnerabilities": [{}], "licenses": [{}]}]))

        config = Config(enabled=True, url="https://acme.io", access_token="tok",
                        entrypoint="fake:main", command_prefix=("xr",), resources_path=str(tmp_path))
        with patch("scan_audit.cli.load_config", return_value=config), \
                patch("scan_audit.cli.load_entrypoint", return_value=fake_cli), \
                patch("scan_audit.cli.open_session", return_value=fake_session()):
            assert cli.main(["run", "binary-scan"]) == 0

        assert calls[0][:2] == ["xr", "scan"]
        assert calls[0][-1] == "--access-token=tok"
        out = capsys.readouterr().out
        assert "PASSED   binary-scan" in out
        assert "Passed: 1" in out

    def test_unknown_scenario(self, tmp_path, capsys):
        """Test unknown scenario names exit 1."""
        with patch("scan_audit.cli.load_config", return_value=Config(resources_path=str(tmp_path))):
            assert cli.main(["run", "audit-pip"]) == 1
        assert "Unknown scenario" in capsys.readouterr().err


class TestVersionCommand:
    """Tests for 'version'."""

    def test_prints_version(self, capsys):
        """Test the service version is printed."""
        with patch("scan_audit.cli.load_config", return_value=Config()), \
                patch("scan_audit.cli.open_session", return_value=fake_session()):
            assert cli.main(["version"]) == 0
        assert capsys.readouterr().out == "3.41.4\n"

    def test_require_too_old_is_skip(self, capsys):
        """Test an old service is reported as a skip, not a failure."""
        with patch("scan_audit.cli.load_config", return_value=Config()), \
                patch("scan_audit.cli.open_session", return_value=fake_session("2.0.0")):
            assert cli.main(["version", "--require", "3.0.0"]) == 0
        err = capsys.readouterr().err
        assert "Skipping" in err
        assert "2.0.0" in err
