"""
Tests for configuration parsing (scan_audit/config.py).
"""

import json
from unittest.mock import patch

import pytest
import yaml

from scan_audit.config import (
    Config,
    ScenarioConfig,
    _load_json,
    _load_yaml,
    load_config,
    load_config_file,
    validate_config,
)
from scan_audit.errors import ConfigurationError


CONFIG_YAML = """\
version: 1
service:
  url: https://acme.jfrog.io
  path: xray/
  timeout_seconds: 15
  credentials:
    access_token: file-token
harness:
  resources_path: fixtures
  enabled: true
  entrypoint: "mycli.main:main"
  command_prefix: [xr]
scenarios:
  audit-npm:
    min_licenses: 2
  audit-gradle:
    enabled: false
"""


def write(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content)
    return str(path)


class TestScenarioConfig:
    """Tests for ScenarioConfig dataclass."""

    def test_defaults(self):
        """Test ScenarioConfig defaults leave every floor unset."""
        config = ScenarioConfig()
        assert config.min_violations is None
        assert config.min_version is None
        assert config.enabled is True

    def test_from_dict_partial(self):
        """Test creating ScenarioConfig from a partial dictionary."""
        config = ScenarioConfig.from_dict({"min_vulnerabilities": 3, "enabled": False})
        assert config.min_vulnerabilities == 3
        assert config.min_licenses is None
        assert config.enabled is False


class TestConfig:
    """Tests for Config dataclass."""

    def test_defaults(self):
        """Test Config with default values."""
        config = Config()
        assert config.service_path == "xray/"
        assert config.resources_path == "testdata"
        assert config.enabled is False
        assert config.timeout_seconds == 30
        assert config.scenarios == {}

    def test_invalid_version(self):
        """Test unsupported schema versions are rejected."""
        with pytest.raises(ValueError, match="Unsupported config version"):
            Config(version=2)

    @pytest.mark.parametrize("timeout", [0, 301])
    def test_invalid_timeout(self, timeout):
        """Test timeout bounds."""
        with pytest.raises(ValueError, match="Invalid timeout_seconds"):
            Config(timeout_seconds=timeout)

    def test_invalid_entrypoint(self):
        """Test entrypoints must name a module and a function."""
        with pytest.raises(ValueError, match="Invalid entrypoint"):
            Config(entrypoint="mycli.main")

    def test_secrets_not_in_repr(self):
        """Test credentials stay out of repr."""
        config = Config(access_token="tok-123", password="pw-456")
        assert "tok-123" not in repr(config)
        assert "pw-456" not in repr(config)

    def test_from_dict(self):
        """Test nested service/harness/scenarios sections."""
        config = Config.from_dict(yaml.safe_load(CONFIG_YAML), source="x.yml")
        assert config.url == "https://acme.jfrog.io"
        assert config.access_token == "file-token"
        assert config.timeout_seconds == 15
        assert config.enabled is True
        assert config.entrypoint == "mycli.main:main"
        assert config.command_prefix == ("xr",)
        assert config.get_scenario_config("audit-npm").min_licenses == 2
        assert config.get_scenario_config("audit-gradle").enabled is False
        assert config.source == "x.yml"

    def test_get_scenario_config_default(self):
        """Test unknown scenarios get default overrides."""
        assert Config().get_scenario_config("audit-maven") == ScenarioConfig()

    def test_immutable(self):
        """Test that Config is immutable."""
        config = Config()
        with pytest.raises(AttributeError):
            config.url = "https://other.io"


class TestMergeWith:
    """Tests for Config.merge_with."""

    def test_prefers_self(self):
        """Test values from the higher priority config win."""
        project = Config(url="https://project.io", resources_path="res")
        user = Config(url="https://user.io", entrypoint="cli:main", timeout_seconds=60)

        merged = project.merge_with(user)
        assert merged.url == "https://project.io"
        assert merged.resources_path == "res"
        assert merged.entrypoint == "cli:main"
        assert merged.timeout_seconds == 60

    def test_credentials_merge_as_unit(self):
        """Test a token never combines with a user from another file."""
        project = Config(user="admin", password="pw")
        user = Config(access_token="tok")

        merged = project.merge_with(user)
        assert merged.user == "admin"
        assert merged.password == "pw"
        assert merged.access_token == ""

    def test_credentials_fall_through(self):
        """Test lower priority credentials apply when none are set."""
        merged = Config().merge_with(Config(access_token="tok"))
        assert merged.access_token == "tok"

    def test_scenarios_merged(self):
        """Test scenario overrides merge by name."""
        project = Config(scenarios={"audit-npm": ScenarioConfig(min_licenses=5)})
        user = Config(scenarios={
            "audit-npm": ScenarioConfig(min_licenses=1),
            "audit-maven": ScenarioConfig(enabled=False),
        })

        merged = project.merge_with(user)
        assert merged.scenarios["audit-npm"].min_licenses == 5
        assert merged.scenarios["audit-maven"].enabled is False


class TestWithEnvironment:
    """Tests for SCAN_AUDIT_* environment overrides."""

    def test_no_overrides_returns_self(self):
        """Test an empty environment leaves the config unchanged."""
        config = Config(url="https://acme.io")
        assert config.with_environment({}) is config

    def test_string_overrides(self):
        """Test plain field overrides."""
        config = Config().with_environment({
            "SCAN_AUDIT_URL": "https://env.io",
            "SCAN_AUDIT_RESOURCES": "/data/fixtures",
            "SCAN_AUDIT_ENTRYPOINT": "mycli:main",
        })
        assert config.url == "https://env.io"
        assert config.resources_path == "/data/fixtures"
        assert config.entrypoint == "mycli:main"

    def test_env_token_replaces_file_credentials(self):
        """Test an environment token drops user/password from files."""
        config = Config(user="admin", password="pw")
        updated = config.with_environment({"SCAN_AUDIT_ACCESS_TOKEN": "env-token"})
        assert updated.access_token == "env-token"
        assert updated.user == ""
        assert updated.password == ""

    def test_env_user_replaces_file_token(self):
        """Test an environment user/password drops a file token."""
        config = Config(access_token="file-token")
        updated = config.with_environment({"SCAN_AUDIT_USER": "admin", "SCAN_AUDIT_PASSWORD": "pw"})
        assert updated.access_token == ""
        assert updated.user == "admin"
        assert updated.password == "pw"

    @pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("0", False), ("", False)])
    def test_enabled_flag(self, value, expected):
        """Test SCAN_AUDIT_ENABLED parsing."""
        config = Config(enabled=not expected).with_environment({"SCAN_AUDIT_ENABLED": value})
        assert config.enabled is expected

    def test_timeout(self):
        """Test SCAN_AUDIT_TIMEOUT parsing."""
        assert Config().with_environment({"SCAN_AUDIT_TIMEOUT": "90"}).timeout_seconds == 90

    @pytest.mark.parametrize("value", ["soon", "0", "1000"])
    def test_invalid_timeout(self, value):
        """Test bad timeouts are configuration errors."""
        with pytest.raises(ConfigurationError):
            Config().with_environment({"SCAN_AUDIT_TIMEOUT": value})

    def test_invalid_entrypoint(self):
        """Test bad entrypoints from the environment are configuration errors."""
        with pytest.raises(ConfigurationError):
            Config().with_environment({"SCAN_AUDIT_ENTRYPOINT": "no-colon"})


class TestLoadConfigFile:
    """Tests for load_config_file."""

    def test_missing_file(self, tmp_path):
        """Test a missing file returns None."""
        assert load_config_file(str(tmp_path / "absent.yml")) is None

    def test_yaml_file(self, tmp_path):
        """Test loading a YAML file."""
        path = write(tmp_path, ".scan-audit.yml", CONFIG_YAML)
        config = load_config_file(path)
        assert config.url == "https://acme.jfrog.io"
        assert config.source == path

    def test_json_file(self, tmp_path):
        """Test .json files are parsed as JSON."""
        data = {"service": {"url": "https://json.io", "credentials": {"user": "u", "password": "p"}}}
        path = write(tmp_path, "config.json", json.dumps(data))
        config = load_config_file(path)
        assert config.url == "https://json.io"
        assert config.user == "u"

    def test_empty_yaml_is_default(self, tmp_path):
        """Test an empty YAML file yields defaults."""
        path = write(tmp_path, "empty.yml", "")
        assert load_config_file(path) == Config(source=path)

    def test_invalid_yaml(self, tmp_path):
        """Test broken YAML raises ConfigurationError."""
        path = write(tmp_path, "bad.yml", "service: [unclosed")
        with pytest.raises(ConfigurationError):
            load_config_file(path)

    def test_invalid_json(self, tmp_path):
        """Test broken JSON raises ConfigurationError."""
        path = write(tmp_path, "bad.json", "{")
        with pytest.raises(ConfigurationError):
            _load_json(path)

    def test_invalid_values(self, tmp_path):
        """Test validation failures are wrapped."""
        path = write(tmp_path, "bad.yml", "version: 7\n")
        with pytest.raises(ConfigurationError, match="Config validation failed"):
            load_config_file(path)

    def test_load_yaml_non_mapping(self, tmp_path):
        """Test a YAML list at the top level yields an empty mapping."""
        path = write(tmp_path, "list.yml", "- a\n- b\n")
        assert _load_yaml(path) == {}


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_files(self, tmp_path):
        """Test defaults when no config file exists."""
        with patch("scan_audit.config.CONFIG_LOCATIONS", [str(tmp_path / "none.yml")]):
            config = load_config(environ={})
        assert config == Config()

    def test_custom_path_missing(self, tmp_path):
        """Test an explicit path must exist."""
        with patch("scan_audit.config.CONFIG_LOCATIONS", []):
            with pytest.raises(ConfigurationError, match="Could not load config"):
                load_config(str(tmp_path / "missing.yml"), environ={})

    def test_precedence(self, tmp_path):
        """Test custom path over project file, environment over both."""
        custom = write(tmp_path, "custom.yml", "service:\n  url: https://custom.io\n")
        project = write(tmp_path, "project.yml", CONFIG_YAML)

        with patch("scan_audit.config.CONFIG_LOCATIONS", [project]):
            config = load_config(custom, environ={"SCAN_AUDIT_TIMEOUT": "45"})

        assert config.url == "https://custom.io"
        assert config.access_token == "file-token"
        assert config.entrypoint == "mycli.main:main"
        assert config.timeout_seconds == 45


class TestValidateConfig:
    """Tests for validate_config."""

    def test_valid(self, tmp_path):
        """Test a complete config has no warnings."""
        config = Config(url="https://acme.io", access_token="t", resources_path=str(tmp_path), enabled=True)
        assert validate_config(config) == []

    def test_warnings(self, tmp_path):
        """Test each warning condition."""
        config = Config(
            enabled=True,
            user="admin",
            resources_path=str(tmp_path / "missing"),
            scenarios={"audit-npm": ScenarioConfig(min_licenses=-1)},
        )
        warnings = validate_config(config)
        assert any("no service URL" in w for w in warnings)
        assert any("together" in w for w in warnings)
        assert any("does not exist" in w for w in warnings)
        assert any("min_licenses" in w for w in warnings)

    def test_token_and_user_warning(self, tmp_path):
        """Test both credential forms produce a warning."""
        config = Config(access_token="t", user="u", password="p", resources_path=str(tmp_path))
        assert any("token is used" in w for w in validate_config(config))
