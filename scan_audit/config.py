"""
Harness configuration parsing and management.

Reads YAML (or JSON, by extension) configuration files, merges them
(project → user → system → defaults) and applies SCAN_AUDIT_* environment
variables on top.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .common import is_truthy, vlog
from .errors import ConfigurationError


# Configuration file locations (in priority order)
CONFIG_LOCATIONS = [
    ".scan-audit.yml",                                       # Project root (highest priority)
    ".scan-audit.yaml",
    os.path.expanduser("~/.config/scan-audit/config.yml"),   # User global
    os.path.expanduser("~/.config/scan-audit/config.yaml"),
    "/etc/scan-audit/config.yml",                            # System global
    "/etc/scan-audit/config.yaml",
]

DEFAULT_SERVICE_PATH = "xray/"
DEFAULT_TIMEOUT_SECONDS = 30

# Environment variable -> Config field
ENV_OVERRIDES = {
    "SCAN_AUDIT_URL": "url",
    "SCAN_AUDIT_SERVICE_PATH": "service_path",
    "SCAN_AUDIT_ACCESS_TOKEN": "access_token",
    "SCAN_AUDIT_USER": "user",
    "SCAN_AUDIT_PASSWORD": "password",
    "SCAN_AUDIT_RESOURCES": "resources_path",
    "SCAN_AUDIT_ENTRYPOINT": "entrypoint",
}


@dataclass(frozen=True)
class ScenarioConfig:
    """
    Per-scenario overrides.

    Attributes:
        min_violations: Override for the violations floor
        min_vulnerabilities: Override for the vulnerabilities floor
        min_licenses: Override for the licenses floor
        min_version: Override for the minimum service version
        enabled: Whether the scenario runs at all
    """
    min_violations: int | None = None
    min_vulnerabilities: int | None = None
    min_licenses: int | None = None
    min_version: str | None = None
    enabled: bool = True

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ScenarioConfig:
        """Create ScenarioConfig from dictionary."""
        return ScenarioConfig(
            min_violations=data.get("min_violations"),
            min_vulnerabilities=data.get("min_vulnerabilities"),
            min_licenses=data.get("min_licenses"),
            min_version=data.get("min_version"),
            enabled=data.get("enabled", True),
        )


@dataclass(frozen=True)
class Config:
    """
    Complete configuration for the scan audit harness.

    Attributes:
        version: Config schema version
        url: Platform base URL
        service_path: Path of the scanning service below the platform URL
        access_token: Access token (takes precedence over user/password)
        user: User name for basic authentication
        password: Password for basic authentication
        resources_path: Root directory of fixture projects and binaries
        enabled: Whether audit scenarios run (disabled scenarios are skipped)
        entrypoint: In-process CLI to invoke, as "module:function"
        command_prefix: Arguments placed before every invoked command
        timeout_seconds: Timeout for requests to the scanning service
        scenarios: Per-scenario overrides
        source: Path to the configuration file that was loaded
    """
    version: int = 1
    url: str = ""
    service_path: str = DEFAULT_SERVICE_PATH
    access_token: str = field(default="", repr=False)
    user: str = ""
    password: str = field(default="", repr=False)
    resources_path: str = "testdata"
    enabled: bool = False
    entrypoint: str = ""
    command_prefix: tuple[str, ...] = ()
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    scenarios: dict[str, ScenarioConfig] = field(default_factory=dict)
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if self.version != 1:
            raise ValueError(f"Unsupported config version: {self.version}. Expected version 1")

        if self.timeout_seconds < 1 or self.timeout_seconds > 300:
            raise ValueError(
                f"Invalid timeout_seconds: {self.timeout_seconds}. "
                "Must be between 1 and 300"
            )

        if self.entrypoint and ":" not in self.entrypoint:
            raise ValueError(
                f"Invalid entrypoint: {self.entrypoint}. "
                "Expected 'module:function'"
            )

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        service = data.get("service", {})
        credentials = service.get("credentials", {})
        harness = data.get("harness", {})

        scenarios = {
            name: ScenarioConfig.from_dict(scenario or {})
            for name, scenario in data.get("scenarios", {}).items()
        }

        return Config(
            version=data.get("version", 1),
            url=service.get("url", ""),
            service_path=service.get("path", DEFAULT_SERVICE_PATH),
            access_token=credentials.get("access_token", ""),
            user=credentials.get("user", ""),
            password=credentials.get("password", ""),
            resources_path=harness.get("resources_path", "testdata"),
            enabled=harness.get("enabled", False),
            entrypoint=harness.get("entrypoint", ""),
            command_prefix=tuple(harness.get("command_prefix", ())),
            timeout_seconds=service.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
            scenarios=scenarios,
            source=source,
        )

    def get_scenario_config(self, name: str) -> ScenarioConfig:
        """
        Get overrides for a scenario.

        Returns:
            ScenarioConfig for the scenario, or a default one if not configured
        """
        return self.scenarios.get(name, ScenarioConfig())

    def merge_with(self, other: Config) -> Config:
        """
        Merge this config with another, preferring values from this config.

        Args:
            other: Other config to merge (lower priority)

        Returns:
            New merged Config object
        """
        merged_scenarios = dict(other.scenarios)
        merged_scenarios.update(self.scenarios)

        # Credentials travel as a unit so a token from one file never
        # combines with a user from another
        if self.access_token or self.user or self.password:
            token, user, password = self.access_token, self.user, self.password
        else:
            token, user, password = other.access_token, other.user, other.password

        return Config(
            version=self.version,
            url=self.url or other.url,
            service_path=self.service_path if self.service_path != DEFAULT_SERVICE_PATH else other.service_path,
            access_token=token,
            user=user,
            password=password,
            resources_path=self.resources_path if self.resources_path != "testdata" else other.resources_path,
            enabled=self.enabled or other.enabled,
            entrypoint=self.entrypoint or other.entrypoint,
            command_prefix=self.command_prefix or other.command_prefix,
            timeout_seconds=self.timeout_seconds if self.timeout_seconds != DEFAULT_TIMEOUT_SECONDS else other.timeout_seconds,
            scenarios=merged_scenarios,
            source=self.source or other.source,
        )

    def with_environment(self, environ: Mapping[str, str]) -> Config:
        """
        Apply SCAN_AUDIT_* environment variables on top of this config.

        Raises:
            ConfigurationError: If an environment value is invalid
        """
        overrides: dict[str, Any] = {}
        for var, attr in ENV_OVERRIDES.items():
            value = environ.get(var)
            if value:
                overrides[attr] = value

        # A token or user from the environment replaces file credentials entirely
        if "access_token" in overrides or "user" in overrides:
            overrides.setdefault("access_token", "")
            overrides.setdefault("user", "")
            overrides.setdefault("password", "")

        if "SCAN_AUDIT_ENABLED" in environ:
            overrides["enabled"] = is_truthy(environ["SCAN_AUDIT_ENABLED"])

        timeout = environ.get("SCAN_AUDIT_TIMEOUT")
        if timeout:
            try:
                overrides["timeout_seconds"] = int(timeout)
            except ValueError as e:
                raise ConfigurationError(f"Invalid SCAN_AUDIT_TIMEOUT: {timeout}") from e

        if not overrides:
            return self
        try:
            return replace(self, **overrides)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e


def _load_yaml(file_path: str) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read config {file_path}: {e}") from e
    return data if isinstance(data, dict) else {}


def _load_json(file_path: str) -> dict[str, Any]:
    """
    Load a JSON configuration file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read config {file_path}: {e}") from e
    return data if isinstance(data, dict) else {}


def load_config_file(file_path: str, verbose: bool = False) -> Config | None:
    """
    Load configuration from a single file.

    Args:
        file_path: Path to a .yml/.yaml or .json configuration file
        verbose: Enable verbose logging

    Returns:
        Config object, or None if the file does not exist

    Raises:
        ConfigurationError: If the file exists but is invalid
    """
    if not os.path.exists(file_path):
        return None

    vlog(f"Loading config from: {file_path}", verbose)

    if Path(file_path).suffix == ".json":
        data = _load_json(file_path)
    else:
        data = _load_yaml(file_path)

    try:
        config = Config.from_dict(data, source=file_path)
    except (ValueError, TypeError, AttributeError) as e:
        raise ConfigurationError(f"Config validation failed for {file_path}: {e}") from e

    vlog(f"Loaded config successfully: {file_path}", verbose)
    return config


def load_config(
    custom_path: str | None = None,
    environ: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Configuration precedence (highest to lowest):
    1. SCAN_AUDIT_* environment variables
    2. Custom path (if provided)
    3. Project .scan-audit.yml
    4. User ~/.config/scan-audit/config.yml
    5. System /etc/scan-audit/config.yml
    6. Default configuration

    Args:
        custom_path: Optional path to custom configuration file
        environ: Environment mapping (defaults to os.environ)
        verbose: Enable verbose logging

    Returns:
        Merged Config object

    Raises:
        ConfigurationError: If custom_path cannot be loaded or a file is invalid
    """
    configs: list[Config] = []

    if custom_path:
        config = load_config_file(custom_path, verbose)
        if config is None:
            raise ConfigurationError(f"Could not load config from specified path: {custom_path}")
        configs.append(config)

    for location in CONFIG_LOCATIONS:
        config = load_config_file(location, verbose)
        if config is not None:
            configs.append(config)
            vlog(f"Found config at: {location}", verbose)

    if configs:
        merged = configs[0]
        for config in configs[1:]:
            merged = merged.merge_with(config)
        vlog(f"Merged {len(configs)} config files", verbose)
    else:
        vlog("No config files found, using defaults", verbose)
        merged = Config()

    return merged.with_environment(os.environ if environ is None else environ)


def validate_config(config: Config) -> list[str]:
    """
    Validate configuration and return list of warnings.

    Args:
        config: Config object to validate

    Returns:
        List of validation warning messages (empty if valid)
    """
    warnings = []

    if config.enabled and not config.url:
        warnings.append("Harness is enabled but no service URL is configured")

    if config.access_token and (config.user or config.password):
        warnings.append("Both access token and user/password configured; the token is used")

    if not config.access_token and bool(config.user) != bool(config.password):
        warnings.append("User and password must be configured together")

    if config.resources_path and not os.path.isdir(config.resources_path):
        warnings.append(f"Resources path does not exist: {config.resources_path}")

    for name, scenario in config.scenarios.items():
        for attr in ("min_violations", "min_vulnerabilities", "min_licenses"):
            value = getattr(scenario, attr)
            if value is not None and value < 0:
                warnings.append(f"Scenario '{name}': {attr} must not be negative ({value})")

    return warnings
