"""
Scan Audit - execution and verification harness for security-audit scans.

Core Modules:
- Version Gate: service version parsing and minimum-version checks
- Sessions: credential resolution, handshake and version fetch
- Capture: standard output capture of in-process command invocations
- Validation: scan response parsing and threshold checks
- Scenarios: end-to-end audit checks (binary scan, npm, gradle, maven)
- Registry: named sub-commands and shell completion
"""

__version__ = "1.0.0"

VERSION = __version__

# Errors
from .errors import (
    ScanAuditError,
    ConfigurationError,
    CredentialError,
    AuthenticationError,
    VersionFetchError,
    SkipCondition,
    SetupError,
    CommandExecutionError,
    DataFormatError,
    ThresholdError,
    EmptyScanResultsError,
    ViolationThresholdError,
    VulnerabilityThresholdError,
    LicenseThresholdError,
    MultipleThresholdError,
)

# Version Gate
from .version_gate import (
    GRAPH_SCAN_MIN_VERSION,
    ServiceVersion,
    GateDecision,
    parse_service_version,
    check_min_version,
    require_min_version,
    gate,
)

# Configuration
from .config import Config, ScenarioConfig, load_config, load_config_file, validate_config

# Sessions
from .session import (
    TokenCredential,
    BasicCredential,
    ServiceConnection,
    ServiceClient,
    SessionContext,
    build_connection,
    open_session,
    service_url,
)

# Capture and execution
from .capture import CapturedOutput, StreamSink, BufferSink, run_capturing
from .runner import CommandRunner, load_entrypoint

# Validation
from .validation import (
    ScanResponse,
    Violation,
    Vulnerability,
    License,
    Threshold,
    parse_scan_results,
    check_thresholds,
    validate_scan,
)

# Registry
from .registry import Command, CommandGenerator, build_commands, create_usage

# Scenarios
from .scenarios import (
    AuditScenario,
    ScenarioResult,
    SuiteResult,
    BUILTIN_SCENARIOS,
    select_scenarios,
    run_scenario,
    run_suite,
)

# Logging configuration
from .logging_config import setup_logging, get_logger

__all__ = [
    "__version__",
    "VERSION",
    # Errors
    "ScanAuditError",
    "ConfigurationError",
    "CredentialError",
    "AuthenticationError",
    "VersionFetchError",
    "SkipCondition",
    "SetupError",
    "CommandExecutionError",
    "DataFormatError",
    "ThresholdError",
    "EmptyScanResultsError",
    "ViolationThresholdError",
    "VulnerabilityThresholdError",
    "LicenseThresholdError",
    "MultipleThresholdError",
    # Version Gate
    "GRAPH_SCAN_MIN_VERSION",
    "ServiceVersion",
    "GateDecision",
    "parse_service_version",
    "check_min_version",
    "require_min_version",
    "gate",
    # Configuration
    "Config",
    "ScenarioConfig",
    "load_config",
    "load_config_file",
    "validate_config",
    # Sessions
    "TokenCredential",
    "BasicCredential",
    "ServiceConnection",
    "ServiceClient",
    "SessionContext",
    "build_connection",
    "open_session",
    "service_url",
    # Capture and execution
    "CapturedOutput",
    "StreamSink",
    "BufferSink",
    "run_capturing",
    "CommandRunner",
    "load_entrypoint",
    # Validation
    "ScanResponse",
    "Violation",
    "Vulnerability",
    "License",
    "Threshold",
    "parse_scan_results",
    "check_thresholds",
    "validate_scan",
    # Registry
    "Command",
    "CommandGenerator",
    "build_commands",
    "create_usage",
    # Scenarios
    "AuditScenario",
    "ScenarioResult",
    "SuiteResult",
    "BUILTIN_SCENARIOS",
    "select_scenarios",
    "run_scenario",
    "run_suite",
    # Logging
    "setup_logging",
    "get_logger",
]
