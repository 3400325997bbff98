"""
Error taxonomy for the scan audit harness.

Every error carries the stage it belongs to so the CLI can name the
failing stage when it aborts a run.
"""

from __future__ import annotations


class ScanAuditError(Exception):
    """
    Base exception for harness errors.

    Attributes:
        message: Human-readable error message
        stage: Stage that failed ('configuration', 'auth', 'version check', ...)
        remediation: Suggested fix for the error
    """
    stage = "harness"

    def __init__(self, message: str, remediation: str | None = None):
        self.message = message
        self.remediation = remediation
        super().__init__(message)


class ConfigurationError(ScanAuditError):
    """Raised for malformed or missing URL, credentials or versions."""
    stage = "configuration"


class CredentialError(ConfigurationError):
    """Raised when neither a token nor a full user/password pair is supplied."""


class AuthenticationError(ScanAuditError):
    """Raised when the service rejects the credentials or cannot be reached."""
    stage = "auth"


class VersionFetchError(ScanAuditError):
    """Raised when the remote service version cannot be determined."""
    stage = "version check"


class SkipCondition(ScanAuditError):
    """
    Raised when an operation must be omitted, e.g. the service is too old.

    Not a failure: callers record the skip and carry on.
    """
    stage = "version check"


class SetupError(ScanAuditError):
    """Raised when a scenario's preparation step fails."""
    stage = "setup"


class CommandExecutionError(ScanAuditError):
    """
    Raised when an invoked command fails.

    Attributes:
        exit_code: Exit code reported by the command, if any
    """
    stage = "capture"

    def __init__(self, message: str, exit_code: int | None = None, remediation: str | None = None):
        self.exit_code = exit_code
        super().__init__(message, remediation=remediation)


class DataFormatError(ScanAuditError):
    """Raised when captured output is not valid structured scan data."""
    stage = "validation"


class ThresholdError(ScanAuditError):
    """
    Raised when parsed scan results fall below a required minimum.

    Attributes:
        category: Which count was insufficient
        expected: Minimum required count
        actual: Count found in the results
    """
    stage = "validation"
    category = "results"

    def __init__(self, expected: int, actual: int, message: str | None = None):
        self.expected = expected
        self.actual = actual
        if message is None:
            message = (
                f"Expected at least {expected} {self.category} in scan results, "
                f"but got {actual} {self.category} (short by {self.deficit})."
            )
        super().__init__(message)

    @property
    def deficit(self) -> int:
        return max(self.expected - self.actual, 0)


class EmptyScanResultsError(ThresholdError):
    """No scan response was returned although findings were required."""
    category = "scan responses"


class ViolationThresholdError(ThresholdError):
    category = "violations"


class VulnerabilityThresholdError(ThresholdError):
    category = "vulnerabilities"


class LicenseThresholdError(ThresholdError):
    category = "licenses"


class MultipleThresholdError(ThresholdError):
    """
    Several counts were insufficient at once.

    Attributes:
        failures: The individual threshold errors, in check order
    """
    category = "findings"

    def __init__(self, failures: list[ThresholdError]):
        self.failures = tuple(failures)
        expected = sum(f.expected for f in failures)
        actual = sum(f.actual for f in failures)
        message = " ".join(f.message for f in failures)
        super().__init__(expected, actual, message=message)
