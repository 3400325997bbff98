"""
Version gating against the remote scanning service.

Operations that depend on a service feature declare the minimum service
version they need. The gate compares it with the version reported by the
service and decides whether the operation runs or is skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from packaging import version

from .errors import ConfigurationError, SkipCondition

logger = logging.getLogger(__name__)

# Minimum service version for graph-scan based commands (scan, audit-*)
GRAPH_SCAN_MIN_VERSION = "3.29.0"


def _parse(text: str, what: str) -> version.Version:
    try:
        return version.Version(text.strip())
    except (version.InvalidVersion, AttributeError, TypeError) as e:
        raise ConfigurationError(
            f"Invalid {what} version: {text!r}",
            remediation="Use a major.minor.patch version such as 3.29.0",
        ) from e


@dataclass(frozen=True)
class ServiceVersion:
    """
    Semantic version reported by the scanning service.

    Attributes:
        text: Version string as reported
        parsed: Parsed version used for comparisons
    """
    text: str
    parsed: version.Version = field(compare=False, repr=False)

    def at_least(self, min_version: str) -> bool:
        """Check whether this version is equal to or newer than min_version."""
        return self.parsed >= _parse(min_version, "required")

    def __str__(self) -> str:
        return self.text


def parse_service_version(text: str) -> ServiceVersion:
    """
    Parse a version string reported by the service.

    Raises:
        ConfigurationError: If the version cannot be parsed
    """
    if not isinstance(text, str):
        raise ConfigurationError(f"Service version must be a string, got {type(text).__name__}")
    if not text.strip():
        raise ConfigurationError("Service reported an empty version")
    return ServiceVersion(text=text.strip(), parsed=_parse(text, "service"))


@dataclass(frozen=True)
class GateDecision:
    """
    Outcome of a version check.

    Attributes:
        proceed: Whether the dependent operation may run
        reason: Why it may not run (None when proceeding)
    """
    proceed: bool
    reason: str | None = None


def check_min_version(actual: ServiceVersion, required: str | None = None) -> GateDecision:
    """
    Compare the service version with a required minimum.

    Args:
        actual: Version reported by the service
        required: Minimum version, or None when the operation is not gated

    Returns:
        GateDecision telling the caller whether to proceed
    """
    if not required:
        return GateDecision(proceed=True)

    if actual.at_least(required):
        logger.debug(f"Service version {actual} satisfies minimum {required}")
        return GateDecision(proceed=True)

    return GateDecision(
        proceed=False,
        reason=(
            f"You are using service version {actual}, while this operation "
            f"requires version {required} or higher."
        ),
    )


def require_min_version(actual: ServiceVersion, required: str | None, operation: str = "operation") -> None:
    """
    Raise SkipCondition when the service is older than required.

    Raises:
        SkipCondition: If the gate is not met
    """
    decision = check_min_version(actual, required)
    if not decision.proceed:
        raise SkipCondition(f"Skipping {operation}. {decision.reason}")


def gate(fetch_version: Callable[[], ServiceVersion], required: str | None = None) -> GateDecision:
    """
    Fetch the service version and check it.

    Errors raised by fetch_version (VersionFetchError, ConfigurationError)
    propagate unchanged; nothing proceeds without a known version.
    """
    actual = fetch_version()
    return check_min_version(actual, required)
