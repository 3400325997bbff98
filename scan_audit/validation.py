"""
Parsing and threshold validation of captured scan results.

The audited CLI prints a JSON array of scan responses, one per scanned
target. Validation is a floor check on the first response: it may hold
more findings than required, never fewer.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import (
    DataFormatError,
    EmptyScanResultsError,
    LicenseThresholdError,
    MultipleThresholdError,
    ThresholdError,
    ViolationThresholdError,
    VulnerabilityThresholdError,
)

logger = logging.getLogger(__name__)


def _cves(data: dict[str, Any]) -> tuple[str, ...]:
    return tuple(
        cve.get("cve", "") for cve in data.get("cves") or () if isinstance(cve, dict)
    )


@dataclass(frozen=True)
class Violation:
    """Policy breach reported by the service."""
    issue_id: str = ""
    summary: str = ""
    severity: str = ""
    violation_type: str = ""
    watch_name: str = ""
    components: tuple[str, ...] = ()
    cves: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Violation":
        return cls(
            issue_id=data.get("issue_id", ""),
            summary=data.get("summary", ""),
            severity=data.get("severity", ""),
            violation_type=data.get("type", ""),
            watch_name=data.get("watch_name", ""),
            components=tuple(data.get("components") or ()),
            cves=_cves(data),
            raw=data,
        )


@dataclass(frozen=True)
class Vulnerability:
    """Known security weakness reported against a component."""
    issue_id: str = ""
    summary: str = ""
    severity: str = ""
    components: tuple[str, ...] = ()
    cves: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Vulnerability":
        return cls(
            issue_id=data.get("issue_id", ""),
            summary=data.get("summary", ""),
            severity=data.get("severity", ""),
            components=tuple(data.get("components") or ()),
            cves=_cves(data),
            raw=data,
        )


@dataclass(frozen=True)
class License:
    """License detected on scanned components."""
    key: str = ""
    name: str = ""
    custom: bool = False
    components: tuple[str, ...] = ()
    references: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "License":
        return cls(
            key=data.get("license_key", data.get("key", "")),
            name=data.get("license_name", data.get("name", "")),
            custom=bool(data.get("custom", False)),
            components=tuple(data.get("components") or ()),
            references=tuple(data.get("references") or ()),
            raw=data,
        )


@dataclass(frozen=True)
class ScanResponse:
    """Findings for one scanned target."""
    scan_id: str = ""
    violations: tuple[Violation, ...] = ()
    vulnerabilities: tuple[Vulnerability, ...] = ()
    licenses: tuple[License, ...] = ()


@dataclass(frozen=True)
class Threshold:
    """
    Minimum finding counts a scan must reach.

    Attributes:
        min_violations: Minimum number of violations
        min_vulnerabilities: Minimum number of vulnerabilities
        min_licenses: Minimum number of licenses
    """
    min_violations: int = 0
    min_vulnerabilities: int = 0
    min_licenses: int = 0

    def __post_init__(self):
        for name in ("min_violations", "min_vulnerabilities", "min_licenses"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"Invalid {name}: {value}. Must be a non-negative integer")

    def any_required(self) -> bool:
        return self.min_violations > 0 or self.min_vulnerabilities > 0 or self.min_licenses > 0

    def __str__(self) -> str:
        return (
            f"violations>={self.min_violations}, "
            f"vulnerabilities>={self.min_vulnerabilities}, "
            f"licenses>={self.min_licenses}"
        )


def _category(item: dict[str, Any], key: str, index: int, cls):
    value = item.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        raise DataFormatError(f"Scan response {index}: '{key}' must be an array, got {type(value).__name__}")
    entries = []
    for pos, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise DataFormatError(f"Scan response {index}: {key}[{pos}] must be an object")
        entries.append(cls.from_dict(entry))
    return tuple(entries)


def parse_scan_results(output: bytes | str) -> list[ScanResponse]:
    """
    Parse captured output as a sequence of scan responses.

    Args:
        output: Captured standard output (JSON array)

    Returns:
        Scan responses in output order ("null" yields an empty list)

    Raises:
        DataFormatError: If the output is not a JSON array of scan responses
    """
    try:
        data = json.loads(output)
    except (ValueError, TypeError) as e:
        raise DataFormatError(f"Scan output is not valid JSON: {e}") from e

    if data is None:
        return []
    if not isinstance(data, list):
        raise DataFormatError(f"Scan output must be a JSON array, got {type(data).__name__}")

    responses = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise DataFormatError(f"Scan response {index} must be an object, got {type(item).__name__}")
        responses.append(ScanResponse(
            scan_id=item.get("scan_id", ""),
            violations=_category(item, "violations", index, Violation),
            vulnerabilities=_category(item, "vulnerabilities", index, Vulnerability),
            licenses=_category(item, "licenses", index, License),
        ))
    return responses


def check_thresholds(response: ScanResponse, thresholds: Threshold) -> list[ThresholdError]:
    """
    Compare one scan response with the thresholds.

    Returns:
        One error per insufficient category, in check order
    """
    checks = (
        (ViolationThresholdError, thresholds.min_violations, len(response.violations)),
        (VulnerabilityThresholdError, thresholds.min_vulnerabilities, len(response.vulnerabilities)),
        (LicenseThresholdError, thresholds.min_licenses, len(response.licenses)),
    )
    return [error_cls(expected, actual) for error_cls, expected, actual in checks if actual < expected]


def validate_scan(output: bytes | str, thresholds: Threshold) -> list[ScanResponse]:
    """
    Validate captured scan output against minimum counts.

    Only the first scan response is checked.

    Args:
        output: Captured standard output
        thresholds: Minimum counts

    Returns:
        The parsed scan responses

    Raises:
        DataFormatError: If the output cannot be parsed
        ThresholdError: If a count is below its minimum (MultipleThresholdError
            when several are)
    """
    responses = parse_scan_results(output)

    if not responses:
        if thresholds.any_required():
            raise EmptyScanResultsError(1, 0)
        return responses

    if len(responses) > 1:
        logger.debug(f"Scan returned {len(responses)} responses; checking the first only")

    failures = check_thresholds(responses[0], thresholds)
    if len(failures) == 1:
        raise failures[0]
    if failures:
        raise MultipleThresholdError(failures)
    return responses
