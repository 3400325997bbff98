"""
Common utilities shared across scan_audit modules.
"""

from __future__ import annotations

import os
from typing import Sequence

# Flags whose values must never appear in log output
SECRET_FLAGS = ("--access-token", "--password")


def is_truthy(value: str | None) -> bool:
    """
    Interpret an environment-style flag value.

    Returns:
        True for "1", "true", "yes" and "on" (case-insensitive)
    """
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def add_trailing_slash(url: str) -> str:
    """
    Ensure a URL ends with exactly one trailing slash.

    Args:
        url: URL with zero or more trailing slashes

    Returns:
        URL ending in a single "/"
    """
    return url.rstrip("/") + "/"


def redact_args(argv: Sequence[str]) -> list[str]:
    """
    Hide credential values in a command line before it is logged.

    Args:
        argv: Command arguments, credentials given as --flag=value

    Returns:
        Copy of argv with secret values replaced by "***"
    """
    redacted = []
    for arg in argv:
        flag, sep, _ = arg.partition("=")
        if sep and flag in SECRET_FLAGS:
            redacted.append(f"{flag}=***")
        else:
            redacted.append(arg)
    return redacted


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log a verbose message through the harness logger.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or is_truthy(os.environ.get("SCAN_AUDIT_DEBUG")):
        from .logging_config import get_logger
        get_logger().info(msg)
