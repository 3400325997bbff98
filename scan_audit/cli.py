"""
Command line interface for the scan audit harness.

Usage:
    scan-audit run [SCENARIO ...]      # Run audit scenarios against the service
    scan-audit validate results.json   # Check captured scan output
    scan-audit version --require 3.29.0
    scan-audit completion bash
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

from . import __version__
from .capture import StreamSink
from .completion import get_commands as get_completion_commands
from .config import Config, load_config, validate_config
from .errors import ConfigurationError, ScanAuditError, ThresholdError
from .logging_config import setup_logging
from .runner import CommandRunner, load_entrypoint
from .scenarios import BUILTIN_SCENARIOS, run_suite, select_scenarios
from .session import open_session
from .validation import Threshold, validate_scan
from .version_gate import check_min_version

PROG = "scan-audit"
SUBCOMMANDS = ("run", "validate", "version", "completion")

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Run and verify security-audit scans against a remote scanning service.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to a configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--log-file", help="Also write logs to this file")

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run audit scenarios")
    run.add_argument(
        "scenarios",
        nargs="*",
        metavar="SCENARIO",
        help=f"Scenarios to run (default: all of {', '.join(s.name for s in BUILTIN_SCENARIOS)})",
    )
    run.add_argument("--json", action="store_true", help="Print results as JSON")

    validate = sub.add_parser("validate", help="Validate captured scan output")
    validate.add_argument("file", nargs="?", default="-", help="Scan output file ('-' for stdin)")
    validate.add_argument("--min-violations", type=int, default=0)
    validate.add_argument("--min-vulnerabilities", type=int, default=0)
    validate.add_argument("--min-licenses", type=int, default=0)

    version = sub.add_parser("version", help="Show the scanning service version")
    version.add_argument("--require", help="Minimum required service version")

    completion = sub.add_parser("completion", help="Generate shell completion scripts")
    completion.add_argument("shell", choices=["bash", "zsh"])

    return parser


def _cmd_run(args: argparse.Namespace, config: Config, sink: StreamSink) -> int:
    for warning in validate_config(config):
        logger.warning(warning)

    scenarios = select_scenarios(args.scenarios, config)

    if not config.enabled:
        result = run_suite(None, None, scenarios, config.resources_path, enabled=False)
    else:
        if not config.entrypoint:
            raise ConfigurationError(
                "No CLI entrypoint configured",
                remediation="Set SCAN_AUDIT_ENTRYPOINT or harness.entrypoint to module:function",
            )
        main = load_entrypoint(config.entrypoint)
        session = open_session(config)
        runner = CommandRunner(main, prefix=config.command_prefix, credential_args=session.credential_args())
        result = run_suite(session, runner, scenarios, config.resources_path)

    if args.json:
        sink.write(json.dumps(result.to_dict(), indent=2) + "\n")
    else:
        for item in result.results:
            line = f"{item.status.upper():8} {item.name}"
            if item.reason:
                line += f" - {item.reason}"
            sink.write(line + "\n")
        sink.write(result.summary())
    return 0 if result.success else 1


def _cmd_validate(args: argparse.Namespace, sink: StreamSink) -> int:
    try:
        thresholds = Threshold(args.min_violations, args.min_vulnerabilities, args.min_licenses)
    except ValueError as e:
        raise ScanAuditError(str(e)) from e

    if args.file == "-":
        data = sys.stdin.buffer.read()
    else:
        try:
            with open(args.file, "rb") as f:
                data = f.read()
        except OSError as e:
            raise ScanAuditError(f"Cannot read {args.file}: {e}") from e

    responses = validate_scan(data, thresholds)
    sink.write(f"OK: {len(responses)} scan response(s) meet {thresholds}\n")
    return 0


def _cmd_version(args: argparse.Namespace, config: Config, sink: StreamSink) -> int:
    session = open_session(config)
    sink.write(f"{session.version}\n")
    if args.require:
        decision = check_min_version(session.version, args.require)
        if not decision.proceed:
            logger.warning(f"Skipping: {decision.reason}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """
    Entry point.

    Returns:
        0 on success or skip, 1 on fatal errors and threshold failures
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)
    except (ValueError, OSError) as e:
        parser.error(f"Cannot configure logging: {e}")

    sink = StreamSink()
    try:
        if args.command == "completion":
            commands = {cmd.name: cmd for cmd in get_completion_commands(PROG, SUBCOMMANDS, sink)}
            commands[args.shell].run()
            return 0
        if args.command == "validate":
            return _cmd_validate(args, sink)

        config = load_config(args.config, verbose=args.verbose)
        if args.command == "run":
            return _cmd_run(args, config, sink)
        return _cmd_version(args, config, sink)
    except ThresholdError as e:
        logger.error(f"validation failed: {e.message}")
        return 1
    except ScanAuditError as e:
        logger.error(f"{e.stage} failed: {e.message}")
        if e.remediation:
            logger.error(f"  Fix: {e.remediation}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
