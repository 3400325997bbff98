"""
End-to-end audit scenarios.

Each scenario runs one scan sub-command of the audited CLI, captures its
JSON output and checks the findings against minimum counts. Scenarios that
audit a project copy the fixture project into a temporary directory and
run from there, so fixtures are never modified.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterator, Sequence

from .config import Config
from .errors import CommandExecutionError, ConfigurationError, SetupError, SkipCondition, ThresholdError
from .runner import CommandRunner
from .session import SessionContext
from .validation import Threshold, validate_scan
from .version_gate import GRAPH_SCAN_MIN_VERSION, require_min_version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditScenario:
    """
    One audit check.

    Attributes:
        name: Scenario name
        args: Command arguments; "{resources}" expands to the resources root
        thresholds: Minimum finding counts
        fixture: Fixture project below the resources root, copied to a temp dir
        prepare: Command run in the project copy before the scan
        min_version: Minimum service version
    """
    name: str
    args: tuple[str, ...]
    thresholds: Threshold = field(default_factory=Threshold)
    fixture: str | None = None
    prepare: tuple[str, ...] = ()
    min_version: str | None = GRAPH_SCAN_MIN_VERSION

    def command_args(self, resources_path: str) -> list[str]:
        resources = os.path.abspath(resources_path)
        return [arg.replace("{resources}", resources) for arg in self.args]


BUILTIN_SCENARIOS: tuple[AuditScenario, ...] = (
    AuditScenario(
        name="binary-scan",
        args=("scan", os.path.join("{resources}", "xray", "binaries", "*"), "--licenses", "--format=json"),
        thresholds=Threshold(0, 1, 1),
    ),
    AuditScenario(
        name="audit-npm",
        args=("audit-npm", "--licenses", "--format=json"),
        thresholds=Threshold(0, 1, 1),
        fixture=os.path.join("xray", "npm"),
        prepare=("npm", "install"),
    ),
    AuditScenario(
        name="audit-gradle",
        args=("audit-gradle", "--licenses", "--format=json"),
        thresholds=Threshold(0, 0, 0),
        fixture=os.path.join("xray", "gradle"),
    ),
    AuditScenario(
        name="audit-mvn",
        args=("audit-mvn", "--licenses", "--format=json"),
        thresholds=Threshold(0, 1, 1),
        fixture=os.path.join("xray", "maven"),
    ),
)


def get_scenario(name: str) -> AuditScenario | None:
    for scenario in BUILTIN_SCENARIOS:
        if scenario.name == name:
            return scenario
    return None


def select_scenarios(names: Sequence[str] | None, config: Config | None = None) -> list[AuditScenario]:
    """
    Resolve scenario names and apply config overrides.

    Args:
        names: Scenario names, or None/empty for all built-in scenarios
        config: Config providing per-scenario overrides

    Raises:
        ConfigurationError: If a name is unknown
    """
    if names:
        selected = []
        for name in names:
            scenario = get_scenario(name)
            if scenario is None:
                known = ", ".join(s.name for s in BUILTIN_SCENARIOS)
                raise ConfigurationError(f"Unknown scenario: {name}. Known scenarios: {known}")
            selected.append(scenario)
    else:
        selected = list(BUILTIN_SCENARIOS)

    if config is None:
        return selected

    result = []
    for scenario in selected:
        overrides = config.get_scenario_config(scenario.name)
        if not overrides.enabled:
            logger.info(f"Scenario {scenario.name} disabled by config")
            continue
        try:
            thresholds = Threshold(
                min_violations=_pick(overrides.min_violations, scenario.thresholds.min_violations),
                min_vulnerabilities=_pick(overrides.min_vulnerabilities, scenario.thresholds.min_vulnerabilities),
                min_licenses=_pick(overrides.min_licenses, scenario.thresholds.min_licenses),
            )
        except ValueError as e:
            raise ConfigurationError(f"Scenario '{scenario.name}': {e}") from e
        result.append(replace(
            scenario,
            thresholds=thresholds,
            min_version=overrides.min_version or scenario.min_version,
        ))
    return result


def _pick(override: int | None, default: int) -> int:
    return default if override is None else override


@contextmanager
def copied_fixture(source: Path) -> Iterator[Path]:
    """
    Copy a fixture project into a temporary directory.

    Yields:
        Path to the copy; removed when the context exits
    """
    if not source.is_dir():
        raise SetupError(f"Fixture project not found: {source}")
    with tempfile.TemporaryDirectory(prefix="scan-audit-") as tmpdir:
        target = Path(tmpdir)
        shutil.copytree(source, target, dirs_exist_ok=True)
        logger.debug(f"Copied fixture {source} to {target}")
        yield target


@contextmanager
def working_directory(path: Path) -> Iterator[Path]:
    """Change the working directory, restoring the previous one on exit."""
    previous = os.getcwd()
    os.chdir(path)
    try:
        yield path
    finally:
        os.chdir(previous)


def run_prepare(command: Sequence[str], cwd: Path, timeout: int = 600) -> None:
    """
    Run a preparation command (e.g. npm install) in the project copy.

    Raises:
        SetupError: If the command is missing, times out or fails
    """
    logger.info(f"Preparing: {' '.join(command)}")
    try:
        result = subprocess.run(
            list(command),
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        raise SetupError(f"Preparation command not found: {command[0]}") from e
    except subprocess.TimeoutExpired as e:
        raise SetupError(f"Preparation command timed out after {timeout}s: {' '.join(command)}") from e

    if result.returncode != 0:
        raise SetupError(
            f"Preparation command failed with exit code {result.returncode}: "
            f"{' '.join(command)}\n{result.stderr.strip()}"
        )


@dataclass(frozen=True)
class ScenarioResult:
    """
    Result of one scenario.

    Attributes:
        name: Scenario name
        status: 'passed', 'skipped' or 'failed'
        reason: Skip reason or failure message
        output_bytes: Size of the captured output
        duration_seconds: Time taken
    """
    name: str
    status: str
    reason: str | None = None
    output_bytes: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status,
            "reason": self.reason,
            "output_bytes": self.output_bytes,
            "duration_seconds": self.duration_seconds,
        }


def _scan(runner: CommandRunner, scenario: AuditScenario, resources_path: str) -> bytes:
    captured = runner.run_with_output(*scenario.command_args(resources_path))
    if captured.error is not None:
        if isinstance(captured.error, CommandExecutionError):
            raise captured.error
        raise CommandExecutionError(
            f"Command '{scenario.args[0]}' raised {type(captured.error).__name__}: {captured.error}"
        ) from captured.error
    return captured.data


def run_scenario(
    session: SessionContext | None,
    runner: CommandRunner | None,
    scenario: AuditScenario,
    resources_path: str,
    enabled: bool = True,
) -> ScenarioResult:
    """
    Run one scenario.

    Returns:
        ScenarioResult; skipped when the harness is disabled or the service
        is too old, failed when a finding count is below its minimum

    Raises:
        SetupError: If fixture copying or preparation fails
        CommandExecutionError: If the scan command fails
        DataFormatError: If the scan output cannot be parsed
    """
    start = time.time()

    if not enabled:
        return ScenarioResult(
            name=scenario.name,
            status="skipped",
            reason="Audit scenarios are disabled. Set SCAN_AUDIT_ENABLED=1 to run them.",
        )
    if session is None or runner is None:
        raise ConfigurationError("An open session and a command runner are required to run scenarios")

    try:
        require_min_version(session.version, scenario.min_version, operation=scenario.name)
    except SkipCondition as e:
        logger.warning(e.message)
        return ScenarioResult(name=scenario.name, status="skipped", reason=e.message)

    logger.info(f"Running scenario {scenario.name}")
    # Resolve before the working directory changes
    resources_path = os.path.abspath(resources_path)
    if scenario.fixture:
        with copied_fixture(Path(resources_path) / scenario.fixture) as project, working_directory(project):
            if scenario.prepare:
                run_prepare(scenario.prepare, project)
            output = _scan(runner, scenario, resources_path)
    else:
        output = _scan(runner, scenario, resources_path)

    duration = time.time() - start
    try:
        validate_scan(output, scenario.thresholds)
    except ThresholdError as e:
        logger.error(f"{scenario.name}: {e.message}")
        return ScenarioResult(
            name=scenario.name,
            status="failed",
            reason=e.message,
            output_bytes=len(output),
            duration_seconds=duration,
        )

    return ScenarioResult(
        name=scenario.name,
        status="passed",
        output_bytes=len(output),
        duration_seconds=duration,
    )


@dataclass(frozen=True)
class SuiteResult:
    """
    Result of running several scenarios.

    Attributes:
        results: Per-scenario results, in run order
        duration_seconds: Total execution time
    """
    results: tuple[ScenarioResult, ...]
    duration_seconds: float = 0.0

    def _with_status(self, status: str) -> tuple[ScenarioResult, ...]:
        return tuple(r for r in self.results if r.status == status)

    @property
    def passed(self) -> tuple[ScenarioResult, ...]:
        return self._with_status("passed")

    @property
    def skipped(self) -> tuple[ScenarioResult, ...]:
        return self._with_status("skipped")

    @property
    def failed(self) -> tuple[ScenarioResult, ...]:
        return self._with_status("failed")

    @property
    def success(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "duration_seconds": self.duration_seconds,
        }

    def summary(self) -> str:
        """Human-readable summary."""
        return f"""
Audit Summary:
  ✅ Passed: {len(self.passed)}
  ❌ Failed: {len(self.failed)}
  ⏭️  Skipped: {len(self.skipped)}
  ⏱️  Duration: {self.duration_seconds:.1f}s
"""


def run_suite(
    session: SessionContext | None,
    runner: CommandRunner | None,
    scenarios: Sequence[AuditScenario],
    resources_path: str,
    enabled: bool = True,
) -> SuiteResult:
    """
    Run scenarios one after another.

    Captures share sys.stdout, so scenarios never run in parallel. Fatal
    errors abort the suite.
    """
    start = time.time()
    results = [
        run_scenario(session, runner, scenario, resources_path, enabled=enabled)
        for scenario in scenarios
    ]
    return SuiteResult(results=tuple(results), duration_seconds=time.time() - start)
