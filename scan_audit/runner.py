"""
In-process execution of the audited CLI.
"""

from __future__ import annotations

import importlib
import logging
from typing import Callable, Sequence

from .capture import CapturedOutput, run_capturing
from .common import redact_args
from .errors import CommandExecutionError, ConfigurationError

logger = logging.getLogger(__name__)

# main(argv) -> exit code (None means success)
MainFunc = Callable[[list[str]], "int | None"]


def load_entrypoint(spec: str) -> MainFunc:
    """
    Import the CLI entry point to run in-process.

    Args:
        spec: "module:function", e.g. "mycli.main:main"

    Raises:
        ConfigurationError: If the module or function cannot be loaded
    """
    module_name, sep, func_name = spec.partition(":")
    if not sep or not module_name or not func_name:
        raise ConfigurationError(f"Invalid entrypoint: {spec!r}. Expected 'module:function'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import entrypoint module {module_name}: {e}") from e

    func = getattr(module, func_name, None)
    if not callable(func):
        raise ConfigurationError(f"Entrypoint {spec} is not a callable")
    return func


class CommandRunner:
    """
    Runs sub-commands of an in-process CLI with the session's credentials.

    Attributes:
        main: CLI entry point taking an argument list
        prefix: Arguments placed before every command (e.g. ("xr",))
        credential_args: Credential flags appended to every command
    """

    def __init__(
        self,
        main: MainFunc,
        prefix: Sequence[str] = (),
        credential_args: Sequence[str] = (),
    ):
        self.main = main
        self.prefix = tuple(prefix)
        self.credential_args = tuple(credential_args)

    def build_argv(self, *args: str) -> list[str]:
        return [*self.prefix, *args, *self.credential_args]

    def exec(self, *args: str) -> None:
        """
        Run one command.

        Raises:
            CommandExecutionError: If the command exits non-zero
        """
        argv = self.build_argv(*args)
        logger.debug(f"Executing: {' '.join(redact_args(argv))}")

        try:
            code = self.main(argv)
        except SystemExit as e:
            code = e.code

        if code in (None, 0):
            return
        exit_code = code if isinstance(code, int) else 1
        raise CommandExecutionError(
            f"Command '{' '.join(args)}' failed with exit code {exit_code}",
            exit_code=exit_code,
        )

    def run_with_output(self, *args: str, echo: bool = True) -> CapturedOutput:
        """
        Run one command and capture its standard output.

        Returns:
            CapturedOutput; a failed command is reported in .error along
            with whatever it printed before failing
        """
        return run_capturing(lambda: self.exec(*args), echo=echo)
