"""
Named sub-command registry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Sequence


@dataclass(frozen=True)
class CommandGenerator:
    """
    Recipe for one command.

    Attributes:
        description: One-line description
        usage: Usage lines shown in help
        action: Zero-argument side-effecting operation
    """
    description: str
    usage: Sequence[str]
    action: Callable[[], None]


@dataclass(frozen=True)
class Command:
    name: str
    description: str
    help_name: str
    action: Callable[[], None]

    def run(self) -> None:
        self.action()


def create_usage(command: str, description: str, usages: Sequence[str]) -> str:
    """
    Build the help header for a command.

    Example:
        create_usage("completion bash", "Generate bash completion.", ["scan-audit completion bash"])
    """
    lines = ["Name:", f"  {command} - {description}", "", "Usage:"]
    lines.extend(f"  {usage}" for usage in usages)
    return "\n".join(lines)


def build_commands(generators: Mapping[str, CommandGenerator], parent: str = "") -> list[Command]:
    """
    Build commands sorted by name. Performs no I/O.

    Args:
        generators: Command name -> CommandGenerator
        parent: Parent command path used in help names (e.g. "completion")
    """
    commands = []
    for name, gen in generators.items():
        full_name = f"{parent} {name}".strip()
        commands.append(Command(
            name=name,
            description=gen.description,
            help_name=create_usage(full_name, gen.description, gen.usage),
            action=gen.action,
        ))
    return sorted(commands, key=lambda cmd: cmd.name)
