"""
Shell completion scripts for the scan-audit CLI.
"""

from __future__ import annotations

from typing import Sequence

from .capture import StreamSink
from .registry import Command, CommandGenerator, build_commands

BASH_DESCRIPTION = "Generate bash completion script."
ZSH_DESCRIPTION = "Generate zsh completion script."

BASH_TEMPLATE = """\
# bash completion for {prog}
# Add to ~/.bashrc:  source <({prog} completion bash)
_{func}() {{
    local cur words
    COMPREPLY=()
    cur="${{COMP_WORDS[COMP_CWORD]}}"
    words="{words}"
    if [ "$COMP_CWORD" -eq 1 ]; then
        COMPREPLY=( $(compgen -W "${{words}}" -- "${{cur}}") )
    fi
    return 0
}}
complete -F _{func} -o default {prog}
"""

ZSH_TEMPLATE = """\
#compdef {prog}
# Add to ~/.zshrc:  source <({prog} completion zsh)
_{func}() {{
    local -a commands
    commands=({words})
    if (( CURRENT == 2 )); then
        _describe 'command' commands
    else
        _files
    fi
}}
compdef _{func} {prog}
"""


def _func_name(prog: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in prog)


def bash_script(prog: str, words: Sequence[str]) -> str:
    return BASH_TEMPLATE.format(prog=prog, func=_func_name(prog), words=" ".join(words))


def zsh_script(prog: str, words: Sequence[str]) -> str:
    return ZSH_TEMPLATE.format(prog=prog, func=_func_name(prog), words=" ".join(words))


def get_commands(prog: str, words: Sequence[str], sink=None) -> list[Command]:
    """
    Completion commands for prog.

    Args:
        prog: Program name the scripts complete
        words: Top-level sub-command names offered for completion
        sink: Output sink receiving the script (defaults to standard output)
    """
    out = sink if sink is not None else StreamSink()

    def emit(script: str) -> None:
        out.write(script)
        out.flush()

    return build_commands({
        "bash": CommandGenerator(
            description=BASH_DESCRIPTION,
            usage=[f"{prog} completion bash"],
            action=lambda: emit(bash_script(prog, words)),
        ),
        "zsh": CommandGenerator(
            description=ZSH_DESCRIPTION,
            usage=[f"{prog} completion zsh"],
            action=lambda: emit(zsh_script(prog, words)),
        ),
    }, parent=f"{prog} completion")
