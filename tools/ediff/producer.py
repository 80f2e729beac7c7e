"""Producer children: run one shell command into a pipe."""

from __future__ import annotations

from .constants import SHELL_COMMAND_FLAG, STDIN_FD, STDOUT_FD
from .descriptors import DescriptorAllocator
from .spawn import ChildGroup, ChildProcess, Redirect, Role, SpawnPlan, spawn


def producer_plan(shell: str, command: str, write_end: int) -> SpawnPlan:
    """``shell -c command`` with stdout on ``write_end`` and a closed stdin.

    Stdin is closed so commands that would otherwise wait for interactive
    input see end-of-stream and carry on.
    """
    return SpawnPlan(
        program=shell,
        argv=(shell, SHELL_COMMAND_FLAG, command),
        redirects=(
            Redirect(target=STDOUT_FD, source=write_end, inherit=True),
            Redirect.closed_input(STDIN_FD),
        ),
    )


def start_producer(
    allocator: DescriptorAllocator,
    shell: str,
    command: str,
    write_end: int,
    role: Role,
    group: ChildGroup | None = None,
) -> ChildProcess:
    return spawn(producer_plan(shell, command, write_end), role, allocator, group)
