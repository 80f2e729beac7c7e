"""The consumer child: the differencing program reading both pipes.

The two read ends are bound to fixed descriptors and named to the
differencing program as pseudo-file paths (``/proc/self/fd/3``). When the
program opens them it gets the live pipes, so no temporary file is ever
written.
"""

from __future__ import annotations

import posixpath

from .argv import ArgVector
from .constants import (
    ARGV_STARTING_CAPACITY,
    DEFAULT_DIFF_FLAGS,
    FD_DEBUG_COMMAND,
    FIRST_INPUT_FD,
    LABEL_FLAG,
    SECOND_INPUT_FD,
    STDIN_FD,
)
from .descriptors import DescriptorAllocator
from .spawn import ChildGroup, ChildProcess, Redirect, Role, SpawnPlan, spawn


def fd_path(fd_dir: str, fd: int) -> str:
    return posixpath.join(fd_dir, str(fd))


def seed_diff_args(diff_program: str, diff_flags: list[str] | tuple[str, ...]) -> ArgVector:
    """Program name followed by the caller's flags, or ``-u`` when there are none."""
    args = ArgVector(ARGV_STARTING_CAPACITY)
    args.push(diff_program)
    args.extend(diff_flags if diff_flags else DEFAULT_DIFF_FLAGS)
    return args


def build_consumer_argv(
    seed: ArgVector, command_a: str, command_b: str, fd_dir: str
) -> ArgVector:
    """Append a label and a pseudo-file path for each input, in order.

    Works on a copy: the seed stays usable by the caller.
    """
    args = seed.copy()
    for command, fd in ((command_a, FIRST_INPUT_FD), (command_b, SECOND_INPUT_FD)):
        args.push(LABEL_FLAG)
        args.push(command)
        args.push(fd_path(fd_dir, fd))
    return args


def consumer_redirects(read_a: int, read_b: int) -> tuple[Redirect, ...]:
    return (
        Redirect(target=FIRST_INPUT_FD, source=read_a, inherit=True),
        Redirect(target=SECOND_INPUT_FD, source=read_b, inherit=True),
        Redirect.closed_input(STDIN_FD),
    )


def consumer_plan(
    seed: ArgVector,
    command_a: str,
    command_b: str,
    read_a: int,
    read_b: int,
    fd_dir: str,
    *,
    fd_debug: bool = False,
) -> SpawnPlan:
    if fd_debug:
        # Lists the consumer's descriptor table instead of comparing.
        argv = (*FD_DEBUG_COMMAND, fd_dir)
        program = FD_DEBUG_COMMAND[0]
    else:
        argv = tuple(build_consumer_argv(seed, command_a, command_b, fd_dir))
        program = argv[0]
    return SpawnPlan(
        program=program,
        argv=argv,
        redirects=consumer_redirects(read_a, read_b),
        search_path=True,
    )


def start_consumer(
    allocator: DescriptorAllocator,
    seed: ArgVector,
    command_a: str,
    command_b: str,
    read_a: int,
    read_b: int,
    fd_dir: str,
    *,
    fd_debug: bool = False,
    group: ChildGroup | None = None,
) -> ChildProcess:
    plan = consumer_plan(
        seed, command_a, command_b, read_a, read_b, fd_dir, fd_debug=fd_debug
    )
    return spawn(plan, Role.CONSUMER, allocator, group)
