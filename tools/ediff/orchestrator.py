"""Top-level control flow: two producers, one consumer, one comparison."""

from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from .config import Settings
from .constants import (
    EXIT_OK,
    EXIT_STATUS_ZERO,
    SAFETY_FLOOR,
    SIGNAL_EXIT_BASE,
)
from .consumer import seed_diff_args, start_consumer
from .descriptors import DescriptorAllocator, Pipe
from .errors import EdiffError, Interrupted, classify_consumer_status
from .logging_utils import logger, truncate_for_log
from .producer import start_producer
from .spawn import ChildGroup, ChildProcess, Role

HANDLED_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


@dataclass(frozen=True)
class Invocation:
    diff_flags: tuple[str, ...]
    command_a: str
    command_b: str


@contextmanager
def terminate_on_signal(group: ChildGroup) -> Iterator[None]:
    """Kill and reap every running child if the parent is interrupted.

    SIGTERM and SIGHUP are turned into :class:`Interrupted`; SIGINT arrives
    as KeyboardInterrupt and is converted the same way. Handlers can only be
    installed from the main thread; elsewhere the guard still reaps on
    KeyboardInterrupt.
    """
    previous_handlers = {}

    def _raise_interrupted(signum, frame):
        raise Interrupted(signum)

    if threading.current_thread() is threading.main_thread():
        for signum in HANDLED_SIGNALS:
            previous_handlers[signum] = signal.signal(signum, _raise_interrupted)
    try:
        yield
    except KeyboardInterrupt as exc:
        logger.warning("Interrupted; terminating %d child process(es)", len(group.running()))
        group.terminate_and_reap()
        raise Interrupted(signal.SIGINT) from exc
    except Interrupted as exc:
        logger.warning(
            "Received signal %s; terminating %d child process(es)",
            exc.signum,
            len(group.running()),
        )
        group.terminate_and_reap()
        raise
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)


def open_pipes(allocator: DescriptorAllocator) -> tuple[Pipe, Pipe]:
    pipe_a = allocator.open_pipe()
    try:
        pipe_b = allocator.open_pipe()
    except EdiffError:
        pipe_a.close()
        raise
    return pipe_a, pipe_b


def exit_code_for(returncode: int, settings: Settings) -> int:
    if settings.exit_status == EXIT_STATUS_ZERO:
        return EXIT_OK
    if returncode < 0:
        return SIGNAL_EXIT_BASE - returncode
    return returncode


def compare_commands(invocation: Invocation, settings: Settings) -> int:
    """Run both commands and the differencing program; return the exit code."""
    allocator = DescriptorAllocator(SAFETY_FLOOR)
    seed = seed_diff_args(settings.diff_program, invocation.diff_flags)
    logger.info(
        "Comparing %r and %r with %s",
        truncate_for_log(invocation.command_a),
        truncate_for_log(invocation.command_b),
        " ".join(seed),
    )

    pipe_a, pipe_b = open_pipes(allocator)
    group = ChildGroup()
    with terminate_on_signal(group):
        try:
            start_producer(
                allocator,
                settings.shell,
                invocation.command_a,
                pipe_a.write_end,
                Role.PRODUCER_A,
                group,
            )
            start_producer(
                allocator,
                settings.shell,
                invocation.command_b,
                pipe_b.write_end,
                Role.PRODUCER_B,
                group,
            )
            consumer = start_consumer(
                allocator,
                seed,
                invocation.command_a,
                invocation.command_b,
                pipe_a.read_end,
                pipe_b.read_end,
                settings.fd_dir,
                fd_debug=settings.fd_debug,
                group=group,
            )
        except EdiffError:
            group.terminate_and_reap()
            raise
        finally:
            # The consumer only sees end-of-stream once no write end is
            # left open here.
            pipe_a.close()
            pipe_b.close()

        returncode = group.wait(consumer)
        finish_producers(group, consumer)

    logger.info("Consumer exited with code %s", returncode)
    return exit_code_for(returncode, settings)


def finish_producers(group: ChildGroup, consumer: ChildProcess) -> None:
    """Reap both producers once the consumer is done.

    Producers that already exited are collected without blocking. Any still
    running can no longer change the result, so they are terminated and
    reaped instead of waited on.
    """
    consumer_failed = classify_consumer_status(consumer.returncode) is not None
    if consumer_failed:
        logger.warning(
            "Differencing program exited with code %s", consumer.returncode
        )
    for child in group.running():
        group.poll(child)
    stragglers = group.running()
    if stragglers:
        logger.info(
            "Stopping %s, still running after the differencing program exited",
            ", ".join(child.role.value for child in stragglers),
        )
        group.terminate_and_reap()
    if consumer_failed:
        return
    stopped = {child.pid for child in stragglers}
    for child in group.children:
        if child is consumer or child.pid in stopped:
            continue
        if child.returncode != 0:
            logger.warning(
                "%s exited with code %s", child.role.value, child.returncode
            )
