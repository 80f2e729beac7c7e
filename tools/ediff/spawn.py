"""Fork/exec with an explicit descriptor redirection table.

A :class:`SpawnPlan` names the program, its argument list and every
descriptor the new image should see, each with a declared inheritance
intent. :func:`spawn` forks, applies the table in the child, and execs.
Anything that goes wrong between fork and exec is written to a
close-on-exec status pipe, so the parent learns about it before it
forks the next child instead of from an exit status nobody reads.
"""

from __future__ import annotations

import os
import shlex
import signal
import time
from dataclasses import dataclass, field
from enum import Enum

from .constants import (
    EXIT_FATAL,
    REAP_POLL_INTERVAL_SECONDS,
    SPAWN_STATUS_READ_SIZE,
    SPAWN_STATUS_SEPARATOR,
    STDIN_FD,
    TERMINATE_GRACE_SECONDS,
)
from .descriptors import (
    DescriptorAllocator,
    Pipe,
    clear_close_on_exec,
    set_close_on_exec,
)
from .errors import ResourceError, SpawnError, describe_errno
from .logging_utils import decode_output, flush_std_streams, logger, truncate_for_log

# Held back while a child is being forked; the parent sees them only once
# the new pid is in hand and can be killed.
DEFERRED_SIGNALS = {signal.SIGINT, signal.SIGTERM, signal.SIGHUP}
# The interpreter ignores these at startup, and an ignored disposition
# survives exec.
RESTORED_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGPIPE", "SIGXFSZ") if hasattr(signal, name)
)


class Role(str, Enum):
    """The job a child process performs."""

    PRODUCER_A = "producer-a"
    PRODUCER_B = "producer-b"
    CONSUMER = "consumer"


@dataclass(frozen=True)
class Redirect:
    """Bind ``target`` in the child to ``source`` before exec.

    ``source=None`` means a fresh always-EOF stream. ``inherit`` is the
    declared intent for ``target``: True keeps it open across exec, False
    makes it close-on-exec.
    """

    target: int
    source: int | None
    inherit: bool = True

    @classmethod
    def closed_input(cls, target: int = STDIN_FD) -> "Redirect":
        return cls(target=target, source=None, inherit=True)

    def describe(self) -> str:
        source = "eof" if self.source is None else str(self.source)
        intent = "inherit" if self.inherit else "private"
        return f"{self.target}<-{source} ({intent})"


@dataclass(frozen=True)
class SpawnPlan:
    program: str
    argv: tuple[str, ...]
    redirects: tuple[Redirect, ...] = ()
    search_path: bool = False

    def describe(self) -> str:
        return truncate_for_log(shlex.join(self.argv))


@dataclass
class ChildProcess:
    pid: int
    role: Role
    returncode: int | None = None

    @property
    def running(self) -> bool:
        return self.returncode is None


def spawn(
    plan: SpawnPlan,
    role: Role,
    allocator: DescriptorAllocator,
    group: ChildGroup | None = None,
) -> ChildProcess:
    """Fork a child that applies ``plan.redirects`` and execs ``plan.program``.

    Returns once the child has replaced its image. Raises SpawnError if the
    fork fails or the child reports a failure before exec. When ``group`` is
    given the child joins it before any deferred signal is delivered, so an
    interrupted spawn never leaves an untracked process behind.
    """
    status = allocator.open_pipe()
    logger.debug(
        "Spawning %s: %s with redirects [%s]",
        role.value,
        plan.describe(),
        ", ".join(redirect.describe() for redirect in plan.redirects),
    )
    flush_std_streams()
    previous_mask = signal.pthread_sigmask(signal.SIG_BLOCK, DEFERRED_SIGNALS)
    try:
        pid = os.fork()
    except OSError as exc:
        signal.pthread_sigmask(signal.SIG_SETMASK, previous_mask)
        status.close()
        raise SpawnError(
            role.value, "fork", exc.strerror or str(exc), errno=exc.errno
        ) from exc

    if pid == 0:
        _exec_child(plan, allocator, status, previous_mask)

    child = ChildProcess(pid=pid, role=role)
    if group is not None:
        group.add(child)
    try:
        signal.pthread_sigmask(signal.SIG_SETMASK, previous_mask)
        status.close_write()
        report = _read_until_eof(status.read_end)
    except BaseException:
        _kill_and_reap(child)
        raise
    finally:
        status.close()

    if report:
        _kill_and_reap(child)
        operation, code, reason = parse_status_report(report)
        logger.debug("%s failed before exec: %s: %s", role.value, operation, reason)
        raise SpawnError(role.value, operation, reason, errno=code)

    logger.info("Started %s (pid %s): %s", role.value, pid, plan.describe())
    return child


def _exec_child(
    plan: SpawnPlan,
    allocator: DescriptorAllocator,
    status: Pipe,
    signal_mask: set[int],
) -> None:
    # Runs in the forked child and never returns.
    operation = "fork"
    try:
        status.close_read()
        operation = "signal"
        for signum in RESTORED_SIGNALS:
            signal.signal(signum, signal.SIG_DFL)
        signal.pthread_sigmask(signal.SIG_SETMASK, signal_mask)
        for redirect in plan.redirects:
            operation = "dup2"
            apply_redirect(redirect, allocator)
        operation = "exec"
        if plan.search_path:
            os.execvp(plan.program, list(plan.argv))
        else:
            os.execv(plan.program, list(plan.argv))
    except ResourceError as exc:
        _write_status_report(status.write_end, exc.operation, exc.errno, exc.reason)
    except OSError as exc:
        _write_status_report(
            status.write_end, operation, exc.errno, exc.strerror or str(exc)
        )
    finally:
        os._exit(EXIT_FATAL)


def apply_redirect(redirect: Redirect, allocator: DescriptorAllocator) -> None:
    source = redirect.source
    if source is None:
        source = allocator.always_eof_source()
    if source != redirect.target:
        try:
            os.dup2(source, redirect.target)
        except OSError as exc:
            raise ResourceError.from_os_error("dup2", exc) from exc
        if redirect.source is None:
            os.close(source)
    if redirect.inherit:
        clear_close_on_exec(redirect.target)
    else:
        set_close_on_exec(redirect.target)


def _write_status_report(fd: int, operation: str, code: int | None, reason: str) -> None:
    payload = SPAWN_STATUS_SEPARATOR.join((operation, str(code or 0), reason))
    data = payload.encode("utf-8", errors="replace")
    while data:
        written = os.write(fd, data)
        data = data[written:]


def parse_status_report(report: bytes) -> tuple[str, int | None, str]:
    text = decode_output(report)
    operation, _, rest = text.partition(SPAWN_STATUS_SEPARATOR)
    code_text, _, reason = rest.partition(SPAWN_STATUS_SEPARATOR)
    try:
        code: int | None = int(code_text)
    except ValueError:
        code = None
    if code == 0:
        code = None
    if not reason and code is not None:
        reason = describe_errno(code)
    return operation or "exec", code, reason or "unknown failure"


def _read_until_eof(fd: int) -> bytes:
    chunks: list[bytes] = []
    while True:
        chunk = os.read(fd, SPAWN_STATUS_READ_SIZE)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def _kill_and_reap(child: ChildProcess) -> None:
    try:
        os.kill(child.pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.debug("pid %s already exited", child.pid)
    try:
        _, status = os.waitpid(child.pid, 0)
    except ChildProcessError:
        logger.debug("pid %s was already reaped", child.pid)
        child.returncode = -signal.SIGKILL
    else:
        child.returncode = os.waitstatus_to_exitcode(status)


@dataclass
class ChildGroup:
    """Bookkeeping for the children of one comparison."""

    children: list[ChildProcess] = field(default_factory=list)

    def add(self, child: ChildProcess) -> ChildProcess:
        self.children.append(child)
        return child

    def running(self) -> list[ChildProcess]:
        return [child for child in self.children if child.running]

    def wait(self, child: ChildProcess) -> int:
        """Block until ``child`` exits; return its exit code (negative for signals)."""
        if child.returncode is not None:
            return child.returncode
        _, status = os.waitpid(child.pid, 0)
        return self._record(child, status)

    def poll(self, child: ChildProcess) -> int | None:
        """Reap ``child`` if it has already exited, without blocking."""
        if child.returncode is not None:
            return child.returncode
        pid, status = os.waitpid(child.pid, os.WNOHANG)
        if pid == 0:
            return None
        return self._record(child, status)

    def _record(self, child: ChildProcess, status: int) -> int:
        child.returncode = os.waitstatus_to_exitcode(status)
        logger.debug(
            "Reaped %s (pid %s): exit code %s",
            child.role.value,
            child.pid,
            child.returncode,
        )
        return child.returncode

    def terminate(self, signum: int = signal.SIGTERM) -> None:
        for child in self.running():
            logger.info(
                "Sending signal %s to %s (pid %s)", signum, child.role.value, child.pid
            )
            try:
                os.kill(child.pid, signum)
            except ProcessLookupError:
                logger.debug("pid %s already gone", child.pid)

    def reap_all(self) -> None:
        for child in self.running():
            self.wait(child)

    def terminate_and_reap(self, grace: float = TERMINATE_GRACE_SECONDS) -> None:
        """SIGTERM every running child; SIGKILL any still alive after ``grace``."""
        self.terminate()
        deadline = time.monotonic() + grace
        while self.running() and time.monotonic() < deadline:
            for child in self.running():
                self.poll(child)
            if self.running():
                time.sleep(REAP_POLL_INTERVAL_SECONDS)
        self.terminate(signal.SIGKILL)
        self.reap_all()
