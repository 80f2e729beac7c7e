"""Descriptor allocation with an explicit safety floor.

The consumer binds its inputs to fixed descriptor numbers. Any pipe end
still open in the process lineage below those numbers could be clobbered
by such a bind (``dup2(a, 3)`` when ``b`` happens to be 3), so every
transient descriptor is handed out at or above the floor, close-on-exec.
"""

from __future__ import annotations

import fcntl
import os
from dataclasses import dataclass, field

from .constants import SAFETY_FLOOR
from .errors import ResourceError
from .logging_utils import logger


def duplicate_at_or_above(fd: int, floor: int) -> int:
    """Duplicate ``fd`` to the lowest free number >= ``floor``.

    Close-on-exec is set atomically by ``F_DUPFD_CLOEXEC``, so no fork/exec
    elsewhere can ever observe the new descriptor without it.
    """
    try:
        newfd = fcntl.fcntl(fd, fcntl.F_DUPFD_CLOEXEC, floor)
    except OSError as exc:
        raise ResourceError.from_os_error("fcntl F_DUPFD", exc) from exc
    logger.debug("Duplicated fd %s to fd %s (floor %s)", fd, newfd, floor)
    return newfd


def _get_fd_flags(fd: int) -> int:
    try:
        return fcntl.fcntl(fd, fcntl.F_GETFD)
    except OSError as exc:
        raise ResourceError.from_os_error("fcntl F_GETFD", exc) from exc


def _set_fd_flags(fd: int, flags: int) -> None:
    try:
        fcntl.fcntl(fd, fcntl.F_SETFD, flags)
    except OSError as exc:
        raise ResourceError.from_os_error("fcntl F_SETFD", exc) from exc


def clear_close_on_exec(fd: int) -> None:
    """Mark ``fd`` to be inherited by the next program image."""
    _set_fd_flags(fd, _get_fd_flags(fd) & ~fcntl.FD_CLOEXEC)


def set_close_on_exec(fd: int) -> None:
    """Mark ``fd`` private: it is closed when the image is replaced."""
    _set_fd_flags(fd, _get_fd_flags(fd) | fcntl.FD_CLOEXEC)


def is_close_on_exec(fd: int) -> bool:
    return bool(_get_fd_flags(fd) & fcntl.FD_CLOEXEC)


def _os_pipe() -> tuple[int, int]:
    try:
        return os.pipe()
    except OSError as exc:
        raise ResourceError.from_os_error("pipe", exc) from exc


@dataclass
class Pipe:
    """Both ends of one anonymous pipe, owned by the process that made it."""

    read_end: int
    write_end: int
    closed: set[int] = field(default_factory=set, repr=False)

    def close_read(self) -> None:
        self._close(self.read_end)

    def close_write(self) -> None:
        self._close(self.write_end)

    def close(self) -> None:
        self.close_read()
        self.close_write()

    def _close(self, fd: int) -> None:
        if fd in self.closed:
            return
        os.close(fd)
        self.closed.add(fd)


class DescriptorAllocator:
    """Hands out descriptors that never land below ``floor``.

    Invariant: no descriptor number below the floor is reused for a
    transient stream anywhere in the process lineage.
    """

    def __init__(self, floor: int = SAFETY_FLOOR) -> None:
        if floor < 0:
            raise ValueError("floor must be >= 0")
        self.floor = floor

    def rehome(self, fd: int) -> int:
        """Move ``fd`` at or above the floor and close the original."""
        newfd = duplicate_at_or_above(fd, self.floor)
        os.close(fd)
        return newfd

    def open_pipe(self) -> Pipe:
        read_end, write_end = _os_pipe()
        try:
            read_end = self.rehome(read_end)
            write_end = self.rehome(write_end)
        except ResourceError:
            # rehome leaves its argument open when the duplicate fails.
            os.close(read_end)
            os.close(write_end)
            raise
        logger.debug("Opened pipe: read fd %s, write fd %s", read_end, write_end)
        return Pipe(read_end=read_end, write_end=write_end)

    def always_eof_source(self) -> int:
        """Return a read descriptor that reports end-of-stream immediately."""
        pipe = self.open_pipe()
        pipe.close_write()
        return pipe.read_end
