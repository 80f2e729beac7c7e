"""Error classification and exit-code mapping.

Every failure ediff can report derives from :class:`EdiffError`. The CLI
turns these into a diagnostic on stderr and a process exit code; nothing
is retried, because the whole comparison is cheap to rerun.
"""

from __future__ import annotations

import errno as errno_module
import os
from enum import Enum

from .constants import (
    DIFF_STATUS_DIFFERENT,
    DIFF_STATUS_SAME,
    EXIT_FATAL,
    EXIT_USAGE,
    PROGRAM_NAME,
    SIGNAL_EXIT_BASE,
)


class ErrorCategory(str, Enum):
    """Categories of errors for classification."""

    USAGE = "usage"  # Wrong argument count
    CONFIG = "config"  # Invalid environment settings
    RESOURCE = "resource"  # pipe/fork/dup/fcntl/exec failures
    CONSUMER = "consumer"  # Differencing program failed after exec
    INTERRUPTED = "interrupted"  # Cancelled by a signal


EXIT_CODES: dict[ErrorCategory, int] = {
    ErrorCategory.USAGE: EXIT_USAGE,
    ErrorCategory.CONFIG: EXIT_USAGE,
    ErrorCategory.RESOURCE: EXIT_FATAL,
    ErrorCategory.CONSUMER: EXIT_FATAL,
}


class EdiffError(RuntimeError):
    """Base class for failures reported by ediff."""

    category = ErrorCategory.RESOURCE

    @property
    def exit_code(self) -> int:
        return EXIT_CODES.get(self.category, EXIT_FATAL)

    def diagnostic(self) -> str:
        return f"{PROGRAM_NAME}: {self}"


class UsageError(EdiffError):
    """Raised when the command line does not name two shell commands."""

    category = ErrorCategory.USAGE

    def diagnostic(self) -> str:
        return str(self)


class ConfigError(EdiffError):
    """Raised when an environment setting holds an unusable value."""

    category = ErrorCategory.CONFIG


class ResourceError(EdiffError):
    """An operating-system call failed; the message names the operation."""

    category = ErrorCategory.RESOURCE

    def __init__(
        self, operation: str, reason: str, *, errno: int | None = None
    ) -> None:
        super().__init__(f"{operation}: {reason}")
        self.operation = operation
        self.reason = reason
        self.errno = errno

    @classmethod
    def from_os_error(cls, operation: str, exc: OSError) -> "ResourceError":
        reason = exc.strerror or str(exc)
        return cls(operation, reason, errno=exc.errno)


class SpawnError(ResourceError):
    """A child failed between fork and exec."""

    def __init__(
        self,
        role: str,
        operation: str,
        reason: str,
        *,
        errno: int | None = None,
    ) -> None:
        super().__init__(operation, reason, errno=errno)
        self.role = role

    def diagnostic(self) -> str:
        return f"{PROGRAM_NAME}: {self.role}: {self}"


class Interrupted(EdiffError):
    """Raised from a signal handler to unwind and terminate the children."""

    category = ErrorCategory.INTERRUPTED

    def __init__(self, signum: int) -> None:
        super().__init__(f"interrupted by signal {signum}")
        self.signum = signum

    @property
    def exit_code(self) -> int:
        return SIGNAL_EXIT_BASE + self.signum


def describe_errno(code: int) -> str:
    """Return the platform message for an errno value, or its symbolic name."""
    try:
        return os.strerror(code)
    except ValueError:
        return errno_module.errorcode.get(code, f"errno {code}")


def classify_consumer_status(returncode: int) -> ErrorCategory | None:
    """Classify the differencing program's exit code.

    Returns None for the two successful outcomes (no differences and
    differences found) and ``ErrorCategory.CONSUMER`` for everything else,
    including death by signal (negative return codes).
    """
    if returncode in (DIFF_STATUS_SAME, DIFF_STATUS_DIFFERENT):
        return None
    return ErrorCategory.CONSUMER
