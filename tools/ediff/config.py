"""Runtime settings resolved from the process environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .constants import (
    ACCEPTED_LOG_LEVELS,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SHELL,
    DEV_FD_DIR,
    DIFF_CMD,
    DIFF_PROGRAM_ENV_VAR,
    EXIT_STATUS_DIFF,
    EXIT_STATUS_ENV_VAR,
    EXIT_STATUS_POLICIES,
    FALSY_VALUES,
    FD_DEBUG_ENV_VAR,
    FD_DIR_ENV_VAR,
    LOG_FILE_ENV_VAR,
    LOG_LEVEL_ENV_VAR,
    PROC_FD_DIR,
    SHELL_ENV_VAR,
    TRUTHY_VALUES,
)
from .errors import ConfigError


@dataclass(frozen=True)
class Settings:
    """Everything the orchestrator needs besides the command line."""

    shell: str = DEFAULT_SHELL
    diff_program: str = DIFF_CMD
    fd_dir: str = PROC_FD_DIR
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Path | None = None
    exit_status: str = EXIT_STATUS_DIFF
    fd_debug: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        log_file_value = env.get(LOG_FILE_ENV_VAR, "").strip()
        return cls(
            shell=resolve_shell(env),
            diff_program=_non_empty(env, DIFF_PROGRAM_ENV_VAR, DIFF_CMD),
            fd_dir=resolve_fd_dir(env),
            log_level=_log_level(env),
            log_file=Path(log_file_value).expanduser() if log_file_value else None,
            exit_status=_exit_status(env),
            fd_debug=parse_flag(FD_DEBUG_ENV_VAR, env.get(FD_DEBUG_ENV_VAR, "")),
        )


def running_privileged() -> bool:
    """True when real and effective ids differ (setuid/setgid execution)."""
    return os.getuid() != os.geteuid() or os.getgid() != os.getegid()


def resolve_shell(environ: Mapping[str, str]) -> str:
    """Pick the interpreter for the user commands.

    Mirrors ``secure_getenv``: SHELL is ignored in a privileged process.
    """
    if running_privileged():
        return DEFAULT_SHELL
    shell = environ.get(SHELL_ENV_VAR, "")
    return shell if shell else DEFAULT_SHELL


def resolve_fd_dir(environ: Mapping[str, str]) -> str:
    override = environ.get(FD_DIR_ENV_VAR, "").strip()
    if override:
        return override.rstrip("/") or "/"
    if os.path.isdir(PROC_FD_DIR):
        return PROC_FD_DIR
    return DEV_FD_DIR


def parse_flag(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUTHY_VALUES:
        return True
    if normalized in FALSY_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean flag (1/0, true/false), got {value!r}")


def _non_empty(environ: Mapping[str, str], name: str, default: str) -> str:
    value = environ.get(name, "").strip()
    return value or default


def _log_level(environ: Mapping[str, str]) -> str:
    value = environ.get(LOG_LEVEL_ENV_VAR, "").strip().upper()
    if not value:
        return DEFAULT_LOG_LEVEL
    if value not in ACCEPTED_LOG_LEVELS:
        valid = ", ".join(ACCEPTED_LOG_LEVELS)
        raise ConfigError(f"{LOG_LEVEL_ENV_VAR} must be one of {valid}, got {value!r}")
    return value


def _exit_status(environ: Mapping[str, str]) -> str:
    value = environ.get(EXIT_STATUS_ENV_VAR, "").strip().lower()
    if not value:
        return EXIT_STATUS_DIFF
    if value not in EXIT_STATUS_POLICIES:
        valid = ", ".join(EXIT_STATUS_POLICIES)
        raise ConfigError(f"{EXIT_STATUS_ENV_VAR} must be one of {valid}, got {value!r}")
    return value
