"""Test package for tools.ediff."""

import os
from pathlib import Path

from ..constants import DEV_FD_DIR, PROC_FD_DIR


def pseudo_file_dir() -> str | None:
    """Return the pseudo-file directory of this platform, if any."""
    for candidate in (PROC_FD_DIR, DEV_FD_DIR):
        if Path(candidate).is_dir():
            return candidate
    return None


def close_quietly(*fds: int) -> None:
    """Close descriptors a test opened; ones already closed are skipped."""
    for fd in fds:
        try:
            os.close(fd)
        except OSError:
            continue
