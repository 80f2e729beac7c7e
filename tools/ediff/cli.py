"""CLI wrapper that splits arguments and delegates to the orchestrator."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence

from .config import Settings
from .constants import EXIT_USAGE, PROGRAM_NAME, USAGE_TEMPLATE
from .errors import ConfigError, EdiffError, Interrupted, UsageError
from .logging_utils import logger, setup_logging
from .orchestrator import Invocation, compare_commands


def usage(prog: str) -> str:
    return USAGE_TEMPLATE.format(prog=prog)


def parse_invocation(args: Sequence[str], prog: str = PROGRAM_NAME) -> Invocation:
    """Split ``[diff args...] command_a command_b``.

    Everything before the last two arguments goes to the differencing
    program untouched, so ediff has no options of its own.
    """
    if len(args) < 2:
        raise UsageError(usage(prog))
    return Invocation(
        diff_flags=tuple(args[:-2]),
        command_a=args[-2],
        command_b=args[-1],
    )


def run(args: Sequence[str], prog: str = PROGRAM_NAME) -> int:
    invocation = parse_invocation(args, prog)
    settings = Settings.from_env()
    try:
        setup_logging(settings.log_level, settings.log_file)
    except OSError as exc:
        raise ConfigError(
            f"cannot open log file {settings.log_file}: {exc.strerror or exc}"
        ) from exc
    logger.debug("Resolved settings: %s", settings)
    return compare_commands(invocation, settings)


def main(argv: Sequence[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv
    prog = os.path.basename(argv[0]) if argv else PROGRAM_NAME
    try:
        code = run(list(argv[1:]), prog)
    except UsageError as exc:
        print(exc.diagnostic(), file=sys.stderr)
        raise SystemExit(EXIT_USAGE) from exc
    except Interrupted as exc:
        raise SystemExit(exc.exit_code) from exc
    except EdiffError as exc:
        print(exc.diagnostic(), file=sys.stderr)
        raise SystemExit(exc.exit_code) from exc
    raise SystemExit(code)


if __name__ == "__main__":
    main()
