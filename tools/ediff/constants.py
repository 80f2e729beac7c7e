"""Shared constants for the ediff command comparison tool."""

from __future__ import annotations

PROGRAM_NAME = "ediff"

# Descriptors the consumer binds explicitly before exec.
FIRST_INPUT_FD = 3
SECOND_INPUT_FD = 4
# Highest descriptor number we pass to the differencing program.
DIFF_MAXFD = SECOND_INPUT_FD
# Transient pipe ends are always re-homed at or above this number.
SAFETY_FLOOR = DIFF_MAXFD + 1

STDIN_FD = 0
STDOUT_FD = 1

DEFAULT_SHELL = "/bin/sh"
SHELL_COMMAND_FLAG = "-c"
DIFF_CMD = "diff"
DEFAULT_DIFF_FLAGS = ("-u",)
LABEL_FLAG = "--label"
ARGV_STARTING_CAPACITY = 2

PROC_FD_DIR = "/proc/self/fd"
DEV_FD_DIR = "/dev/fd"
FD_DEBUG_COMMAND = ("ls", "-al")

USAGE_TEMPLATE = "Usage: {prog} [diff args] 'shell command 1' 'shell command 2'"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2
SIGNAL_EXIT_BASE = 128

# How long terminated children get to exit before SIGKILL.
TERMINATE_GRACE_SECONDS = 2.0
REAP_POLL_INTERVAL_SECONDS = 0.01

# Differencing program conventions (diff, cmp, ...).
DIFF_STATUS_SAME = 0
DIFF_STATUS_DIFFERENT = 1

EXIT_STATUS_DIFF = "diff"
EXIT_STATUS_ZERO = "zero"
EXIT_STATUS_POLICIES = (EXIT_STATUS_DIFF, EXIT_STATUS_ZERO)

SHELL_ENV_VAR = "SHELL"
DIFF_PROGRAM_ENV_VAR = "EDIFF_DIFF_PROGRAM"
FD_DIR_ENV_VAR = "EDIFF_FD_DIR"
LOG_LEVEL_ENV_VAR = "EDIFF_LOG_LEVEL"
LOG_FILE_ENV_VAR = "EDIFF_LOG_FILE"
EXIT_STATUS_ENV_VAR = "EDIFF_EXIT_STATUS"
FD_DEBUG_ENV_VAR = "EDIFF_FD_DEBUG"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOGGER_NAME = "ediff"
DEFAULT_LOG_LEVEL = "WARNING"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
ACCEPTED_LOG_LEVELS = (*VALID_LOG_LEVELS, "WARN")
COMMAND_LOG_LIMIT = 200

TRUTHY_VALUES = {"1", "true", "yes", "on"}
FALSY_VALUES = {"", "0", "false", "no", "off"}

# Exec failures travel from child to parent as "<operation>:<errno>:<message>".
SPAWN_STATUS_SEPARATOR = ":"
SPAWN_STATUS_READ_SIZE = 4096
