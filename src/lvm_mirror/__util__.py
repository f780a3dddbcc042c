# pyright: standard

"""lvm-mirror: lvm_mirror/__util__.py
Error types, subprocess execution and small helpers shared by all modules.
"""

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


class AbortError(Exception):
    """Base of all fatal errors; aborts the enclosing volume, source and run."""

    operation = "abort"

    def __init__(self, message: str = "", result: "CommandResult | None" = None):
        super().__init__(message)
        self.result = result

    def diagnostic(self) -> str:
        """Short prefixed message naming the failed operation."""
        return f"{self.operation}: {self}"


class ArgumentError(AbortError):
    """Unrecognized or malformed command line argument."""

    operation = "arguments"


class ConfigurationError(AbortError):
    """Configuration source is unreadable, malformed or incomplete."""

    operation = "configuration"


class LockError(AbortError):
    """Another run holds the run lock."""

    operation = "lock"


class DestinationMissingError(AbortError):
    """Remote destination directory does not exist or cannot be checked."""

    operation = "destination check"


class SnapshotCreateError(AbortError):
    operation = "snapshot create"


class SnapshotActivateError(AbortError):
    operation = "snapshot activate"


class MountError(AbortError):
    operation = "mount"


class UnmountError(AbortError):
    operation = "unmount"


class SnapshotDestroyError(AbortError):
    operation = "snapshot destroy"


class TransferError(AbortError):
    operation = "transfer"


class SnapshotStateError(RuntimeError):
    """A snapshot lifecycle step was requested out of order."""


class ExcludesNotInitializedError(RuntimeError):
    """Exclude patterns were looked up before the registry was initialized."""


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def error_text(self) -> str:
        """Best available explanation for a failed command."""
        text = (self.stderr or self.stdout).strip()
        return text or f"exit status {self.returncode}"


Runner = Callable[..., CommandResult]


def format_command(cmd: list[str]) -> str:
    return " ".join(shlex.quote(str(c)) for c in cmd)


def run_command(cmd: list[str], capture: bool = True) -> CommandResult:
    """Run ``cmd`` to completion and wrap the outcome in a CommandResult.

    With ``capture`` unset the command inherits stdout and stderr, which is
    how rsync progress and statistics reach the operator.
    A missing executable is reported as exit status 127 and one that cannot
    be executed as 126, like a shell would.
    """
    cmd = [str(c) for c in cmd]
    logger.debug("Executing: %s", format_command(cmd))
    try:
        if capture:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
            return CommandResult(
                cmd,
                proc.returncode,
                proc.stdout.decode("utf-8", errors="replace"),
                proc.stderr.decode("utf-8", errors="replace"),
            )
        proc = subprocess.run(cmd, check=False)
        return CommandResult(cmd, proc.returncode)
    except FileNotFoundError as e:
        logger.debug("Command not found: %s", e)
        return CommandResult(cmd, 127, stderr=f"command not found: {cmd[0]}")
    except OSError as e:
        logger.debug("Cannot execute %s: %s", cmd[0], e)
        return CommandResult(cmd, 126, stderr=f"cannot execute {cmd[0]}: {e.strerror or e}")


def log_heading(msg: str) -> str:
    """Formatted heading for logging output sections."""
    return f"--[ {msg} ]--"
