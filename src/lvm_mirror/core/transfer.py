"""rsync invocation mirroring a mounted snapshot to the remote host."""

import logging
from typing import Sequence

from ..__util__ import Runner, TransferError, format_command, run_command

logger = logging.getLogger(__name__)

RSYNC = "rsync"
DRY_RUN_FLAG = "--dry-run"


def build_transfer_command(
    source_dir: str,
    remote_host: str,
    destination: str,
    transfer_args: Sequence[str],
    remote_shell: str = "ssh",
    dry_run: bool = False,
) -> list[str]:
    """Build the rsync command line.

    Trailing slashes on both sides make rsync mirror the directory contents
    rather than nest the source directory inside the destination.
    """
    cmd = [RSYNC, *transfer_args, "--rsh", remote_shell]
    if dry_run:
        cmd.append(DRY_RUN_FLAG)
    cmd.append(f"{source_dir.rstrip('/')}/")
    cmd.append(f"{remote_host}:{destination.rstrip('/')}/")
    return cmd


class Transfer:
    """Run rsync with its output going straight to the operator."""

    def __init__(self, runner: Runner = run_command) -> None:
        self.runner = runner

    def run(self, cmd: list[str]) -> None:
        logger.debug("Transfer command: %s", format_command(cmd))
        result = self.runner(cmd, capture=False)
        if not result.ok:
            raise TransferError(f"rsync exited with status {result.returncode}", result)
