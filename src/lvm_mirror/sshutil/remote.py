"""lvm-mirror: lvm_mirror/sshutil/remote.py
Run commands on the mirror host through the configured remote shell.
"""

import logging
import shlex

from ..__util__ import CommandResult, DestinationMissingError, Runner, run_command

logger = logging.getLogger(__name__)

# ssh reserves this status for its own failures
SSH_ERROR_STATUS = 255


class RemoteShell:
    """Remote shell transport to the mirror host.

    Args:
        hostname: Mirror host, optionally as user@host
        shell_command: Remote shell command line, e.g. "ssh -p 2222"
        runner: Command runner, replaceable in tests
    """

    def __init__(self, hostname: str, shell_command: str = "ssh", runner: Runner = run_command):
        self.hostname = hostname
        self.shell_command = shell_command
        self.runner = runner

    def base_cmd(self) -> list[str]:
        return shlex.split(self.shell_command) + [self.hostname]

    def exec_remote_command(self, cmd: list[str]) -> CommandResult:
        """Run ``cmd`` on the mirror host; arguments are quoted for the remote shell."""
        remote = " ".join(shlex.quote(str(c)) for c in cmd)
        return self.runner(self.base_cmd() + [remote])

    def path_is_dir(self, path: str) -> bool:
        """Return True if ``path`` is an existing directory on the mirror host.

        Raises:
            DestinationMissingError: If the remote shell itself fails
        """
        result = self.exec_remote_command(["test", "-d", path])
        if result.returncode == SSH_ERROR_STATUS:
            raise DestinationMissingError(
                f"cannot check {self.hostname}:{path}: {result.error_text()}", result
            )
        return result.ok

    def require_dir(self, path: str) -> None:
        """Fail unless ``path`` already exists on the mirror host.

        Destinations are never created implicitly so a typo cannot start a
        new, unintended backup tree.
        """
        logger.debug("Checking destination %s:%s", self.hostname, path)
        if not self.path_is_dir(path):
            raise DestinationMissingError(
                f"destination {self.hostname}:{path} does not exist"
            )

    def __repr__(self) -> str:
        return f"RemoteShell({self.hostname!r}, {self.shell_command!r})"
