"""Pytest configuration and shared fixtures."""

import shlex
from pathlib import Path

import pytest

from lvm_mirror.__util__ import CommandResult
from lvm_mirror.config import EffectiveConfig, ExcludeRegistry
from lvm_mirror.core import SnapshotManager, Transfer, VolumeSyncPipeline
from lvm_mirror.sshutil import RemoteShell


class FakeRunner:
    """Stand-in for run_command recording every external command.

    It fakes lvs, mount/umount and the remote ``test -d`` check, and fails
    any command matching a rule added with ``fail_on``. Mounting while
    something is already mounted is an assertion failure.
    """

    def __init__(self, thin=(), remote_dirs=None):
        self.calls: list[list[str]] = []
        self.thin = set(thin)
        self.remote_dirs = remote_dirs
        self.failures: list[tuple[str, str, int]] = []
        self.mounted = None

    def fail_on(self, program: str, match: str = "", returncode: int = 5) -> None:
        self.failures.append((program, match, returncode))

    def _failure(self, cmd):
        line = " ".join(cmd)
        for program, match, returncode in self.failures:
            if cmd[0] == program and match in line:
                return CommandResult(cmd, returncode, stderr=f"{program} failed")
        return None

    def __call__(self, cmd, capture=True):
        cmd = [str(c) for c in cmd]
        self.calls.append(cmd)

        failure = self._failure(cmd)
        if failure is not None:
            return failure

        program = cmd[0]
        if program == "lvs":
            lv = cmd[-1].split("/", 1)[1]
            segtype = "thin" if lv in self.thin else "linear"
            return CommandResult(cmd, 0, stdout=f"  {segtype}  \n")
        if program == "mount":
            assert self.mounted is None, f"re-entrant mount over {self.mounted}"
            self.mounted = cmd[-1]
        elif program == "umount":
            assert self.mounted == cmd[-1], "unmount of something not mounted"
            self.mounted = None
        elif program == "ssh":
            path = shlex.split(cmd[-1])[-1]
            if self.remote_dirs is not None and path not in self.remote_dirs:
                return CommandResult(cmd, 1)
        return CommandResult(cmd, 0)

    def programs(self) -> list[str]:
        return [c[0] for c in self.calls]

    def commands(self, program: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == program]

    def snapshot_calls(self, volume: str) -> list[list[str]]:
        """lvs and lvcreate calls naming ``volume`` as the snapshot origin."""
        return [
            c
            for c in self.calls
            if c[0] in ("lvs", "lvcreate") and c[-1].endswith(f"/{volume}")
        ]


@pytest.fixture
def make_runner():
    return FakeRunner


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def mount_point(tmp_path):
    mp = tmp_path / "mnt"
    mp.mkdir()
    return mp


@pytest.fixture
def config(tmp_path, mount_point):
    """EffectiveConfig pointing the mount point and lock into tmp_path."""
    return EffectiveConfig(
        remote_host="mirror",
        mount_point=str(mount_point),
        lock_file=str(tmp_path / "lvm-mirror.lock"),
    )


@pytest.fixture
def excludes(config):
    registry = ExcludeRegistry()
    registry.ensure_initialized(config.volumes)
    return registry


@pytest.fixture
def make_pipeline(fake_runner):
    """Build a pipeline whose external commands all go to ``fake_runner``."""

    def factory(config, excludes, dry_run=False, runner=None):
        runner = runner or fake_runner
        return VolumeSyncPipeline(
            config,
            excludes,
            dry_run=dry_run,
            snapshots=SnapshotManager(runner),
            remote=RemoteShell(config.remote_host, config.remote_shell, runner),
            transfer=Transfer(runner),
        )

    return factory


@pytest.fixture
def config_dir(tmp_path):
    """Create a temporary config directory."""
    d = tmp_path / "etc"
    d.mkdir()
    return d


@pytest.fixture
def sample_config_toml(mount_point):
    """Return a sample valid TOML configuration source."""
    return f"""
remote_host = "nas.example.org"
remote_shell = "ssh -p 2222"
volume_group = "vg0"
snapshot_size = "2G"
backup_root = "/backups"
mount_point = "{mount_point}"
volumes = ["root", "home", "var"]
transfer_args = ["--bwlimit=20M"]
notify_email = "ops@example.org"

[excludes]
home = ["*/.cache", "*.tmp"]
var = ["/tmp/*"]
"""


@pytest.fixture
def config_file(config_dir, sample_config_toml):
    """Create a single-source config file with sample content."""
    path = config_dir / "config.toml"
    path.write_text(sample_config_toml)
    return path


@pytest.fixture
def write_source(config_dir):
    """Write a configuration source named ``name`` into config_dir."""

    def write(name: str, content: str) -> Path:
        path = config_dir / name
        path.write_text(content)
        return path

    return write
