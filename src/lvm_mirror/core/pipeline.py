"""Snapshot-bracketed synchronization of one logical volume.

For each volume the pipeline checks the remote destination, snapshots the
volume, mounts the snapshot read-only, mirrors it with rsync, then unmounts
and removes the snapshot. Steps run strictly in that order and the first
failure stops the volume. Once a snapshot exists it is always cleaned up:
unmounted if it was mounted, then destroyed, unless unmounting failed.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from .. import normalize_volume_name
from ..__util__ import AbortError
from ..config import EffectiveConfig, ExcludeRegistry
from ..sshutil import RemoteShell
from .snapshot import SnapshotHandle, SnapshotManager, SnapshotState
from .transfer import Transfer, build_transfer_command

logger = logging.getLogger(__name__)


@dataclass
class VolumeResult:
    """Outcome of one pipeline run.

    ``passed`` covers the destination check, snapshot, mount and transfer.
    A cleanup failure is recorded separately and does not clear it.
    """

    volume: str
    destination: str = ""
    passed: bool = False
    error: Optional[AbortError] = None
    cleanup_error: Optional[AbortError] = None
    snapshot_states: list[SnapshotState] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.passed and self.cleanup_error is None

    @property
    def failure(self) -> Optional[AbortError]:
        return self.error or self.cleanup_error


class VolumeSyncPipeline:
    """Mirror volumes one at a time using a shared mount point."""

    def __init__(
        self,
        config: EffectiveConfig,
        excludes: ExcludeRegistry,
        dry_run: bool = False,
        snapshots: Optional[SnapshotManager] = None,
        remote: Optional[RemoteShell] = None,
        transfer: Optional[Transfer] = None,
    ) -> None:
        self.config = config
        self.excludes = excludes
        self.dry_run = dry_run
        self.snapshots = snapshots or SnapshotManager()
        self.remote = remote or RemoteShell(config.remote_host, config.remote_shell)
        self.transfer = transfer or Transfer()

    def transfer_args(self, volume: str) -> list[str]:
        return list(self.config.transfer_args) + self.excludes.render_flags(volume)

    def run(self, volume: str) -> VolumeResult:
        """Mirror ``volume``; errors are captured in the returned result."""
        volume = normalize_volume_name(volume)
        destination = self.config.destination_for(volume)
        result = VolumeResult(volume=volume, destination=destination)
        started = time.monotonic()

        handle: Optional[SnapshotHandle] = None
        try:
            self.remote.require_dir(destination)
            args = self.transfer_args(volume)
            handle = self._create_snapshot(volume)
            self.snapshots.activate(handle)
            self.snapshots.mount(handle, self.config.mount_point)
            self.transfer.run(
                build_transfer_command(
                    self.config.mount_point,
                    self.config.remote_host,
                    destination,
                    args,
                    remote_shell=self.config.remote_shell,
                    dry_run=self.dry_run,
                )
            )
            result.passed = True
        except AbortError as e:
            logger.error("%s: %s", volume, e.diagnostic())
            result.error = e
        finally:
            if handle is not None:
                result.cleanup_error = self._cleanup(handle)
                result.snapshot_states = list(handle.history)
            result.duration_seconds = round(time.monotonic() - started, 2)

        return result

    def _create_snapshot(self, volume: str) -> SnapshotHandle:
        return self.snapshots.create(
            self.config.volume_group,
            volume,
            self.config.snapshot_name,
            self.config.snapshot_size,
        )

    def _cleanup(self, handle: SnapshotHandle) -> Optional[AbortError]:
        """Unmount and destroy ``handle``; return the first failure, if any."""
        try:
            if handle.is_mounted:
                self.snapshots.unmount(handle)
            self.snapshots.destroy(handle)
        except AbortError as e:
            if handle.is_mounted:
                logger.error(
                    "%s is still mounted on %s; snapshot %s left in place",
                    handle.device,
                    handle.mount_point,
                    handle.lv_path,
                )
            logger.error("%s: cleanup failed: %s", handle.source_volume, e.diagnostic())
            return e
        return None
