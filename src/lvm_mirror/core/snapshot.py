"""LVM snapshot lifecycle: create, activate, mount, unmount, destroy.

A snapshot walks through the states

    ABSENT -> CREATED -> (ACTIVATED) -> MOUNTED -> UNMOUNTED -> DESTROYED

where ACTIVATED only happens for thin snapshots, which LVM creates with the
activation skip flag set. A snapshot that was created but never mounted may
go straight to DESTROYED.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ..__util__ import (
    CommandResult,
    MountError,
    Runner,
    SnapshotActivateError,
    SnapshotCreateError,
    SnapshotDestroyError,
    SnapshotStateError,
    UnmountError,
    run_command,
)

logger = logging.getLogger(__name__)

THIN_SEGTYPE = "thin"


class SnapshotState(Enum):
    """Lifecycle state of a snapshot."""

    ABSENT = "absent"
    CREATED = "created"
    ACTIVATED = "activated"
    MOUNTED = "mounted"
    UNMOUNTED = "unmounted"
    DESTROYED = "destroyed"


_TRANSITIONS = {
    SnapshotState.ABSENT: {SnapshotState.CREATED},
    SnapshotState.CREATED: {
        SnapshotState.ACTIVATED,
        SnapshotState.MOUNTED,
        SnapshotState.DESTROYED,
    },
    SnapshotState.ACTIVATED: {SnapshotState.MOUNTED, SnapshotState.DESTROYED},
    SnapshotState.MOUNTED: {SnapshotState.UNMOUNTED},
    SnapshotState.UNMOUNTED: {SnapshotState.DESTROYED},
    SnapshotState.DESTROYED: set(),
}


@dataclass
class SnapshotHandle:
    """One active LVM snapshot, owned by a single pipeline run."""

    volume_group: str
    source_volume: str
    name: str
    thin: bool
    mount_point: Optional[str] = None
    state: SnapshotState = SnapshotState.ABSENT
    history: list[SnapshotState] = field(default_factory=list)

    @property
    def device(self) -> str:
        return f"/dev/{self.volume_group}/{self.name}"

    @property
    def lv_path(self) -> str:
        return f"{self.volume_group}/{self.name}"

    @property
    def needs_activation(self) -> bool:
        return self.thin and self.state is SnapshotState.CREATED

    @property
    def is_mounted(self) -> bool:
        return self.state is SnapshotState.MOUNTED

    @property
    def is_destroyed(self) -> bool:
        return self.state is SnapshotState.DESTROYED

    def advance(self, state: SnapshotState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise SnapshotStateError(
                f"{self.lv_path}: cannot go from {self.state.value} to {state.value}"
            )
        if state is SnapshotState.MOUNTED and self.thin and (
            SnapshotState.ACTIVATED not in self.history
        ):
            raise SnapshotStateError(f"{self.lv_path}: thin snapshot mounted before activation")
        self.state = state
        self.history.append(state)

    def __str__(self) -> str:
        return f"{self.lv_path} (snapshot of {self.source_volume})"


class SnapshotManager:
    """Drive the LVM tools for one snapshot at a time."""

    def __init__(self, runner: Runner = run_command) -> None:
        self.runner = runner

    def _run(self, cmd: list[str]) -> CommandResult:
        return self.runner(cmd)

    def is_thin(self, volume_group: str, volume: str) -> bool:
        """Ask LVM whether ``volume_group/volume`` is thin-provisioned."""
        result = self._run(
            ["lvs", "--noheadings", "-o", "segtype", f"{volume_group}/{volume}"]
        )
        if not result.ok:
            raise SnapshotCreateError(
                f"cannot query {volume_group}/{volume}: {result.error_text()}", result
            )
        return result.stdout.strip() == THIN_SEGTYPE

    def create(
        self,
        volume_group: str,
        source_volume: str,
        snapshot_name: str,
        size: Optional[str] = None,
    ) -> SnapshotHandle:
        """Create a snapshot of ``source_volume``.

        Thin volumes get an unbounded copy-on-write snapshot from their pool,
        so ``size`` is never passed for them; any other volume requires it.

        Raises:
            SnapshotCreateError: If the size is missing or lvcreate fails
        """
        thin = self.is_thin(volume_group, source_volume)
        handle = SnapshotHandle(volume_group, source_volume, snapshot_name, thin)

        cmd = ["lvcreate", "--snapshot", "--name", snapshot_name]
        if not thin:
            if not size:
                raise SnapshotCreateError(
                    f"{volume_group}/{source_volume} is not thin-provisioned "
                    "and no snapshot size is configured"
                )
            cmd.extend(["--size", size])
        cmd.append(f"{volume_group}/{source_volume}")

        logger.info("Creating snapshot %s", handle)
        result = self._run(cmd)
        if not result.ok:
            raise SnapshotCreateError(
                f"lvcreate {handle.lv_path} failed: {result.error_text()}", result
            )
        handle.advance(SnapshotState.CREATED)
        return handle

    def activate(self, handle: SnapshotHandle) -> None:
        """Bring a thin snapshot online despite its activation skip flag."""
        if not handle.thin:
            return
        logger.debug("Activating thin snapshot %s", handle.device)
        result = self._run(
            ["lvchange", "--activate", "y", "--ignoreactivationskip", handle.lv_path]
        )
        if not result.ok:
            raise SnapshotActivateError(
                f"lvchange {handle.lv_path} failed: {result.error_text()}", result
            )
        handle.advance(SnapshotState.ACTIVATED)

    def mount(self, handle: SnapshotHandle, mount_point: str, read_only: bool = True) -> None:
        if not Path(mount_point).is_dir():
            raise MountError(f"mount point {mount_point} is not a directory")
        if handle.needs_activation:
            raise MountError(f"{handle.device} is not active")

        cmd = ["mount"]
        if read_only:
            cmd.extend(["-o", "ro"])
        cmd.extend([handle.device, mount_point])

        logger.debug("Mounting %s on %s", handle.device, mount_point)
        result = self._run(cmd)
        if not result.ok:
            raise MountError(
                f"mounting {handle.device} on {mount_point} failed: "
                f"{result.error_text()}",
                result,
            )
        handle.mount_point = mount_point
        handle.advance(SnapshotState.MOUNTED)

    def unmount(self, handle: SnapshotHandle) -> None:
        logger.debug("Unmounting %s", handle.mount_point)
        result = self._run(["umount", str(handle.mount_point)])
        if not result.ok:
            raise UnmountError(
                f"unmounting {handle.mount_point} failed: {result.error_text()}", result
            )
        handle.advance(SnapshotState.UNMOUNTED)

    def destroy(self, handle: SnapshotHandle) -> None:
        """Remove the snapshot LV. Must never run while it is mounted."""
        if handle.is_mounted:
            raise SnapshotStateError(f"refusing to destroy mounted snapshot {handle.lv_path}")
        logger.info("Removing snapshot %s", handle.lv_path)
        result = self._run(["lvremove", "--force", "--yes", handle.lv_path])
        if not result.ok:
            raise SnapshotDestroyError(
                f"lvremove {handle.lv_path} failed: {result.error_text()}", result
            )
        handle.advance(SnapshotState.DESTROYED)
